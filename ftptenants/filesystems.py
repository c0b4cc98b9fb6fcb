# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

import os
import stat

from .exceptions import DirectoryProvisioningError
from .log import logger
from .utils import strerror

__all__ = ["TenantDirectory", "parse_subdirs"]


def parse_subdirs(value):
    """Parse a comma-separated list of subdirectory names as passed on
    the command line. Whitespace around names is stripped and empty
    names are skipped; order is preserved and duplicates are kept.

    >>> parse_subdirs("a, b,,c ")
    ['a', 'b', 'c']
    """
    if not value:
        return []
    names = []
    for name in value.split(","):
        name = name.strip()
        if name:
            names.append(name)
    return names


class TenantDirectory:
    """The tree of directories belonging to tenants, rooted at 'base'
    (e.g. "/home/ftp"), each tenant having its own "<base>/<name>".

    Every directory created here is owned by the tenant, group-owned
    by the shared group and has 'mode' (0770) permissions, meaning
    the tenant and the shared group members have full access and
    nobody else has any. Ownership and mode are always (re)applied,
    never just checked, so provisioning twice fixes a directory which
    was tampered with, and the process umask doesn't matter.
    """

    def __init__(self, base, mode=0o770):
        if mode & stat.S_IRWXO:
            raise ValueError(f"mode {mode:#o} grants access to others")
        self.base = os.path.abspath(base)
        self.mode = mode

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} base={self.base!r} "
            f"mode={self.mode:#o}>"
        )

    # --- internals

    def _check_dir(self, path):
        # refuse to chown/chmod the target of a symlink
        try:
            st = os.lstat(path)
        except FileNotFoundError:
            return
        except OSError as err:
            raise DirectoryProvisioningError(strerror(err)) from err
        if stat.S_ISLNK(st.st_mode):
            raise DirectoryProvisioningError(f"{path!r} is a symlink")
        if not stat.S_ISDIR(st.st_mode):
            raise DirectoryProvisioningError(f"{path!r} is not a directory")

    def _makedir(self, path, uid, gid):
        self._check_dir(path)
        try:
            os.makedirs(path, exist_ok=True)
            os.chown(path, uid, gid)
            os.chmod(path, self.mode)
        except OSError as err:
            raise DirectoryProvisioningError(strerror(err)) from err

    def _subpath(self, root, name):
        parts = name.replace(os.sep, "/").split("/")
        parts = [x for x in parts if x not in ("", ".")]
        if os.path.isabs(name) or not parts:
            raise DirectoryProvisioningError(f"invalid directory {name!r}")
        if ".." in parts:
            raise DirectoryProvisioningError(
                f"directory {name!r} escapes tenant root {root!r}"
            )
        return parts

    # --- public API

    def check_names(self, names):
        """Raise DirectoryProvisioningError if any of 'names' is
        absolute or escapes the tenant root.
        """
        for name in names:
            self._subpath(self.base, name)

    def path_for(self, name):
        """Return the root directory of tenant 'name'."""
        return os.path.join(self.base, name)

    def provision_root(self, account, group):
        """Create "<base>/<account>" (if needed) and apply ownership
        and mode. Return the directory path.
        """
        root = self.path_for(account.name)
        self._makedir(root, account.uid, group.gid)
        logger.info(
            "set %r owner=%s group=%s mode=%o",
            root,
            account.name,
            group.name,
            self.mode,
        )
        return root

    def provision_subdirs(self, account, group, names):
        """Create "<root>/<name>" for each one of 'names', in order,
        together with its intermediate directories, applying the same
        ownership and mode as the tenant root to each of them.
        Names are supposed to be already parsed (see parse_subdirs()).
        Return the list of created paths.
        """
        root = self.path_for(account.name)
        ret = []
        for name in names:
            path = root
            for part in self._subpath(root, name):
                path = os.path.join(path, part)
                self._makedir(path, account.uid, group.gid)
            ret.append(path)
            logger.info("created subdirectory %r", path)
        return ret

    def verify(self, account, group, names=()):
        """Check the tenant root and the 'names' subdirectories and
        return a list of strings describing the ones violating the
        ownership / mode invariant (empty list means all is fine).
        Directories created later on by the tenant itself over FTP
        are not checked.
        """
        root = self.path_for(account.name)
        paths = [root]
        for name in names:
            path = root
            for part in self._subpath(root, name):
                path = os.path.join(path, part)
                if path not in paths:
                    paths.append(path)
        gid = group.gid
        problems = []
        for path in paths:
            try:
                st = os.lstat(path)
            except FileNotFoundError:
                problems.append(f"{path!r}: does not exist")
                continue
            mode = stat.S_IMODE(st.st_mode)
            if not stat.S_ISDIR(st.st_mode):
                problems.append(f"{path!r}: not a directory")
                continue
            if st.st_uid != account.uid:
                problems.append(f"{path!r}: owner uid is {st.st_uid}")
            if st.st_gid != gid:
                problems.append(f"{path!r}: group gid is {st.st_gid}")
            if mode != self.mode:
                problems.append(f"{path!r}: mode is {mode:o}")
        return problems
