# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

import contextlib
import grp
import os
import pwd
import shutil
import stat
import subprocess
import tempfile
import unittest
from unittest import mock

from ftptenants.accounts import Account
from ftptenants.config import Settings

HERE = os.path.realpath(os.path.abspath(os.path.dirname(__file__)))
ROOT_DIR = os.path.realpath(os.path.join(HERE, "..", ".."))
POSIX = os.name == "posix"

USER = "alice"
PASSWD = "Secret123"
OPERATOR = "work"
GROUP = "ftp_shared_workgroup"
# every fake user / group maps to the current process credentials,
# so that chown() works without being root
UID = os.getuid()
GID = os.getgid()
# Disambiguate TESTFN for parallel testing.
TESTFN_PREFIX = f"@ftptenants-{os.getpid()}-"


class FtptenantsTestCase(unittest.TestCase):
    """All test classes inherit from this one."""

    def __str__(self):
        # Print a full path representation of the single unit tests
        # being run.
        fqmod = self.__class__.__module__
        if not fqmod.startswith("ftptenants."):
            fqmod = "ftptenants.test." + fqmod
        return f"{fqmod}.{self.__class__.__name__}.{self._testMethodName}"

    def get_testfn(self, suffix="", dir=None):
        fname = get_testfn(suffix=suffix, dir=dir)
        self.addCleanup(safe_rmpath, fname)
        return fname

    def get_testdir(self):
        """Create a temporary directory and return its absolute path."""
        path = self.get_testfn()
        os.mkdir(path)
        return path

    def make_settings(self, **kwargs):
        """Return a Settings instance pointing all paths to a temporary
        directory.
        """
        tmp = self.get_testdir()
        kwargs.setdefault("ftp_base", os.path.join(tmp, "ftp"))
        kwargs.setdefault("vsftpd_conf", os.path.join(tmp, "vsftpd.conf"))
        kwargs.setdefault(
            "chroot_list_file", os.path.join(tmp, "vsftpd.chroot_list")
        )
        kwargs.setdefault("pam_file", os.path.join(tmp, "pam.vsftpd"))
        kwargs.setdefault("state_file", os.path.join(tmp, "state.json"))
        return Settings(**kwargs)

    def assert_tenant_dir(self, path, mode=0o770):
        st = os.lstat(path)
        assert stat.S_ISDIR(st.st_mode), path
        assert stat.S_IMODE(st.st_mode) == mode, oct(st.st_mode)
        assert st.st_uid == UID
        assert st.st_gid == GID


def get_testfn(suffix="", dir=None):
    """Return an absolute pathname of a file or dir that did not
    exist at the time this call is made. It's technically racy but
    probably not really due to the time variant.
    """
    if dir is None:
        dir = os.getcwd()
    while True:
        name = tempfile.mktemp(prefix=TESTFN_PREFIX, suffix=suffix, dir=dir)
        if not os.path.lexists(name):  # also include dirs and links
            return os.path.abspath(name)


def safe_rmpath(path):
    """Convenience function for removing temporary test files or dirs."""
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return
    if stat.S_ISDIR(st.st_mode):
        # tenant dirs are 0770: make sure we can descend into them
        for root, dirs, _ in os.walk(path):
            for name in dirs:
                with contextlib.suppress(OSError):
                    os.chmod(os.path.join(root, name), 0o700)
        shutil.rmtree(path)
    else:
        os.remove(path)


def touch(name):
    """Create a file and return its name."""
    with open(name, "w") as f:
        return f.name


def make_account(name=USER, homedir="/nonexistent", shell=None, groups=()):
    """Return an Account owned by the current process uid / gid."""
    return Account(
        name,
        UID,
        GID,
        homedir,
        shell or Settings.nologin_shell,
        groups=groups,
    )


class FakeGroup:
    """Stands in for SharedGroup where only name and gid matter."""

    def __init__(self, name=GROUP, gid=GID):
        self.name = name
        self.gid = gid


# ===================================================================
# --- fake command runners
# ===================================================================


class FakeRunner:
    """A CommandRunner which doesn't run anything: it records commands
    and returns the exit status configured in 'returncodes' (keyed by
    program name). Programs listed in 'missing' raise
    FileNotFoundError as if they weren't installed.
    """

    def __init__(self, returncodes=None, missing=()):
        self.returncodes = dict(returncodes or {})
        self.missing = set(missing)
        self.calls = []

    @property
    def commands(self):
        return [cmd for cmd, _ in self.calls]

    def programs(self):
        return [cmd[0] for cmd in self.commands]

    def execute(self, cmd, input):
        rc = self.returncodes.get(cmd[0], 0)
        stderr = f"{cmd[0]}: failed" if rc else ""
        return rc, stderr

    def run(self, cmd, input=None, check=True):
        self.calls.append((list(cmd), input))
        if cmd[0] in self.missing:
            raise FileNotFoundError(2, "No such file or directory", cmd[0])
        rc, stderr = self.execute(cmd, input)
        if rc and check:
            raise subprocess.CalledProcessError(rc, cmd, "", stderr)
        return subprocess.CompletedProcess(cmd, rc, "", stderr)


class FakeSystem(FakeRunner):
    """A FakeRunner which also emulates useradd, groupadd, usermod and
    chpasswd against in-memory passwd / group databases. Use patch()
    to make pwd and grp modules look them up.
    """

    def __init__(self, users=(), groups=(), **kwargs):
        super().__init__(**kwargs)
        self.users = {}
        self.groups = {}
        self.passwords = {}
        for name in groups:
            self.groups[name] = []
        for name in users:
            self.users[name] = ("/home/" + name, "/bin/bash")

    # --- database lookups

    def getpwnam(self, name):
        try:
            home, shell = self.users[name]
        except KeyError:
            raise KeyError(f"getpwnam(): name not found: {name!r}") from None
        return pwd.struct_passwd((name, "x", UID, GID, "", home, shell))

    def getgrnam(self, name):
        try:
            members = self.groups[name]
        except KeyError:
            raise KeyError(f"getgrnam(): name not found: {name!r}") from None
        return grp.struct_group((name, "x", GID, list(members)))

    def getgrall(self):
        return [self.getgrnam(x) for x in self.groups]

    @contextlib.contextmanager
    def patch(self):
        with mock.patch("pwd.getpwnam", side_effect=self.getpwnam):
            with mock.patch("grp.getgrnam", side_effect=self.getgrnam):
                with mock.patch("grp.getgrall", side_effect=self.getgrall):
                    yield self

    # --- commands

    def _useradd(self, args):
        name = args[-1]
        opts = dict(zip(args[:-1], args[1:]))
        if name in self.users:
            return 9, f"useradd: user '{name}' already exists"
        groups = opts.get("-G", "")
        groups = groups.split(",") if groups else []
        for group in groups:
            if group not in self.groups:
                return 6, f"useradd: group '{group}' does not exist"
        home = opts.get("-d", "/home/" + name)
        self.users[name] = (home, opts.get("-s", "/bin/bash"))
        for group in groups:
            self.groups[group].append(name)
        if "-m" in args:
            # mimic useradd -m: created with a permissive mode
            os.makedirs(home, exist_ok=True)
            os.chmod(home, 0o755)
        return 0, ""

    def _groupadd(self, args):
        name = args[-1]
        if name in self.groups:
            return 9, f"groupadd: group '{name}' already exists"
        self.groups[name] = []
        return 0, ""

    def _usermod(self, args):
        group, name = args[-2], args[-1]
        if name not in self.users:
            return 6, f"usermod: user '{name}' does not exist"
        if name not in self.groups[group]:
            self.groups[group].append(name)
        return 0, ""

    def _chpasswd(self, input):
        name, _, password = input.rstrip("\n").partition(":")
        if name not in self.users:
            return 1, f"chpasswd: user '{name}' does not exist"
        self.passwords[name] = password
        return 0, ""

    def execute(self, cmd, input):
        prog = cmd[0]
        if prog in self.returncodes:
            return super().execute(cmd, input)
        if prog == "useradd":
            return self._useradd(cmd[1:])
        if prog == "groupadd":
            return self._groupadd(cmd[1:])
        if prog == "usermod":
            return self._usermod(cmd[1:])
        if prog == "chpasswd":
            return self._chpasswd(input)
        return super().execute(cmd, input)
