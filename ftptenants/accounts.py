# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
Identity registry: query and create the OS accounts FTP tenants log
in with.

Accounts are real UNIX users (the FTP daemon authenticates them via
PAM) so the registry is nothing but a thin layer around the pwd / grp
databases (for reading) and useradd / chpasswd (for writing).
"""

import grp
import pwd
import subprocess

from .config import Settings
from .exceptions import AccountAlreadyExists
from .exceptions import AccountCreationError
from .exceptions import AccountNotFound
from .exceptions import DependencyMissing
from .log import logger
from .utils import CommandRunner
from .utils import strerror
from .utils import which

__all__ = ["OPERATOR", "TENANT", "Account", "UnixAccountRegistry"]


TENANT = "tenant"
OPERATOR = "operator"
_ROLES = (TENANT, OPERATOR)


class Account:
    """An OS account as seen by ftptenants."""

    __slots__ = ("gid", "groups", "homedir", "name", "role", "shell", "uid")

    def __init__(
        self, name, uid, gid, homedir, shell, role=TENANT, groups=()
    ):
        self.name = name
        self.uid = uid
        self.gid = gid
        self.homedir = homedir
        self.shell = shell
        self.role = role
        self.groups = tuple(groups)

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} name={self.name!r} "
            f"role={self.role!r} home={self.homedir!r}>"
        )

    @property
    def can_login(self):
        """Whether the account has an interactive shell."""
        return not self.shell.endswith(("/nologin", "/false"))


class UnixAccountRegistry:
    """Registry of system users.

    - (instance) runner: the CommandRunner used to execute useradd and
      chpasswd.
    - (instance) settings: a Settings instance.
    """

    credential_tool = "chpasswd"

    def __init__(self, runner=None, settings=None):
        self.runner = runner or CommandRunner()
        self.settings = settings or Settings()

    def exists(self, name):
        """Whether an OS account named 'name' is registered."""
        try:
            pwd.getpwnam(name)
        except KeyError:
            return False
        return True

    def get(self, name, role=TENANT):
        """Return an Account instance for 'name'. Raise AccountNotFound
        if the user doesn't exist.
        """
        try:
            pw = pwd.getpwnam(name)
        except KeyError:
            raise AccountNotFound(f"no such user {name!r}") from None
        groups = [g.gr_name for g in grp.getgrall() if name in g.gr_mem]
        return Account(
            pw.pw_name,
            pw.pw_uid,
            pw.pw_gid,
            pw.pw_dir,
            pw.pw_shell,
            role=role,
            groups=groups,
        )

    def check_credential_tool(self):
        """Make sure the utility used to set passwords is installed."""
        if which(self.credential_tool) is None:
            raise DependencyMissing(
                f"{self.credential_tool!r} command not found; install it"
                " first"
            )

    def create(self, name, password, homedir, role=TENANT, groups=()):
        """Create a new account with 'homedir' as home directory and
        'password' (as supplied by the caller) as its credential.
        If 'password' is None the credential is left unset, see
        set_password(). Tenant accounts get no login shell. 'groups'
        is a list of supplementary groups the account is made a member
        of.

        Return an Account instance. Any failure coming from the OS is
        raised as AccountCreationError and is not retried.
        """
        if role not in _ROLES:
            raise ValueError(f"invalid role {role!r}")
        if self.exists(name):
            raise AccountAlreadyExists(f"user {name!r} already exists")

        cmd = ["useradd", "-m", "-d", homedir]
        if role == TENANT:
            cmd += ["-s", self.settings.nologin_shell]
        if groups:
            cmd += ["-G", ",".join(groups)]
        cmd.append(name)
        try:
            self.runner.run(cmd)
        except (OSError, subprocess.CalledProcessError) as err:
            raise AccountCreationError(strerror(err)) from err
        logger.info("created system user %r (home %r)", name, homedir)

        if password is not None:
            self.set_password(name, password)
        return self.get(name, role=role)

    def set_password(self, name, password):
        """Set the credential of an existing account."""
        try:
            self.runner.run(
                [self.credential_tool], input=f"{name}:{password}\n"
            )
        except (OSError, subprocess.CalledProcessError) as err:
            raise AccountCreationError(strerror(err)) from err
        logger.info("password set for user %r", name)
