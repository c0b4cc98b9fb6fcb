# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
The shared-access group.

There's exactly one such group per deployment. Every tenant directory
is group-owned by it with mode 0770, hence any member of the group
(the operator) can read and write into all tenants. Membership alone
grants nothing: what a tenant can see is decided by the ownership of
each directory, and tenants are chroot-confined anyway.
"""

import grp
import subprocess

from .accounts import UnixAccountRegistry
from .config import Settings
from .exceptions import AccountCreationError
from .log import logger
from .utils import CommandRunner
from .utils import strerror

__all__ = ["SharedGroup"]


class SharedGroup:
    """The singleton group mediating cross-tenant access."""

    def __init__(self, name=None, runner=None, registry=None, settings=None):
        self.settings = settings or Settings()
        self.name = name or self.settings.shared_group
        self.runner = runner or CommandRunner()
        self.registry = registry or UnixAccountRegistry(
            runner=self.runner, settings=self.settings
        )

    def __repr__(self):
        return f"<{self.__class__.__name__} name={self.name!r}>"

    def _getgrnam(self):
        try:
            return grp.getgrnam(self.name)
        except KeyError:
            return None

    def _run(self, cmd):
        try:
            self.runner.run(cmd)
        except (OSError, subprocess.CalledProcessError) as err:
            raise AccountCreationError(strerror(err)) from err

    def exists(self):
        return self._getgrnam() is not None

    @property
    def gid(self):
        gr = self._getgrnam()
        if gr is None:
            raise KeyError(f"group {self.name!r} does not exist")
        return gr.gr_gid

    @property
    def members(self):
        """The set of account names which are (supplementary) members
        of the group.
        """
        gr = self._getgrnam()
        return set(gr.gr_mem) if gr is not None else set()

    def ensure(self):
        """Create the group unless it already exists. Calling this
        more than once is a no-op. Return self.
        """
        if not self.exists():
            self._run(["groupadd", self.name])
            logger.info("created shared group %r", self.name)
        else:
            logger.debug("shared group %r already exists", self.name)
        return self

    def add_operator_if_present(self, operator=None):
        """Add the operator account to the group. If no such account
        exists yet log a warning and return False; this is not an error
        as the operator may be created later on.
        """
        operator = operator or self.settings.operator
        if not self.registry.exists(operator):
            logger.warning(
                "user %r does not exist; it won't be able to access "
                "tenant directories until it's added to group %r",
                operator,
                self.name,
            )
            return False
        if operator not in self.members:
            self._run(["usermod", "-aG", self.name, operator])
            logger.info(
                "added user %r to shared group %r", operator, self.name
            )
        return True

    def bind_tenant(self, account):
        """Make sure 'account' is a member of the group.

        Membership is normally granted when the account is created
        (see UnixAccountRegistry.create(groups=...)) in which case this
        is a no-op returning False. Otherwise fix it and return True.
        """
        if self.name in account.groups or account.name in self.members:
            return False
        self._run(["usermod", "-aG", self.name, account.name])
        logger.info(
            "added user %r to shared group %r", account.name, self.name
        )
        return True
