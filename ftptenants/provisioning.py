# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
The provisioning workflow: create a chroot-confined FTP tenant.

Steps are executed in this order and any failure aborts the remaining
ones:

    validate -> daemon -> shared_group -> account -> credential -> root
    -> subdirs -> summary

The workflow is not transactional. If a step after "account" fails the
account (and possibly some directories) is left behind and must be
removed by hand; the Progress object attached to the raised exception
tells which steps were committed.

Note that there's no "exempt" step: tenants are never added to the
isolation policy store, which is what keeps them confined.
"""

import os

from .accounts import TENANT
from .accounts import UnixAccountRegistry
from .config import Settings
from .daemon import DaemonConfig
from .daemon import VsftpdService
from .exceptions import AccountAlreadyExists
from .exceptions import DirectoryProvisioningError
from .exceptions import IsolationPolicyError
from .exceptions import PrivilegeError
from .exceptions import ProvisioningError
from .exceptions import UsageError
from .filesystems import TenantDirectory
from .filesystems import parse_subdirs
from .groups import SharedGroup
from .log import logger
from .policy import IsolationPolicyStore
from .utils import CommandRunner
from .utils import get_host_address

__all__ = ["STEPS", "Progress", "Provisioner", "ProvisioningResult"]


STEPS = (
    "validate",
    "daemon",
    "shared_group",
    "account",
    "credential",
    "root",
    "subdirs",
    "summary",
)
# steps after which the system has been modified in a way that
# requires manual cleanup
_MUTATING_STEPS = ("account", "credential", "root", "subdirs")


class Progress:
    """The high-water mark of a provisioning run."""

    def __init__(self):
        self.committed = []
        self.failed = None

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} committed={self.committed!r} "
            f"failed={self.failed!r}>"
        )

    @property
    def last(self):
        """The last step which completed successfully, or None."""
        return self.committed[-1] if self.committed else None

    @property
    def needs_cleanup(self):
        return any(x in self.committed for x in _MUTATING_STEPS)


class ProvisioningResult:
    """The outcome of a successful provisioning run."""

    def __init__(
        self,
        account,
        password,
        homedir,
        subdirs,
        group,
        operator,
        operator_bound,
        host,
        port=21,
    ):
        self.account = account
        self.password = password
        self.homedir = homedir
        self.subdirs = subdirs
        self.group = group
        self.operator = operator
        self.operator_bound = operator_bound
        self.host = host
        self.port = port

    def summary(self):
        """Return a human readable report of what was created."""
        name = self.account.name
        sep = "=" * 48
        lines = [
            "",
            sep,
            "FTP user created!",
            sep,
            f"Username: {name}",
            f"Password: {self.password}",
            f"Directory: {self.homedir}",
        ]
        lines.extend(f"  - {x}" for x in self.subdirs)
        lines += [
            f"Shared group: {self.group}",
            f"Operator: {self.operator}",
            "-" * 48,
            "Isolation:",
            f"  - user {name!r} is confined to its own directory and "
            "can't access other users' directories.",
        ]
        if self.operator_bound:
            lines.append(
                f"  - user {self.operator!r} has read/write access to "
                "all FTP user directories."
            )
        else:
            lines.append(
                f"  - user {self.operator!r} does not exist yet: nobody "
                "else can access this directory."
            )
        lines += [
            "-" * 48,
            "Connection:",
            f"  Host: {self.host}",
            f"  Port: {self.port}",
            "  Protocol: FTP (passive mode recommended)",
            sep,
            "Keep the password above in a safe place.",
        ]
        return "\n".join(lines)


class Provisioner:
    """Compose account registry, shared group, tenant directories and
    daemon setup into a single workflow.

    All components can be passed explicitly (tests do so); by default
    they're built from 'settings' and share the same 'runner'.
    If 'setup_daemon' is False the daemon step is skipped (useful when
    provisioning several tenants in a row).
    """

    def __init__(
        self,
        settings=None,
        runner=None,
        registry=None,
        group=None,
        tree=None,
        daemon=None,
        policy=None,
        setup_daemon=True,
    ):
        self.settings = settings or Settings()
        self.runner = runner or CommandRunner()
        self.registry = registry or UnixAccountRegistry(
            runner=self.runner, settings=self.settings
        )
        self.group = group or SharedGroup(
            runner=self.runner, registry=self.registry, settings=self.settings
        )
        self.tree = tree or TenantDirectory(
            self.settings.ftp_base, mode=self.settings.dir_mode
        )
        # read-only: only used to make sure a new tenant isn't listed
        self.policy = policy or IsolationPolicyStore(
            self.settings.chroot_list_file
        )
        self.daemon = daemon or VsftpdService(
            settings=self.settings, runner=self.runner, policy=self.policy
        )
        self.setup_daemon = setup_daemon

    # --- steps

    def validate(self, username, password, subdirs=()):
        """Check preconditions. Nothing is modified if this fails."""
        if not username or not password:
            raise UsageError("username and password are required")
        if "\n" in password:
            raise UsageError("password can't contain newlines")
        if username in (".", "..") or "/" in username:
            raise UsageError(f"invalid username {username!r}")
        if username.startswith("-") or any(c.isspace() for c in username):
            raise UsageError(f"invalid username {username!r}")
        try:
            self.tree.check_names(subdirs)
        except DirectoryProvisioningError as err:
            raise UsageError(str(err)) from err
        if os.geteuid() != 0:
            raise PrivilegeError("this must be run as root")
        self.registry.check_credential_tool()
        if self.registry.exists(username):
            raise AccountAlreadyExists(f"user {username!r} already exists")
        if self.policy.is_exempt(username):
            raise IsolationPolicyError(
                f"user {username!r} is listed in {self.policy.path!r} and"
                " would not be confined; remove it first"
            )

    def _daemon(self):
        if not self.setup_daemon:
            logger.info("skipping FTP daemon setup")
            return
        self.daemon.setup(DaemonConfig(self.settings))

    def _shared_group(self):
        # return whether the operator could be added to the group
        self.group.ensure()
        return self.group.add_operator_if_present(self.settings.operator)

    def _account(self, username):
        # no credential yet, see _credential()
        return self.registry.create(
            username,
            None,
            self.tree.path_for(username),
            role=TENANT,
            groups=[self.group.name],
        )

    def _credential(self, account, password):
        self.registry.set_password(account.name, password)
        self.group.bind_tenant(account)

    # --- main entry point

    def provision(self, username, password, subdirs=None):
        """Create tenant 'username' with 'password' as its credential.
        'subdirs' is either a comma-separated string or a list of
        subdirectory names to create in the tenant root.

        Return a ProvisioningResult. On failure the ProvisioningError
        raised has a 'progress' attribute (a Progress instance).
        """
        if isinstance(subdirs, str) or subdirs is None:
            subdirs = parse_subdirs(subdirs)
        else:
            subdirs = [x.strip() for x in subdirs if x.strip()]
        progress = Progress()
        group = self.group

        def step(name, fun, *args):
            progress.failed = name
            ret = fun(*args)
            progress.committed.append(name)
            progress.failed = None
            logger.debug("step %r completed", name)
            return ret

        try:
            step("validate", self.validate, username, password, subdirs)
            step("daemon", self._daemon)
            operator_bound = step("shared_group", self._shared_group)
            account = step("account", self._account, username)
            step("credential", self._credential, account, password)
            homedir = step("root", self.tree.provision_root, account, group)
            paths = step(
                "subdirs", self.tree.provision_subdirs, account, group, subdirs
            )
            result = step(
                "summary",
                ProvisioningResult,
                account,
                password,
                homedir,
                paths,
                group.name,
                self.settings.operator,
                operator_bound,
                get_host_address(),
                self.settings.control_port,
            )
        except ProvisioningError as err:
            err.progress = progress
            if progress.needs_cleanup:
                logger.error(
                    "provisioning of %r failed at step %r; committed steps: "
                    "%s (no rollback performed)",
                    username,
                    progress.failed,
                    ", ".join(progress.committed),
                )
            raise
        logger.info("user %r provisioned", username)
        return result
