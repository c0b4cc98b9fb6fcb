# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

__all__ = [
    "AccountAlreadyExists",
    "AccountCreationError",
    "AccountNotFound",
    "DaemonConfigurationError",
    "DependencyMissing",
    "DirectoryProvisioningError",
    "IsolationPolicyError",
    "PrivilegeError",
    "ProvisioningError",
    "UsageError",
]


class ProvisioningError(Exception):
    """Base class for all provisioning exceptions.

    The orchestrator sets the 'progress' attribute before re-raising,
    so that whoever catches the exception knows which steps were
    already committed (there's no rollback).
    """

    progress = None


class UsageError(ProvisioningError):
    """Raised on bad or missing arguments, before any mutation."""


class PrivilegeError(ProvisioningError):
    """Raised when not running with administrative privileges."""


class DependencyMissing(ProvisioningError):
    """Raised when a required external utility is not installed."""


class AccountAlreadyExists(ProvisioningError):
    """Raised when trying to create an account which is already
    registered on the system.
    """


class AccountNotFound(ProvisioningError):
    """Raised when looking up an account which does not exist."""


class AccountCreationError(ProvisioningError):
    """Raised when the OS refuses to create an account. The message
    is the one emitted by the underlying tool, unmodified.
    """


class DirectoryProvisioningError(ProvisioningError):
    """Raised when creating a tenant directory or changing its
    ownership / mode fails.
    """


class DaemonConfigurationError(ProvisioningError):
    """Raised when installing, configuring or restarting the FTP
    daemon fails.
    """


class IsolationPolicyError(ProvisioningError):
    """Raised when an operation would break tenant confinement."""
