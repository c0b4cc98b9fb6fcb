# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
The isolation policy store, a.k.a. vsftpd "chroot_list_file".

Since the daemon runs with chroot_local_user=YES, every local user is
confined to its home directory, except the ones listed in this file.
Tenants must never appear in here. Adding a name is an explicit
administrative act (see "ftptenants-admin exempt"): the provisioning
workflow only makes sure the file exists (vsftpd refuses logins
otherwise) and never writes to it.
"""

import os

from .exceptions import AccountNotFound
from .exceptions import IsolationPolicyError
from .log import logger
from .utils import strerror

__all__ = ["IsolationPolicyStore"]


class IsolationPolicyStore:
    """A newline-delimited list of account names exempted from chroot
    confinement.

    - (str) path: the file path (e.g. "/etc/vsftpd.chroot_list").
    - (str) tenant_base: the directory containing tenant homes; users
      whose home lives in there are refused by exempt().
    - (instance) registry: a UnixAccountRegistry used to look up
      homes; if None tenants are not detected.
    """

    def __init__(self, path, tenant_base=None, registry=None):
        self.path = path
        self.tenant_base = tenant_base
        self.registry = registry

    def __repr__(self):
        return f"<{self.__class__.__name__} path={self.path!r}>"

    def ensure_exists(self):
        """Create an empty store unless it already exists."""
        if os.path.isfile(self.path):
            return
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a"):
                pass
        except OSError as err:
            raise IsolationPolicyError(strerror(err)) from err
        logger.info("created isolation policy store %r", self.path)

    def names(self):
        """Return the list of exempted account names."""
        try:
            with open(self.path) as f:
                return [line.strip() for line in f if line.strip()]
        except FileNotFoundError:
            return []
        except OSError as err:
            raise IsolationPolicyError(strerror(err)) from err

    def is_exempt(self, name):
        return name in self.names()

    def _is_tenant(self, name):
        if self.registry is None or self.tenant_base is None:
            return False
        try:
            home = self.registry.get(name).homedir
        except AccountNotFound:
            logger.warning("user %r does not exist (yet)", name)
            return False
        base = os.path.realpath(self.tenant_base)
        home = os.path.realpath(home)
        return os.path.commonpath([base, home]) == base

    def exempt(self, name):
        """Append 'name' to the store, so that it's no longer chroot
        confined. No-op if already there. Return True if the name was
        added.

        Raise IsolationPolicyError if 'name' is a tenant.
        """
        if not name or name != name.strip() or "\n" in name:
            raise ValueError(f"invalid account name {name!r}")
        if self._is_tenant(name):
            raise IsolationPolicyError(
                f"user {name!r} is a tenant and must stay confined"
            )
        self.ensure_exists()
        if self.is_exempt(name):
            logger.debug("user %r is already exempted", name)
            return False
        try:
            with open(self.path, "r+") as f:
                data = f.read()
                if data and not data.endswith("\n"):
                    f.write("\n")
                f.write(name + "\n")
        except OSError as err:
            raise IsolationPolicyError(strerror(err)) from err
        logger.warning("user %r is now exempted from chroot confinement", name)
        return True
