# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""Deployment-wide settings.

Defaults are class attributes; command line options override them on
a per-instance basis:

>>> from ftptenants.config import Settings
>>> settings = Settings(ftp_base="/srv/ftp", operator="backup")
"""

import os

__all__ = ["Settings"]


class Settings:
    """Holds the knobs shared by all provisioning components."""

    # root under which every tenant directory is created
    ftp_base = "/home/ftp"
    # the singleton group mediating operator access
    shared_group = "ftp_shared_workgroup"
    # the account allowed to read / write all tenant directories
    operator = "work"
    # shell given to tenant accounts (no interactive login)
    nologin_shell = "/usr/sbin/nologin"
    # tenant directories mode: rwx for owner and group, nothing else
    dir_mode = 0o770

    vsftpd_conf = "/etc/vsftpd.conf"
    chroot_list_file = "/etc/vsftpd.chroot_list"
    pam_file = "/etc/pam.d/vsftpd"
    state_file = "/var/lib/ftptenants/state.json"

    daemon_package = "vsftpd"
    daemon_service = "vsftpd"
    control_port = 21
    data_port = 20
    passive_ports = (40000, 50000)
    # whether failing to open a firewall rule aborts the provisioning
    strict_firewall = False

    def __init__(self, **kwargs):
        for name, value in kwargs.items():
            if value is None:
                continue
            if not hasattr(type(self), name) or name.startswith("_"):
                raise TypeError(f"unknown setting {name!r}")
            setattr(self, name, value)
        self.ftp_base = os.path.abspath(self.ftp_base)
        lo, hi = self.passive_ports
        if not (1 <= lo < hi <= 65535):
            raise ValueError(f"invalid passive port range {lo}-{hi}")

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} ftp_base={self.ftp_base!r} "
            f"shared_group={self.shared_group!r} "
            f"operator={self.operator!r}>"
        )
