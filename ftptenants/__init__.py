# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
ftptenants: provision chroot-confined FTP users on a vsftpd host.

Each tenant is a system user with no login shell whose home directory
("<base>/<name>") is owned by the user, group-owned by a shared group
and has 0770 permissions. vsftpd confines every local user to its
home directory, so tenants can't see each other, while the operator
user (a member of the shared group, exempted from confinement) can
read and write into all of them. A hierarchy of classes outlined below
implements this:

    [ftptenants.accounts.UnixAccountRegistry]
      queries and creates system users.

    [ftptenants.groups.SharedGroup]
      the group mediating operator access to tenant directories.

    [ftptenants.filesystems.TenantDirectory]
      creates tenant directories and enforces their ownership / mode.

    [ftptenants.policy.IsolationPolicyStore]
      the list of users exempted from chroot confinement.

    [ftptenants.daemon.VsftpdService]
      installs, configures and restarts vsftpd.

    [ftptenants.provisioning.Provisioner]
      puts all of the above together.

Usage example:

>>> from ftptenants.config import Settings
>>> from ftptenants.provisioning import Provisioner
>>>
>>> provisioner = Provisioner(Settings(ftp_base="/home/ftp"))
>>> result = provisioner.provision("alice", "Secret123", "docs,photos")
[I 25-03-02 10:55:42] created shared group 'ftp_shared_workgroup'
[I 25-03-02 10:55:42] created system user 'alice' (home '/home/ftp/alice')
[I 25-03-02 10:55:42] set '/home/ftp/alice' owner=alice group=ftp_shared_workgroup mode=770
[I 25-03-02 10:55:42] created subdirectory '/home/ftp/alice/docs'
[I 25-03-02 10:55:42] created subdirectory '/home/ftp/alice/photos'
>>> print(result.summary())
"""  # noqa: E501

__ver__ = "1.0.0"
