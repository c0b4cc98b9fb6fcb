# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
Administrative commands, deliberately kept apart from the tenant
provisioning command:

$ ftptenants-admin exempt work
$ ftptenants-admin list-exempt
$ ftptenants-admin verify alice docs,photos
"""

import sys

from .__main__ import add_common_opts
from .__main__ import make_parser
from .__main__ import print_error
from .__main__ import settings_from_opts
from .__main__ import setup_logging
from .accounts import UnixAccountRegistry
from .exceptions import ProvisioningError
from .filesystems import TenantDirectory
from .filesystems import parse_subdirs
from .groups import SharedGroup
from .policy import IsolationPolicyStore


def parse_args(args=None):
    usage = "ftptenants-admin [options] COMMAND ..."
    parser = make_parser(usage, main.__doc__)
    add_common_opts(parser)
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p = sub.add_parser(
        "exempt", help="exempt a (non tenant) user from chroot confinement"
    )
    p.add_argument("name")
    sub.add_parser("list-exempt", help="list users exempted from chroot")
    p = sub.add_parser(
        "verify", help="check ownership and mode of a tenant directory"
    )
    p.add_argument("name")
    p.add_argument("subdirs", nargs="?", default="")
    return parser.parse_args(args)


def cmd_exempt(opts, settings):
    registry = UnixAccountRegistry(settings=settings)
    store = IsolationPolicyStore(
        settings.chroot_list_file,
        tenant_base=settings.ftp_base,
        registry=registry,
    )
    if store.exempt(opts.name):
        print(f"{opts.name} exempted from chroot confinement")
    else:
        print(f"{opts.name} was already exempted")
    return 0


def cmd_list_exempt(opts, settings):
    for name in IsolationPolicyStore(settings.chroot_list_file).names():
        print(name)
    return 0


def cmd_verify(opts, settings):
    registry = UnixAccountRegistry(settings=settings)
    account = registry.get(opts.name)
    group = SharedGroup(registry=registry, settings=settings)
    if not group.exists():
        print(f"group {group.name!r} does not exist", file=sys.stderr)
        return 1
    tree = TenantDirectory(settings.ftp_base, mode=settings.dir_mode)
    problems = tree.verify(account, group, parse_subdirs(opts.subdirs))
    store = IsolationPolicyStore(settings.chroot_list_file)
    if store.is_exempt(opts.name):
        problems.append(f"{opts.name!r} is listed in {store.path!r}")
    if account.can_login:
        problems.append(f"{opts.name!r} has login shell {account.shell!r}")
    for problem in problems:
        print(problem, file=sys.stderr)
    if not problems:
        print(f"{opts.name}: OK")
    return 1 if problems else 0


COMMANDS = {
    "exempt": cmd_exempt,
    "list-exempt": cmd_list_exempt,
    "verify": cmd_verify,
}


def main(args=None):
    """Administrative commands for FTP tenants."""
    opts = parse_args(args=args)
    setup_logging(opts)
    settings = settings_from_opts(opts)
    try:
        ret = COMMANDS[opts.command](opts, settings)
    except ProvisioningError as err:
        print_error(err)
        ret = 1
    except ValueError as err:
        print_error(err)
        ret = 2
    if ret:
        sys.exit(ret)
    return ret


if __name__ == "__main__":
    main()
