# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
Create a chroot-confined FTP user from the command line:

$ sudo python3 -m ftptenants alice Secret123 docs,photos
"""

import argparse
import logging
import sys

from . import __ver__
from .config import Settings
from .exceptions import ProvisioningError
from .exceptions import UsageError
from .log import config_logging
from .log import is_logging_configured
from .provisioning import Provisioner
from .utils import hilite
from .utils import term_supports_colors


class ColorHelpFormatter(argparse.HelpFormatter):
    def start_section(self, heading):  # titles / groups
        heading = f"{hilite(heading.capitalize(), 'orange')}"
        super().start_section(heading)

    def _format_action_invocation(self, action):
        # colorize the flag part (e.g. "-b, --base")
        if not action.option_strings:
            default = self._metavar_formatter(action, action.dest)(1)[0]
            return f"{hilite(default, 'white')}"

        parts = []
        for option in action.option_strings:
            parts.append(f"{hilite(option, 'lightblue')}")

        if action.nargs != 0:
            metavar = self._format_args(
                action, self._get_default_metavar_for_optional(action)
            )
            parts[-1] += " " + f"{hilite(metavar, 'green')}"

        return ", ".join(parts)


def make_parser(usage, description):
    return argparse.ArgumentParser(
        usage=usage,
        description=description,
        formatter_class=(
            ColorHelpFormatter
            if term_supports_colors()
            else argparse.HelpFormatter
        ),
    )


def add_common_opts(parser):
    group = parser.add_argument_group("Deployment options")
    group.add_argument(
        "-b",
        "--base",
        default=Settings.ftp_base,
        metavar="PATH",
        help=(
            "directory containing tenant homes (default:"
            f" {Settings.ftp_base})"
        ),
    )
    group.add_argument(
        "-g",
        "--group",
        default=Settings.shared_group,
        metavar="NAME",
        help=f"the shared group (default: {Settings.shared_group})",
    )
    group.add_argument(
        "-o",
        "--operator",
        default=Settings.operator,
        metavar="USER",
        help=(
            "the user having access to all tenant directories (default:"
            f" {Settings.operator})"
        ),
    )
    group.add_argument(
        "--chroot-list",
        default=Settings.chroot_list_file,
        metavar="PATH",
        help=(
            "the list of users exempted from chroot confinement (default:"
            f" {Settings.chroot_list_file})"
        ),
    )
    group.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="enable DEBUG logging level",
    )
    group.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"ftptenants {__ver__}",
    )


def parse_args(args=None):
    usage = "ftptenants-add [options] USERNAME PASSWORD [SUBDIRS]"
    parser = make_parser(usage, main.__doc__)
    parser.add_argument("username", help="the new FTP user name")
    parser.add_argument("password", help="the new FTP user password")
    parser.add_argument(
        "subdirs",
        nargs="?",
        default="",
        help='comma-separated subdirectories to create (e.g. "docs,photos")',
    )
    add_common_opts(parser)

    group_daemon = parser.add_argument_group("Daemon options")
    group_daemon.add_argument(
        "--no-daemon-setup",
        action="store_true",
        default=False,
        help="don't install / configure / restart vsftpd",
    )
    group_daemon.add_argument(
        "--strict-firewall",
        action="store_true",
        default=False,
        help="abort if a firewall rule can't be added (default: warn)",
    )
    return parser.parse_args(args)


def settings_from_opts(opts, **kwargs):
    return Settings(
        ftp_base=opts.base,
        shared_group=opts.group,
        operator=opts.operator,
        chroot_list_file=opts.chroot_list,
        **kwargs,
    )


def setup_logging(opts):
    if opts.debug:
        config_logging(level=logging.DEBUG)
    elif not is_logging_configured():
        config_logging()


def print_error(err):
    print(hilite(str(err), "red"), file=sys.stderr)
    progress = getattr(err, "progress", None)
    if progress is not None and progress.needs_cleanup:
        print(
            f"steps completed before failure: {', '.join(progress.committed)}"
            "; nothing was rolled back, clean up manually",
            file=sys.stderr,
        )


def main(args=None):
    """Create a chroot-confined FTP user whose home directory is also
    accessible by the operator user.
    """
    opts = parse_args(args=args)
    setup_logging(opts)
    settings = settings_from_opts(opts, strict_firewall=opts.strict_firewall)
    provisioner = Provisioner(
        settings=settings, setup_daemon=not opts.no_daemon_setup
    )
    try:
        result = provisioner.provision(
            opts.username, opts.password, opts.subdirs
        )
    except UsageError as err:
        print_error(err)
        sys.exit(2)
    except ProvisioningError as err:
        print_error(err)
        sys.exit(1)
    print(result.summary())
    return result


if __name__ == "__main__":
    main()
