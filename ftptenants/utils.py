# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

import os
import shutil
import socket
import subprocess
import sys

import psutil

from .log import logger

__all__ = [
    "CommandRunner",
    "get_host_address",
    "hilite",
    "memoize",
    "strerror",
    "term_supports_colors",
    "which",
]


def memoize(fun):
    """A simple memoize decorator for functions supporting (hashable)
    positional arguments.
    """

    def wrapper(*args, **kwargs):
        key = (args, frozenset(sorted(kwargs.items())))
        try:
            return cache[key]
        except KeyError:
            ret = cache[key] = fun(*args, **kwargs)
            return ret

    cache = {}
    return wrapper


@memoize
def term_supports_colors():
    if os.name == "nt":
        return False
    try:
        import curses  # noqa: PLC0415

        assert sys.stdout.isatty()
        assert sys.stderr.isatty()
        curses.setupterm()
        assert curses.tigetnum("colors") > 0
    except Exception:  # noqa: BLE001
        return False
    else:
        return True


def hilite(s, color=None, bold=False):  # pragma: no cover
    """Return an highlighted version of 'string'."""
    if not term_supports_colors():
        return s
    attr = []
    colors = dict(
        blue="34",
        green="32",
        grey="37",
        lightblue="38;5;66",
        red="91",
        white="97",
        yellow="93",
        orange="38;5;208",
    )
    colors[None] = "29"
    try:
        color = colors[color]
    except KeyError:
        msg = f"invalid color {color!r}; choose amongst {list(colors.keys())}"
        raise ValueError(msg) from None
    attr.append(color)
    if bold:
        attr.append("1")
    return f"\x1b[{';'.join(attr)}m{s}\x1b[0m"


def strerror(err):
    if isinstance(err, subprocess.CalledProcessError):
        out = (err.stderr or err.stdout or "").strip()
        if out:
            return out
        return f"{err.cmd[0]!r} exited with status {err.returncode}"
    if isinstance(err, OSError) and err.errno is not None:
        ret = os.strerror(err.errno)
        if err.filename is not None:
            ret += f": {err.filename!r}"
        return ret
    return str(err)


def which(program):
    """Return the full path of 'program' or None if it can't be found
    in PATH (or in the sbin dirs, which may not be in root's PATH when
    invoked via sudo).
    """
    path = os.environ.get("PATH", os.defpath)
    extra = [x for x in ("/usr/sbin", "/sbin") if x not in path.split(":")]
    return shutil.which(program, path=":".join([path, *extra]))


def get_host_address():
    """Return the first non-loopback IPv4 address of this host, the
    one FTP clients are expected to connect to.
    """
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            if addr.address.startswith("127."):
                continue
            return addr.address
    return "127.0.0.1"


class CommandRunner:
    """Run external (system administration) commands.

    All provisioning components execute commands through an instance of
    this class rather than calling subprocess directly, so that tests
    can substitute a fake one recording the calls.
    """

    def __init__(self, env=None):
        self.env = env

    def run(self, cmd, input=None, check=True):
        """Run 'cmd' (a list) synchronously and return a
        subprocess.CompletedProcess instance. If 'check' is True
        raise subprocess.CalledProcessError on non-zero exit status.
        """
        logger.debug("running %s", " ".join(cmd))
        proc = subprocess.run(
            cmd,
            input=input,
            capture_output=True,
            text=True,
            env=self.env,
            check=False,
        )
        if proc.returncode != 0:
            logger.debug(
                "%r exited with status %s: %s",
                cmd[0],
                proc.returncode,
                proc.stderr.strip(),
            )
            if check:
                raise subprocess.CalledProcessError(
                    proc.returncode, cmd, proc.stdout, proc.stderr
                )
        return proc
