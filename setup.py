# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""ftptenants installer.

$ python3 -m pip install .
"""

import ast
import os
import sys
import textwrap

# Test deps, installable via `pip install .[test]`.
TEST_DEPS = [
    "psutil",
    "pytest",
    "pytest-instafail",
    "pytest-xdist",
    "setuptools",
]

# Development deps, installable via `pip install .[dev]`.
DEV_DEPS = [
    "black",
    "check-manifest",
    "coverage",
    "pylint",
    "pytest-cov",
    "pytest-xdist",
    "rstcheck",
    "ruff",
    "toml-sort",
    "twine",
]


def get_version():
    INIT = os.path.abspath(
        os.path.join(os.path.dirname(__file__), "ftptenants", "__init__.py")
    )
    with open(INIT) as f:
        for line in f:
            if line.startswith("__ver__"):
                ret = ast.literal_eval(line.strip().split(" = ")[1])
                assert ret.count(".") == 2, ret
                for num in ret.split("."):
                    assert num.isdigit(), ret
                return ret
        raise ValueError("couldn't find version string")


def term_supports_colors():
    try:
        import curses  # noqa: PLC0415

        assert sys.stderr.isatty()
        curses.setupterm()
        assert curses.tigetnum("colors") > 0
    except Exception:  # noqa: BLE001
        return False
    else:
        return True


def hilite(s, ok=True, bold=False):
    """Return an highlighted version of 's'."""
    if not term_supports_colors():
        return s
    else:
        attr = []
        if ok is None:  # no color
            pass
        elif ok:
            attr.append("32")  # green
        else:
            attr.append("31")  # red
        if bold:
            attr.append("1")
        return f"\x1b[{';'.join(attr)}m{s}\x1b[0m"


with open("README.rst") as f:
    long_description = f.read()


def main():
    from setuptools import setup  # noqa: PLC0415

    kwargs = dict(
        name="ftptenants",
        version=get_version(),
        description="Provision chroot-confined FTP users on a vsftpd host",
        long_description=long_description,
        long_description_content_type="text/x-rst",
        license="MIT",
        platforms="POSIX",
        packages=["ftptenants", "ftptenants.test"],
        entry_points={
            "console_scripts": [
                "ftptenants-add = ftptenants.__main__:main",
                "ftptenants-admin = ftptenants.admin:main",
            ],
        },
        # fmt: off
        keywords=["ftp", "vsftpd", "chroot", "tenant", "provisioning",
                  "useradd", "sysadmin"],
        # fmt: on
        install_requires=["psutil"],
        extras_require={
            "dev": DEV_DEPS,
            "test": TEST_DEPS,
        },
        python_requires=">=3.8",
        zip_safe=False,
        classifiers=[
            "Development Status :: 4 - Beta",
            "Environment :: Console",
            "Intended Audience :: System Administrators",
            "Operating System :: POSIX :: Linux",
            "Topic :: Internet :: File Transfer Protocol (FTP)",
            "Topic :: System :: Systems Administration",
            "Programming Language :: Python",
            "Programming Language :: Python :: 3",
        ],
    )
    setup(**kwargs)

    if os.name != "posix":
        msg = textwrap.dedent("""
            ftptenants manages UNIX users and permissions; it won't work
            on this platform.""")
        print(hilite(msg, ok=False), file=sys.stderr)


if __name__ == "__main__":
    main()
