# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

"""
The FTP daemon (vsftpd) collaborator.

The provisioning core never touches the live daemon state directly:
it produces a DaemonConfig value and hands it to VsftpdService, which
takes care of installing the package, writing the configuration file,
opening the firewall and restarting the service.
"""

import json
import os
import shutil
import subprocess

from .config import Settings
from .exceptions import DaemonConfigurationError
from .log import logger
from .utils import CommandRunner
from .utils import strerror

__all__ = ["DaemonConfig", "DaemonState", "VsftpdService"]


PAM_TEMPLATE = """\
# Standard behaviour for ftpd(8).
auth	required	pam_listfile.so item=user sense=deny file=/etc/ftpusers onerr=succeed

# Note: vsftpd handles anonymous logins on its own. Do not enable pam_ftp.so.

# Standard pam includes
@include common-account
@include common-session
@include common-auth
# tenants have a nologin shell: use pam_nologin.so, not pam_shells.so
auth	required	pam_nologin.so
"""  # noqa: E501


class DaemonConfig:
    """The vsftpd configuration, as a value.

    Options are stored in an ordered list of (name, value) pairs;
    booleans are rendered as YES / NO.
    """

    def __init__(self, settings=None, **overrides):
        settings = settings or Settings()
        lo, hi = settings.passive_ports
        self.options = [
            # run standalone
            ("listen", True),
            ("listen_ipv6", False),
            # login
            ("anonymous_enable", False),
            ("local_enable", True),
            ("write_enable", True),
            ("local_umask", "022"),
            ("dirmessage_enable", True),
            ("xferlog_enable", True),
            ("xferlog_std_format", True),
            ("connect_from_port_20", True),
            # confinement
            ("chroot_local_user", True),
            ("allow_writeable_chroot", True),
            ("chroot_list_enable", True),
            ("chroot_list_file", settings.chroot_list_file),
            # passive mode
            ("pasv_enable", True),
            ("pasv_min_port", lo),
            ("pasv_max_port", hi),
            ("userlist_enable", False),
            ("pam_service_name", "vsftpd"),
            ("tcp_wrappers", True),
        ]
        for name, value in overrides.items():
            self[name] = value

    def __getitem__(self, name):
        for key, value in self.options:
            if key == name:
                return value
        raise KeyError(name)

    def __setitem__(self, name, value):
        for i, (key, _) in enumerate(self.options):
            if key == name:
                self.options[i] = (name, value)
                return
        self.options.append((name, value))

    def __eq__(self, other):
        if not isinstance(other, DaemonConfig):
            return NotImplemented
        return self.options == other.options

    __hash__ = None

    def render(self):
        """Return the configuration file content."""
        lines = ["# Generated by ftptenants; manual changes will be lost."]
        for name, value in self.options:
            if isinstance(value, bool):
                value = "YES" if value else "NO"
            lines.append(f"{name}={value}")
        return "\n".join(lines) + "\n"


class DaemonState:
    """Explicit record of what has already been done to the daemon
    configuration across runs (currently only whether the original
    configuration file was captured). If 'path' is None the state is
    kept in memory only.
    """

    def __init__(self, path=None, original_captured=False):
        self.path = path
        self.original_captured = original_captured

    @classmethod
    def load(cls, path):
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except (OSError, ValueError) as err:
            raise DaemonConfigurationError(
                f"can't read state file {path!r}: {strerror(err)}"
            ) from err
        if not isinstance(data, dict):
            raise DaemonConfigurationError(
                f"can't read state file {path!r}: not a JSON object"
            )
        return cls(path, bool(data.get("original_captured", False)))

    def save(self):
        if self.path is None:
            return
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(self.path, "w") as f:
                json.dump({"original_captured": self.original_captured}, f)
        except OSError as err:
            raise DaemonConfigurationError(strerror(err)) from err

    def mark_captured(self):
        self.original_captured = True
        self.save()


class VsftpdService:
    """Install, configure and restart vsftpd.

    - (instance) settings: a Settings instance.
    - (instance) runner: the CommandRunner executing apt-get, ufw and
      systemctl.
    - (instance) state: a DaemonState; loaded from settings.state_file
      if None.
    - (instance) policy: the IsolationPolicyStore referenced by the
      configuration; it's created if missing, never modified.
    """

    def __init__(self, settings=None, runner=None, state=None, policy=None):
        self.settings = settings or Settings()
        self.runner = runner or CommandRunner()
        self._state = state
        self.policy = policy

    @property
    def state(self):
        if self._state is None:
            self._state = DaemonState.load(self.settings.state_file)
        return self._state

    def _run(self, cmd, **kwargs):
        try:
            return self.runner.run(cmd, **kwargs)
        except (OSError, subprocess.CalledProcessError) as err:
            raise DaemonConfigurationError(strerror(err)) from err

    def is_installed(self):
        proc = self._run(
            ["dpkg", "-s", self.settings.daemon_package], check=False
        )
        return proc.returncode == 0

    def ensure_installed(self):
        if self.is_installed():
            logger.debug(
                "%s is already installed", self.settings.daemon_package
            )
            return False
        logger.info("installing %s", self.settings.daemon_package)
        self._run(["apt-get", "update"])
        self._run(["apt-get", "install", "-y", self.settings.daemon_package])
        return True

    def apply_config(self, config):
        """Overwrite the daemon configuration file with 'config'. The
        first time this is called the pre-existing file is backed up
        as "<file>.original".
        """
        path = self.settings.vsftpd_conf
        try:
            backup = path + ".original"
            if not self.state.original_captured:
                if os.path.exists(backup):
                    logger.info("keeping existing backup %s", backup)
                elif os.path.exists(path):
                    shutil.copy2(path, backup)
                    logger.info("original config saved as %s", backup)
                self.state.mark_captured()
            with open(path, "w") as f:
                f.write(config.render())
        except OSError as err:
            raise DaemonConfigurationError(strerror(err)) from err
        logger.info("wrote %r", path)

    def write_pam(self):
        try:
            with open(self.settings.pam_file, "w") as f:
                f.write(PAM_TEMPLATE)
        except OSError as err:
            raise DaemonConfigurationError(strerror(err)) from err
        logger.info("wrote %r", self.settings.pam_file)

    def open_firewall(self):
        """Allow FTP traffic through ufw. Failures are logged and
        ignored unless settings.strict_firewall is True. Return the
        number of rules which could not be applied.
        """
        lo, hi = self.settings.passive_ports
        rules = [
            f"{self.settings.data_port}/tcp",
            f"{self.settings.control_port}/tcp",
            f"{lo}:{hi}/tcp",
        ]
        failed = 0
        for rule in rules:
            try:
                proc = self.runner.run(["ufw", "allow", rule], check=False)
            except OSError as err:
                msg = strerror(err)
            else:
                if proc.returncode == 0:
                    continue
                msg = proc.stderr.strip() or f"exit status {proc.returncode}"
            failed += 1
            if self.settings.strict_firewall:
                raise DaemonConfigurationError(
                    f"can't open firewall rule {rule!r}: {msg}"
                )
            logger.warning("can't open firewall rule %r: %s", rule, msg)
        return failed

    def restart(self):
        self._run(["systemctl", "restart", self.settings.daemon_service])
        logger.info("%s restarted", self.settings.daemon_service)

    def setup(self, config=None):
        """Bring the daemon in the desired state: installed, configured
        and running with 'config' (default: DaemonConfig(settings)).
        """
        if config is None:
            config = DaemonConfig(self.settings)
        self.ensure_installed()
        try:
            os.makedirs(self.settings.ftp_base, exist_ok=True)
        except OSError as err:
            raise DaemonConfigurationError(strerror(err)) from err
        self.apply_config(config)
        self.write_pam()
        if self.policy is not None:
            self.policy.ensure_exists()
        self.open_firewall()
        self.restart()
