# Copyright (C) 2007 Giampaolo Rodola' <g.rodola@gmail.com>.
# Use of this source code is governed by MIT license that can be
# found in the LICENSE file.

import os
import pwd
import random
import string
from unittest import mock

import pytest

from ftptenants.accounts import OPERATOR
from ftptenants.accounts import TENANT
from ftptenants.accounts import UnixAccountRegistry
from ftptenants.exceptions import AccountAlreadyExists
from ftptenants.exceptions import AccountCreationError
from ftptenants.exceptions import AccountNotFound
from ftptenants.exceptions import DependencyMissing

from . import GID
from . import GROUP
from . import PASSWD
from . import UID
from . import USER
from . import FakeSystem
from . import FtptenantsTestCase
from . import make_account


class TestAccount(FtptenantsTestCase):
    def test_can_login(self):
        assert not make_account().can_login
        assert not make_account(shell="/bin/false").can_login
        assert make_account(shell="/bin/bash").can_login

    def test_repr(self):
        assert repr(make_account()).startswith("<Account name='alice'")


class TestUnixAccountRegistry(FtptenantsTestCase):
    def setUp(self):
        super().setUp()
        self.system = FakeSystem(users=["root"], groups=[GROUP])
        patcher = self.system.patch()
        patcher.__enter__()
        self.addCleanup(patcher.__exit__, None, None, None)
        self.registry = UnixAccountRegistry(runner=self.system)
        self.home = os.path.join(self.get_testdir(), USER)

    def test_exists(self):
        assert self.registry.exists("root")
        assert not self.registry.exists(USER)

    def test_get(self):
        account = self.registry.get("root")
        assert account.name == "root"
        assert account.uid == UID
        assert account.gid == GID
        assert account.homedir == "/home/root"
        assert account.groups == ()
        with pytest.raises(AccountNotFound):
            self.registry.get(USER)

    def test_create(self):
        account = self.registry.create(
            USER, PASSWD, self.home, groups=[GROUP]
        )
        assert account.name == USER
        assert account.role == TENANT
        assert account.homedir == self.home
        assert account.groups == (GROUP,)
        assert not account.can_login
        assert self.registry.exists(USER)
        assert self.system.commands[0] == [
            "useradd",
            "-m",
            "-d",
            self.home,
            "-s",
            "/usr/sbin/nologin",
            "-G",
            GROUP,
            USER,
        ]
        assert self.system.calls[1] == (["chpasswd"], f"{USER}:{PASSWD}\n")
        assert self.system.passwords == {USER: PASSWD}
        assert os.path.isdir(self.home)

    def test_create_operator(self):
        account = self.registry.create("work", PASSWD, self.home, OPERATOR)
        assert account.role == OPERATOR
        assert account.can_login
        assert "-s" not in self.system.commands[0]
        assert "-G" not in self.system.commands[0]

    def test_create_existing(self):
        with pytest.raises(AccountAlreadyExists, match="'root' already"):
            self.registry.create("root", PASSWD, self.home)
        assert self.system.calls == []
        assert not os.path.exists(self.home)

    def test_create_invalid_role(self):
        with pytest.raises(ValueError, match="invalid role"):
            self.registry.create(USER, PASSWD, self.home, role="admin")
        assert self.system.calls == []

    def test_create_failure(self):
        self.system.returncodes["useradd"] = 1
        with pytest.raises(AccountCreationError, match="useradd: failed"):
            self.registry.create(USER, PASSWD, self.home)
        # no retry, no password set
        assert self.system.programs() == ["useradd"]

    def test_create_failure_message_is_untouched(self):
        with pytest.raises(AccountCreationError) as cm:
            self.registry.create(USER, PASSWD, self.home, groups=["nogroup"])
        assert str(cm.value) == "useradd: group 'nogroup' does not exist"

    def test_create_chpasswd_failure(self):
        self.system.returncodes["chpasswd"] = 1
        with pytest.raises(AccountCreationError, match="chpasswd: failed"):
            self.registry.create(USER, PASSWD, self.home)
        # the account stays there
        assert self.registry.exists(USER)

    def test_create_without_password(self):
        account = self.registry.create(USER, None, self.home)
        assert account.name == USER
        assert self.system.programs() == ["useradd"]
        assert self.system.passwords == {}

    def test_set_password(self):
        self.registry.set_password("root", PASSWD)
        assert self.system.calls == [(["chpasswd"], f"root:{PASSWD}\n")]
        assert self.system.passwords == {"root": PASSWD}
        with pytest.raises(AccountCreationError, match="does not exist"):
            self.registry.set_password(USER, PASSWD)

    def test_create_tool_not_installed(self):
        self.system.missing.add("useradd")
        with pytest.raises(AccountCreationError, match="No such file"):
            self.registry.create(USER, PASSWD, self.home)

    def test_check_credential_tool(self):
        with mock.patch(
            "ftptenants.accounts.which", return_value="/usr/sbin/chpasswd"
        ) as m:
            self.registry.check_credential_tool()
        m.assert_called_once_with("chpasswd")
        with mock.patch("ftptenants.accounts.which", return_value=None):
            with pytest.raises(DependencyMissing, match="'chpasswd'"):
                self.registry.check_credential_tool()


class TestSystemDatabase(FtptenantsTestCase):
    """Read-only tests against the real passwd / group databases."""

    @staticmethod
    def get_current_user():
        try:
            return pwd.getpwuid(os.getuid()).pw_name
        except KeyError:
            pytest.skip("current uid has no passwd entry")

    def get_nonexistent_user(self):
        letters = string.ascii_lowercase
        while True:
            user = "".join([random.choice(letters) for i in range(10)])
            try:
                pwd.getpwnam(user)
            except KeyError:
                return user

    def test_exists(self):
        registry = UnixAccountRegistry()
        assert registry.exists(self.get_current_user())
        assert not registry.exists(self.get_nonexistent_user())

    def test_get(self):
        registry = UnixAccountRegistry()
        user = self.get_current_user()
        account = registry.get(user)
        assert account.uid == os.getuid()
        assert account.homedir == pwd.getpwnam(user).pw_dir
        with pytest.raises(AccountNotFound):
            registry.get(self.get_nonexistent_user())
