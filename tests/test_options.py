"""Tests for sshdsl.options - SSHOptions defaults and environment loading."""

import logging

import pytest

from sshdsl.options import SSHOptions

_VARS = (
    "SSHDSL_HOST",
    "SSHDSL_USER",
    "SSHDSL_PORT",
    "SSHDSL_PASSWORD",
    "SSHDSL_KEY_FILE",
    "SSHDSL_PASSPHRASE",
    "SSHDSL_VERBOSE",
    "SSHDSL_CONNECT_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


class TestSSHOptions:
    def test_defaults(self):
        opts = SSHOptions()
        assert opts.default_host is None
        assert opts.default_port == 22
        assert opts.verbose is False
        assert opts.connect_timeout == 10.0

    def test_repr_hides_secrets(self):
        opts = SSHOptions(default_password="hunter2", default_passphrase="swordfish")
        assert "hunter2" not in repr(opts)
        assert "swordfish" not in repr(opts)

    def test_default_logger(self):
        assert SSHOptions().get_logger() is logging.getLogger("sshdsl")

    def test_custom_logger(self):
        custom = logging.getLogger("myapp.ssh")
        assert SSHOptions(logger=custom).get_logger() is custom


class TestFromEnv:
    def test_empty_env(self):
        opts = SSHOptions.from_env()
        assert opts == SSHOptions()

    def test_reads_all_vars(self, monkeypatch):
        monkeypatch.setenv("SSHDSL_HOST", "build.example.com")
        monkeypatch.setenv("SSHDSL_USER", "deploy")
        monkeypatch.setenv("SSHDSL_PORT", "2222")
        monkeypatch.setenv("SSHDSL_PASSWORD", "pw")
        monkeypatch.setenv("SSHDSL_KEY_FILE", "/keys/id")
        monkeypatch.setenv("SSHDSL_PASSPHRASE", "pp")
        monkeypatch.setenv("SSHDSL_VERBOSE", "yes")
        monkeypatch.setenv("SSHDSL_CONNECT_TIMEOUT", "2.5")

        opts = SSHOptions.from_env()
        assert opts.default_host == "build.example.com"
        assert opts.default_user == "deploy"
        assert opts.default_port == 2222
        assert opts.default_password == "pw"
        assert opts.default_key_file == "/keys/id"
        assert opts.default_passphrase == "pp"
        assert opts.verbose is True
        assert opts.connect_timeout == 2.5

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False)])
    def test_verbose_parsing(self, monkeypatch, value, expected):
        monkeypatch.setenv("SSHDSL_VERBOSE", value)
        assert SSHOptions.from_env().verbose is expected

    def test_bad_port(self, monkeypatch):
        monkeypatch.setenv("SSHDSL_PORT", "twenty-two")
        with pytest.raises(ValueError, match="SSHDSL_PORT"):
            SSHOptions.from_env()

    def test_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("SSHDSL_CONNECT_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="SSHDSL_CONNECT_TIMEOUT"):
            SSHOptions.from_env()

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("DEPLOY_HOST", "h")
        assert SSHOptions.from_env(prefix="deploy").default_host == "h"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SSHDSL_HOST", "env-host")
        opts = SSHOptions.from_env(default_host="arg-host", default_user=None)
        assert opts.default_host == "arg-host"
        assert opts.default_user is None
