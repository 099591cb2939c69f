"""
Shared pytest fixtures for sshdsl unit tests.

FakeTransport/FakeHandle stand in for the paramiko-backed SSHTransport so that
session tests can count handshakes and commands without a network.
"""

from unittest import mock

import pytest

from sshdsl.errors import SSHConnectionError
from sshdsl.options import SSHOptions
from sshdsl.session import SSHSession
from sshdsl.transport import CommandResult


class FakeHandle:
    """Records every call made by SSHSession against a single connection."""

    def __init__(self, owner, user, host, port):
        self.owner = owner
        self.user = user
        self.host = host
        self.port = port
        self.password = None
        self.connected = False
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.released = False
        self.forwards = []
        self.commands = []

    def is_connected(self):
        return self.connected

    def connect(self):
        self.connect_calls += 1
        self.owner.events.append(("connect", self.host, self.port))
        if self.owner.fail_connect is not None:
            raise self.owner.fail_connect
        self.connected = True

    def disconnect(self):
        self.disconnect_calls += 1
        self.owner.events.append(("disconnect", self.host, self.port))
        self.connected = False
        if self.owner.fail_disconnect is not None:
            raise self.owner.fail_disconnect

    def release(self):
        self.released = True
        self.connected = False

    def register_local_forward(self, local_port, remote_host, remote_port):
        self.forwards.append((local_port, remote_host, remote_port))
        self.owner.events.append(("forward", local_port, remote_host, remote_port))
        return mock.MagicMock(local_port=local_port)

    def exec_command(self, command, timeout=None):
        self.commands.append(command)
        self.owner.events.append(("exec", command))
        exit_code = self.owner.exit_codes.get(command, 0)
        stdout = self.owner.outputs.get(command, "")
        stderr = "failure\n" if exit_code else ""
        return CommandResult(command=command, exit_code=exit_code, stdout=stdout, stderr=stderr)


class FakeTransport:
    """In-memory replacement for SSHTransport."""

    def __init__(self):
        self.handles = []
        self.identities = []
        self.events = []
        self.exit_codes = {}
        self.outputs = {}
        self.fail_connect = None
        self.fail_disconnect = None

    def open_session(self, user, host, port):
        handle = FakeHandle(self, user, host, port)
        self.handles.append(handle)
        self.events.append(("open", user, host, port))
        return handle

    def add_identity(self, path, passphrase=None):
        self.identities.append((path, passphrase))

    @property
    def network_calls(self):
        return [e for e in self.events if e[0] in ("connect", "disconnect", "exec", "forward")]


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def make_session(fake_transport):
    """Factory for SSHSession wired to the fake transport.

    Usage:
        def test_something(make_session):
            ssh = make_session(default_host="h", default_user="u", default_password="p")
    """

    def _make(**option_kwargs):
        return SSHSession(SSHOptions(**option_kwargs), transport=fake_transport)

    return _make


@pytest.fixture
def ready_session(make_session):
    """Session with host, user and password set; not yet connected."""
    return make_session(default_host="h", default_user="u", default_password="p")


@pytest.fixture
def connection_refused():
    return SSHConnectionError("Connection failed: refused", "h", 22)
