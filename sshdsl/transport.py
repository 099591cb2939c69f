"""
Paramiko-backed transport: session handles, local port forwards and command execution.

SSHTransport plays the role of the connection factory. It remembers private
key identities and hands out SessionHandle objects, one per user@host:port.
A handle owns one paramiko.Transport plus every Tunnel registered on it.

Example:
    transport = SSHTransport()
    transport.add_identity("~/.ssh/id_ed25519")
    handle = transport.open_session("deploy", "build.example.com", 22)
    handle.connect()
    print(handle.exec_command("uname -a").stdout)
    handle.disconnect()
"""

from __future__ import annotations

import logging
import select
import socket
import socketserver
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import paramiko

from sshdsl.errors import SSHConnectionError, SSHTimeoutError

logger = logging.getLogger(__name__)

_RELAY_CHUNK = 16384
_READ_CHUNK = 65536


# ---------------------------------------------------------------------------
# CommandResult
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandResult:
    """Exit code and decoded output of one remote command."""

    command: str
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


# ---------------------------------------------------------------------------
# Tunnel
# ---------------------------------------------------------------------------


class _ForwardHandler(socketserver.BaseRequestHandler):
    """Relays one accepted local connection through its own direct-tcpip channel."""

    def handle(self):
        tunnel = self.server.tunnel
        try:
            chan = tunnel.transport.open_channel(
                "direct-tcpip",
                (tunnel.remote_host, tunnel.remote_port),
                self.request.getpeername(),
            )
        except (paramiko.SSHException, OSError) as e:
            logger.error("Tunnel to %s:%d could not open a channel: %s", tunnel.remote_host, tunnel.remote_port, e)
            return
        try:
            _relay(self.request, chan, tunnel.stopped)
        finally:
            chan.close()


class _ForwardServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, tunnel: Tunnel, local_port: int):
        self.tunnel = tunnel
        super().__init__(("127.0.0.1", local_port), _ForwardHandler)


class Tunnel:
    """Local listener on 127.0.0.1:local_port relayed to remote_host:remote_port.

    Listening starts on construction; local_port 0 lets the OS pick a port and
    local_port then holds the bound one. stop() may be called any number of times.
    """

    def __init__(self, local_port: int, remote_host: str, remote_port: int, transport: paramiko.Transport):
        self.remote_host = remote_host
        self.remote_port = remote_port
        self.transport = transport
        self.stopped = threading.Event()
        self._server = _ForwardServer(self, local_port)
        self.local_port: int = self._server.server_address[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"sshdsl-forward-{self.local_port}",
            daemon=True,
        )
        self._thread.start()
        logger.info("Forwarding 127.0.0.1:%d -> %s:%d", self.local_port, remote_host, remote_port)

    @property
    def active(self) -> bool:
        return not self.stopped.is_set()

    def stop(self) -> None:
        if self.stopped.is_set():
            return
        self.stopped.set()
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=3.0)
        logger.info("Forward on port %d stopped", self.local_port)

    def __repr__(self):
        state = "active" if self.active else "stopped"
        return f"Tunnel(127.0.0.1:{self.local_port} -> {self.remote_host}:{self.remote_port}, {state})"


def _relay(sock: socket.socket, chan: paramiko.Channel, stopped: threading.Event) -> None:
    """Copy bytes in both directions until one end hits EOF or the tunnel stops."""
    peer_of = {sock: chan, chan: sock}
    while not stopped.is_set():
        readable, _, _ = select.select(list(peer_of), [], [], 1.0)
        for src in readable:
            data = src.recv(_RELAY_CHUNK)
            if not data:
                return
            peer_of[src].sendall(data)


# ---------------------------------------------------------------------------
# SessionHandle
# ---------------------------------------------------------------------------


class SessionHandle:
    """One live (or not yet started) SSH connection to user@host:port.

    Created by SSHTransport.open_session(). Nothing touches the network until
    connect() is called.
    """

    def __init__(self, owner: SSHTransport, user: str, host: str, port: int):
        self.user = user
        self.host = host
        self.port = port
        self.password: Optional[str] = None
        self._owner = owner
        self._transport: Optional[paramiko.Transport] = None
        self._tunnels: list[Tunnel] = []

    @property
    def tunnels(self) -> list[Tunnel]:
        return list(self._tunnels)

    def is_connected(self) -> bool:
        return self._transport is not None and self._transport.is_active()

    def connect(self) -> None:
        """Open the TCP connection, run the SSH handshake and authenticate.

        Raises:
            SSHConnectionError: On network, protocol, key loading or authentication failure
        """
        transport = None
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self._owner.connect_timeout)
            transport = paramiko.Transport(sock)
            transport.start_client()
            self._authenticate(transport)
            if self._owner.keepalive:
                transport.set_keepalive(self._owner.keepalive)
        except paramiko.AuthenticationException as e:
            _close_quietly(transport)
            raise SSHConnectionError(f"Authentication failed: {e}", self.host, self.port) from e
        except SSHConnectionError:
            _close_quietly(transport)
            raise
        except (socket.error, paramiko.SSHException, OSError) as e:
            _close_quietly(transport)
            raise SSHConnectionError(f"Connection failed: {e}", self.host, self.port) from e

        self._transport = transport
        logger.debug("SSH connected to %s@%s:%d", self.user, self.host, self.port)

    def _load_key(self, path: str, passphrase: Optional[str]) -> paramiko.PKey:
        key_path = Path(path).expanduser()
        if not key_path.exists():
            raise SSHConnectionError(f"Key file not found: {key_path}", self.host, self.port)
        secret = passphrase.encode() if passphrase is not None else None
        try:
            # positional: the keyword name differs between paramiko releases
            return paramiko.PKey.from_path(key_path, secret)
        except (paramiko.SSHException, paramiko.pkey.UnknownKeyType, ValueError, OSError) as e:
            raise SSHConnectionError(f"Cannot load key file {key_path}: {e}", self.host, self.port) from e

    def _authenticate(self, transport: paramiko.Transport) -> None:
        """Offer each registered identity in order, then fall back to the password."""
        rejected: list[str] = []
        for path, passphrase in self._owner.identities:
            pkey = self._load_key(path, passphrase)
            try:
                transport.auth_publickey(self.user, pkey)
            except paramiko.AuthenticationException as e:
                rejected.append(f"{path}: {e}")
                continue
            if transport.is_authenticated():
                return

        if self.password is not None:
            transport.auth_password(self.user, self.password)
            return

        raise paramiko.AuthenticationException("; ".join(rejected) or "no credentials available")

    def _stop_tunnels(self) -> None:
        tunnels, self._tunnels = self._tunnels, []
        for tunnel in tunnels:
            try:
                tunnel.stop()
            except OSError:
                logger.debug("Error stopping %r", tunnel, exc_info=True)

    def disconnect(self) -> None:
        """Stop all tunnels registered on this handle and close the transport."""
        self._stop_tunnels()
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
            logger.debug("SSH disconnected from %s:%d", self.host, self.port)

    def release(self) -> None:
        """Free local resources of a handle whose connection is already gone.

        Stops the tunnel listeners and drops the dead transport. Never raises.
        """
        self._stop_tunnels()
        transport, self._transport = self._transport, None
        _close_quietly(transport)

    def _active_transport(self) -> paramiko.Transport:
        if not self.is_connected():
            raise SSHConnectionError("Transport is no longer active", self.host, self.port)
        return self._transport

    def register_local_forward(self, local_port: int, remote_host: str, remote_port: int) -> Tunnel:
        """Forward 127.0.0.1:local_port to remote_host:remote_port through this connection.

        The forward stays registered until disconnect() or Tunnel.stop().
        """
        tunnel = Tunnel(local_port, remote_host, remote_port, self._active_transport())
        self._tunnels.append(tunnel)
        return tunnel

    def exec_command(self, command: str, timeout: Optional[float] = None) -> CommandResult:
        """Run command on a fresh channel and wait for it to exit.

        Raises:
            SSHTimeoutError: If timeout seconds pass before the command exits
            SSHConnectionError: If the transport is not active
        """
        chan = self._active_transport().open_session()
        try:
            chan.exec_command(command)
            chan.shutdown_write()
            stdout, stderr = _collect_output(chan, command, timeout)
            return CommandResult(command=command, exit_code=chan.recv_exit_status(), stdout=stdout, stderr=stderr)
        finally:
            chan.close()

    def __repr__(self):
        state = "connected" if self.is_connected() else "disconnected"
        return f"SessionHandle({self.user}@{self.host}:{self.port}, {state})"


def _collect_output(chan: paramiko.Channel, command: str, timeout: Optional[float]) -> tuple[str, str]:
    deadline = None if timeout is None else time.monotonic() + timeout
    out, err = bytearray(), bytearray()
    try:
        while True:
            if deadline is not None and time.monotonic() >= deadline:
                raise SSHTimeoutError(f"Command timed out after {timeout}s: {command!r}")
            pending = False
            if chan.recv_ready():
                out += chan.recv(_READ_CHUNK)
                pending = True
            if chan.recv_stderr_ready():
                err += chan.recv_stderr(_READ_CHUNK)
                pending = True
            if pending:
                continue
            if chan.exit_status_ready():
                break
            chan.status_event.wait(0.1)
    except socket.timeout as e:
        raise SSHTimeoutError(str(e)) from e
    return out.decode(errors="replace"), err.decode(errors="replace")


def _close_quietly(transport: Optional[paramiko.Transport]) -> None:
    if transport is None:
        return
    try:
        transport.close()
    except Exception:
        logger.debug("Error closing transport", exc_info=True)


# ---------------------------------------------------------------------------
# SSHTransport
# ---------------------------------------------------------------------------


@dataclass
class SSHTransport:
    """Factory for SessionHandle objects with a shared identity list.

    Args:
        connect_timeout: TCP connection timeout in seconds (default 10.0)
        keepalive: Keepalive interval in seconds, 0 to disable (default 30)
    """

    connect_timeout: float = 10.0
    keepalive: int = 30
    _identities: dict[str, Optional[str]] = field(default_factory=dict, repr=False)

    @property
    def identities(self) -> list[tuple[str, Optional[str]]]:
        return list(self._identities.items())

    def add_identity(self, path, passphrase: Optional[str] = None) -> None:
        """Register a private key file; re-adding a path replaces its passphrase."""
        self._identities[str(Path(path).expanduser().absolute())] = passphrase or None

    def open_session(self, user: str, host: str, port: int) -> SessionHandle:
        return SessionHandle(self, user, host, port)


__all__ = [
    "CommandResult",
    "Tunnel",
    "SessionHandle",
    "SSHTransport",
]
