"""
Remote session: lazy single-connection lifecycle, su and port-forward tunnels.

SSHSession owns at most one SessionHandle. connect() is idempotent while the
handle is live and the configuration is unchanged; any assignment to host,
port, user, password, key_file, passphrase or url forces the next connect()
to tear the handle down and build a new one.

Scoped operations (su, tunnel, ephemeral_tunnel) take a callable. It receives
the session explicitly (or the allocated port for ephemeral_tunnel), and its
return value is passed back to the caller. There is no cleanup when the
callable raises: su() does not send ``exit`` and tunnels stay registered.

Example:
    from sshdsl import SSHOptions, SSHSession

    with SSHSession(SSHOptions(verbose=True)) as ssh:
        ssh.url = "deploy:secret@build.example.com:2222"
        ssh.exec("uptime")
        ssh.su("rootpw", lambda s: s.exec("systemctl restart nginx"))
        ssh.ephemeral_tunnel("db.internal", 5432, lambda port: run_migrations(port))
"""

from __future__ import annotations

import logging
import socket
from typing import Any, Callable, Optional, TypeVar

from sshdsl.config import ConnectionConfig
from sshdsl.errors import ConfigurationError, SSHCommandError
from sshdsl.options import SSHOptions
from sshdsl.transport import CommandResult, SessionHandle, SSHTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING_MESSAGES = {
    "host": "Host is required.",
    "user": "Username is required.",
    "credentials": "Password or key file is required.",
}


def find_free_port() -> int:
    """Ask the OS for an unused local TCP port.

    Advisory only: the port is released before returning, so another process
    may claim it before the caller binds it.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class SSHSession:
    """Single SSH connection with change-tracked configuration.

    Not thread-safe: drive one session from one thread.

    Args:
        options: Defaults for host, user, credentials and verbosity
            (default: SSHOptions())
        transport: Connection factory (default: SSHTransport built from options)
    """

    def __init__(self, options: Optional[SSHOptions] = None, transport: Optional[SSHTransport] = None):
        self._options = options or SSHOptions()
        self._transport = transport or SSHTransport(
            connect_timeout=self._options.connect_timeout,
            keepalive=self._options.keepalive,
        )
        self._log = self._options.get_logger()
        self.config = ConnectionConfig.from_options(self._options)
        self._handle: Optional[SessionHandle] = None

    # -- configuration -----------------------------------------------------

    @property
    def options(self) -> SSHOptions:
        return self._options

    @property
    def host(self) -> Optional[str]:
        return self.config.host

    @host.setter
    def host(self, value: Optional[str]) -> None:
        self.config.host = value

    @property
    def port(self) -> int:
        return self.config.port

    @port.setter
    def port(self, value: int) -> None:
        self.config.port = value

    @property
    def user(self) -> Optional[str]:
        return self.config.user

    @user.setter
    def user(self, value: Optional[str]) -> None:
        self.config.user = value

    @property
    def password(self) -> Optional[str]:
        return self.config.password

    @password.setter
    def password(self, value: Optional[str]) -> None:
        self.config.password = value

    @property
    def key_file(self):
        return self.config.key_file

    @key_file.setter
    def key_file(self, value) -> None:
        self.config.key_file = value

    @property
    def passphrase(self) -> Optional[str]:
        return self.config.passphrase

    @passphrase.setter
    def passphrase(self, value: Optional[str]) -> None:
        self.config.passphrase = value

    @property
    def url(self) -> str:
        return self.config.url

    @url.setter
    def url(self, value: str) -> None:
        self.config.url = value

    # -- lifecycle -----------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._handle is not None and self._handle.is_connected()

    def connect(self) -> None:
        """Connect unless already connected with unchanged settings.

        Raises:
            ConfigurationError: If host, user or both credentials are missing
            SSHConnectionError: If the handshake or authentication fails
        """
        try:
            if self.connected and not self.config.dirty:
                return

            self.disconnect()

            missing = self.config.missing_field()
            if missing is not None:
                raise ConfigurationError(missing, _MISSING_MESSAGES[missing])

            cfg = self.config
            handle = self._transport.open_session(cfg.user, cfg.host, cfg.port)
            if cfg.key_file is not None:
                self._transport.add_identity(cfg.key_file, cfg.passphrase)
            handle.password = cfg.password

            if self._options.verbose:
                self._log.info(">>> Connecting to %s", cfg.host)

            self._handle = handle
            handle.connect()
        finally:
            self.config.clear_dirty()

    def disconnect(self) -> None:
        """Close the connection if open. Errors while closing are logged, never raised.

        A handle whose connection already dropped is only released: its tunnel
        listeners stop and nothing is sent over the network.
        """
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        if not handle.is_connected():
            handle.release()
            return
        try:
            handle.disconnect()
        except Exception:
            logger.warning("Error while disconnecting from %s", handle.host, exc_info=True)
        finally:
            if self._options.verbose:
                self._log.info("<<< Disconnected from %s", handle.host)

    def reconnect(self) -> None:
        self.disconnect()
        self.connect()

    def _live_handle(self) -> SessionHandle:
        self.connect()
        assert self._handle is not None
        return self._handle

    # -- commands ------------------------------------------------------------

    def exec(
        self,
        command: str,
        *,
        fail_on_error: bool = True,
        show_output: bool = True,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """Run a command on the remote host, connecting first if needed.

        Args:
            command: Shell command line
            fail_on_error: Raise SSHCommandError on non-zero exit
            show_output: Log stdout/stderr lines at INFO
            timeout: Command timeout in seconds (None = no timeout)

        Raises:
            SSHCommandError: If fail_on_error and the command exits non-zero
        """
        result = self._live_handle().exec_command(command, timeout=timeout)
        if show_output:
            for line in result.stdout.splitlines():
                self._log.info("%s", line)
            for line in result.stderr.splitlines():
                self._log.info("%s", line)
        if fail_on_error and not result.ok:
            raise SSHCommandError(command, result.exit_code, result.stderr)
        return result

    def su(self, password: str, block: Callable[[SSHSession], T], *, user: str = "root") -> T:
        """Run block as another remote user.

        Sends ``su <user> <password>``, calls ``block(self)``, then sends ``exit``.
        If su fails its SSHCommandError propagates and block never runs. If
        block raises, ``exit`` is not sent.
        """
        self.exec(f"su {user} {password}", fail_on_error=True, show_output=False)
        result = block(self)
        self.exec("exit", fail_on_error=True, show_output=False)
        return result

    # -- tunnels -------------------------------------------------------------

    def tunnel(self, local_port: int, remote_host: str, remote_port: int, block: Callable[[SSHSession], T]) -> T:
        """Forward local_port to remote_host:remote_port, then call ``block(self)``.

        The forward stays registered after block returns; disconnect() removes it.
        """
        handle = self._live_handle()
        handle.register_local_forward(local_port, remote_host, remote_port)
        return block(self)

    def ephemeral_tunnel(self, remote_host: str, remote_port: int, block: Callable[[int], T]) -> T:
        """Forward a free local port to remote_host:remote_port, then call ``block(port)``."""
        handle = self._live_handle()
        local_port = find_free_port()
        handle.register_local_forward(local_port, remote_host, remote_port)
        return block(local_port)

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> SSHSession:
        return self

    def __exit__(self, *exc) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        state = "connected" if self.connected else "disconnected"
        return f"SSHSession({self.config.url}, {state})"


def remote_session(
    block: Callable[[SSHSession], Any],
    options: Optional[SSHOptions] = None,
    *,
    url: Optional[str] = None,
    transport: Optional[SSHTransport] = None,
) -> Any:
    """Run block against a fresh session and always disconnect afterwards.

    Args:
        block: Called with the session; its return value is returned
        options: Session defaults (default: SSHOptions())
        url: Optional ``[user[:password]@]host[:port]`` applied before block runs
        transport: Connection factory override
    """
    session = SSHSession(options, transport)
    if url is not None:
        session.url = url
    with session:
        return block(session)


__all__ = ["SSHSession", "find_free_port", "remote_session"]
