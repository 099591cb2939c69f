"""
sshdsl - lazy single-connection SSH sessions with su and port-forward tunnels.

Quick start:
    from sshdsl import SSHSession, SSHOptions

    with SSHSession(SSHOptions.from_env()) as ssh:
        ssh.url = "deploy@build.example.com:2222"
        ssh.key_file = "~/.ssh/id_ed25519"
        ssh.exec("uptime")
        ssh.ephemeral_tunnel("db.internal", 5432, lambda port: print(port))
"""

from sshdsl.config import ConnectionConfig, parse_url, DEFAULT_SSH_PORT
from sshdsl.errors import (
    SSHError,
    ConfigurationError,
    FormatError,
    SSHConnectionError,
    SSHCommandError,
    SSHTimeoutError,
)
from sshdsl.options import SSHOptions
from sshdsl.session import SSHSession, find_free_port, remote_session
from sshdsl.transport import CommandResult, SessionHandle, SSHTransport, Tunnel

__version__ = "0.1.0"

__all__ = [
    "ConnectionConfig",
    "parse_url",
    "DEFAULT_SSH_PORT",
    "SSHError",
    "ConfigurationError",
    "FormatError",
    "SSHConnectionError",
    "SSHCommandError",
    "SSHTimeoutError",
    "SSHOptions",
    "SSHSession",
    "find_free_port",
    "remote_session",
    "CommandResult",
    "SessionHandle",
    "SSHTransport",
    "Tunnel",
]
