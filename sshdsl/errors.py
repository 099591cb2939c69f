"""
Exceptions raised by sshdsl.

Configuration problems (ConfigurationError, FormatError) are raised before any
network activity. Transport and remote command failures are wrapped in
SSHConnectionError / SSHCommandError with the original exception chained via
``__cause__``.
"""

from typing import Optional


class SSHError(Exception):
    """Base exception for SSH operations."""


class ConfigurationError(SSHError):
    """Host, user or credentials missing when connecting.

    Attributes:
        field: Name of the missing setting ("host", "user" or "credentials")
    """

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required")

    def __repr__(self) -> str:
        return f"ConfigurationError(field={self.field!r})"


class FormatError(SSHError, ValueError):
    """URL does not match ``[user[:password]@]host[:port]``.

    Attributes:
        url: The offending input string
    """

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unknown URL format: {url}")


class SSHConnectionError(SSHError):
    """Connection or authentication failure."""

    def __init__(self, message: str, host: Optional[str] = None, port: Optional[int] = None):
        self.host = host
        self.port = port
        target = f" ({host}:{port})" if host else ""
        super().__init__(f"{message}{target}")


class SSHCommandError(SSHError):
    """Command exited with non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Command {command!r} failed (exit={exit_code}): {stderr.strip()}")


class SSHTimeoutError(SSHError):
    """Operation timed out."""


__all__ = [
    "SSHError",
    "ConfigurationError",
    "FormatError",
    "SSHConnectionError",
    "SSHCommandError",
    "SSHTimeoutError",
]
