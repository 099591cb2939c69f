"""
Session defaults and environment loading.

Example:
    from sshdsl import SSHOptions, SSHSession

    options = SSHOptions.from_env()          # reads SSHDSL_HOST, SSHDSL_USER, ...
    session = SSHSession(options)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

_TRUE_VALUES = ("1", "true", "yes", "on")


def _get_env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Get environment variable as int."""
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {val!r}")


def _get_env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    """Get environment variable as float."""
    val = os.environ.get(name)
    if val is None:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {val!r}")


def _get_env_bool(name: str, default: bool = False) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class SSHOptions:
    """Defaults applied to every new session.

    Args:
        default_host: Host used until the session overrides it
        default_user: Login user
        default_port: SSH port (default 22)
        default_password: Password (excluded from repr)
        default_key_file: Private key path
        default_passphrase: Key passphrase (excluded from repr)
        verbose: Log connect/disconnect tracing at INFO
        logger: Logger for tracing; the package logger when None
        connect_timeout: TCP connect timeout in seconds
        keepalive: Transport keepalive interval in seconds (0 disables)
    """

    default_host: Optional[str] = None
    default_user: Optional[str] = None
    default_port: int = 22
    default_password: Optional[str] = field(default=None, repr=False)
    default_key_file: Optional[str] = None
    default_passphrase: Optional[str] = field(default=None, repr=False)
    verbose: bool = False
    logger: Optional[logging.Logger] = None
    connect_timeout: float = 10.0
    keepalive: int = 30

    def get_logger(self) -> logging.Logger:
        if self.logger is not None:
            return self.logger
        return logging.getLogger("sshdsl")

    @classmethod
    def from_env(cls, prefix: str = "SSHDSL", **overrides) -> "SSHOptions":
        """Create SSHOptions from ``<PREFIX>_*`` environment variables.

        Recognized variables: HOST, USER, PORT, PASSWORD, KEY_FILE, PASSPHRASE,
        VERBOSE, CONNECT_TIMEOUT. Keyword overrides win over the environment.

        Raises:
            ValueError: If PORT or CONNECT_TIMEOUT does not parse
        """
        p = prefix.upper()
        values = dict(
            default_host=os.environ.get(f"{p}_HOST"),
            default_user=os.environ.get(f"{p}_USER"),
            default_port=_get_env_int(f"{p}_PORT", 22),
            default_password=os.environ.get(f"{p}_PASSWORD"),
            default_key_file=os.environ.get(f"{p}_KEY_FILE"),
            default_passphrase=os.environ.get(f"{p}_PASSPHRASE"),
            verbose=_get_env_bool(f"{p}_VERBOSE"),
            connect_timeout=_get_env_float(f"{p}_CONNECT_TIMEOUT", 10.0),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


__all__ = ["SSHOptions"]
