"""
Connection settings with change tracking, and the compact URL parser.

Every assignment to an address or credential field marks the config dirty,
even when the new value equals the old one. SSHSession.connect() uses the flag
to decide whether a live connection has to be rebuilt.

Example:
    config = parse_url("alice:secret@host.example:2200")
    config.port = 2022          # config.dirty is now True
"""

import os
import re
from pathlib import Path
from typing import Optional, Union

from sshdsl.errors import FormatError
from sshdsl.options import SSHOptions

DEFAULT_SSH_PORT = 22

_SSH_URL = re.compile(
    r"""
    (?:
        (?P<user>[^:@\s]+)
        (?::(?P<password>[^@]+))?
        @
    )?
    (?P<host>[^:@\s]+)
    (?::(?P<port>\d+))?
    """,
    re.VERBOSE,
)


class _Tracked:
    """Data descriptor that marks the owning config dirty on every assignment."""

    def __set_name__(self, owner, name):
        self.name = name
        self.attr = f"_{name}"

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self
        return getattr(obj, self.attr)

    def __set__(self, obj, value):
        setattr(obj, self.attr, obj._normalize(self.name, value))
        obj.dirty = True


class ConnectionConfig:
    """Mutable address/credential record for a single SSH session.

    At least one of password or key_file must be set before connecting.
    Password and passphrase are excluded from repr.
    """

    host = _Tracked()
    port = _Tracked()
    user = _Tracked()
    password = _Tracked()
    key_file = _Tracked()
    passphrase = _Tracked()

    def __init__(
        self,
        host: Optional[str] = None,
        port: int = DEFAULT_SSH_PORT,
        user: Optional[str] = None,
        password: Optional[str] = None,
        key_file: Union[str, os.PathLike, None] = None,
        passphrase: Optional[str] = None,
    ):
        self._host = host
        self._port = self._normalize("port", port)
        self._user = user
        self._password = password
        self._key_file = self._normalize("key_file", key_file)
        self._passphrase = passphrase
        self.dirty = False

    @classmethod
    def from_options(cls, options: SSHOptions) -> "ConnectionConfig":
        return cls(
            host=options.default_host,
            port=options.default_port,
            user=options.default_user,
            password=options.default_password,
            key_file=options.default_key_file,
            passphrase=options.default_passphrase,
        )

    @staticmethod
    def _normalize(name: str, value):
        if name == "port":
            if not isinstance(value, int) or isinstance(value, bool) or value < 1 or value > 65535:
                raise ValueError(f"port must be 1-65535, got {value!r}")
        elif name == "key_file" and value is not None:
            return Path(value)
        return value

    @property
    def url(self) -> str:
        prefix = f"{self._user}@" if self._user else ""
        return f"{prefix}{self._host}:{self._port}"

    @url.setter
    def url(self, value: str) -> None:
        parse_url(value, self)

    def missing_field(self) -> Optional[str]:
        """Name of the first setting that blocks a connect, or None."""
        if self._host is None:
            return "host"
        if self._user is None:
            return "user"
        if self._key_file is None and self._password is None:
            return "credentials"
        return None

    def clear_dirty(self) -> None:
        self.dirty = False

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(host={self._host!r}, port={self._port}, user={self._user!r}, "
            f"key_file={self._key_file!r}, dirty={self.dirty})"
        )


def parse_url(url: str, config: Optional[ConnectionConfig] = None) -> ConnectionConfig:
    """Parse ``[user[:password]@]host[:port]`` into a ConnectionConfig.

    Host, user, password and port are always assigned (user/password become
    None and port becomes 22 when absent), so the target config is marked dirty.

    Args:
        url: Compact SSH URL, e.g. "alice:secret@host.example:2200"
        config: Config to update; a new one is created when None

    Returns:
        The updated config

    Raises:
        FormatError: If url does not match the grammar
    """
    match = _SSH_URL.fullmatch(url) if isinstance(url, str) else None
    if match is None:
        raise FormatError(url)
    port = int(match.group("port")) if match.group("port") else DEFAULT_SSH_PORT
    if port < 1 or port > 65535:
        raise FormatError(url)

    if config is None:
        config = ConnectionConfig()
    config.host = match.group("host")
    config.port = port
    config.user = match.group("user")
    config.password = match.group("password")
    return config


__all__ = ["ConnectionConfig", "parse_url", "DEFAULT_SSH_PORT"]
