"""Shared CLI infrastructure for sshdsl-exec/sshdsl-tunnel."""

import argparse
import logging

from sshdsl.options import SSHOptions
from sshdsl.session import SSHSession

# Exit codes
EXIT_OK = 0
EXIT_COMMAND_ERROR = 1
EXIT_USAGE_ERROR = 2


def base_parser(description: str) -> argparse.ArgumentParser:
    """Create ArgumentParser with common flags shared by all CLI tools."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("url", metavar="URL", help="target as [user[:password]@]host[:port]")
    parser.add_argument("-i", "--identity", dest="key_file", default=None, help="private key file")
    parser.add_argument("--passphrase", default=None, help="private key passphrase")
    parser.add_argument("--password", default=None, help="login password (overrides URL)")
    parser.add_argument("--connect-timeout", type=float, default=None, help="TCP connect timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")
    return parser


def configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-5s %(message)s"))
    logger = logging.getLogger("sshdsl")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)


def make_session(args) -> SSHSession:
    """Build a session from environment defaults, then apply URL and flags.

    A URL without user or password keeps the SSHDSL_USER / SSHDSL_PASSWORD defaults.

    Raises:
        FormatError: If the URL does not parse
    """
    options = SSHOptions.from_env(
        verbose=args.verbose or None,
        connect_timeout=args.connect_timeout,
    )
    session = SSHSession(options)
    session.url = args.url
    if session.user is None and options.default_user is not None:
        session.user = options.default_user
    if args.password is not None:
        session.password = args.password
    elif session.password is None and options.default_password is not None:
        session.password = options.default_password
    if args.key_file is not None:
        session.key_file = args.key_file
    if args.passphrase is not None:
        session.passphrase = args.passphrase
    return session
