"""sshdsl-exec -- Run commands on a remote host, optionally under su."""

import sys

from sshdsl.cli._common import (
    EXIT_COMMAND_ERROR,
    EXIT_OK,
    EXIT_USAGE_ERROR,
    base_parser,
    configure_logging,
    make_session,
)
from sshdsl.errors import SSHCommandError, SSHError


def _run_all(session, commands):
    for command in commands:
        result = session.exec(command, show_output=False)
        if result.stdout:
            print(result.stdout, end="" if result.stdout.endswith("\n") else "\n")


def main() -> int:
    parser = base_parser("Run commands on a remote host over SSH")
    parser.add_argument("commands", nargs="+", metavar="COMMAND", help="shell command(s), run in order")
    parser.add_argument("--su-password", default=None, help="run the commands inside su with this password")
    parser.add_argument("--su-user", default="root", help="user for --su-password (default: root)")
    args = parser.parse_args()
    configure_logging(args.verbose)

    try:
        session = make_session(args)
    except (SSHError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    try:
        if args.su_password is not None:
            session.su(args.su_password, lambda s: _run_all(s, args.commands), user=args.su_user)
        else:
            _run_all(session, args.commands)
    except KeyboardInterrupt:
        return 130
    except SSHCommandError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_COMMAND_ERROR
    except SSHError as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    finally:
        session.disconnect()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
