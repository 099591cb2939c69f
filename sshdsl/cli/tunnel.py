"""sshdsl-tunnel -- Forward a local port to a host reachable from the SSH server."""

import signal
import sys
import threading

from sshdsl.cli._common import (
    EXIT_OK,
    EXIT_USAGE_ERROR,
    base_parser,
    configure_logging,
    make_session,
)
from sshdsl.errors import SSHError


def _wait_forever(port: int, stop: threading.Event) -> None:
    print(f"Forwarding 127.0.0.1:{port} (Ctrl+C to stop)", flush=True)
    while not stop.wait(1.0):
        pass


def main() -> int:
    parser = base_parser("Forward a local port through an SSH connection")
    parser.add_argument("remote_host", metavar="REMOTE_HOST", help="host to reach from the SSH server")
    parser.add_argument("remote_port", metavar="REMOTE_PORT", type=int, help="port on REMOTE_HOST")
    parser.add_argument("-L", "--local-port", type=int, default=None, help="local port (default: any free port)")
    args = parser.parse_args()
    configure_logging(args.verbose)

    try:
        session = make_session(args)
    except (SSHError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR

    # SIGTERM should trigger clean shutdown just like Ctrl+C
    def _sigterm_handler(signum, frame):
        raise KeyboardInterrupt

    signal.signal(signal.SIGTERM, _sigterm_handler)
    stop = threading.Event()

    try:
        if args.local_port is not None:
            session.tunnel(
                args.local_port,
                args.remote_host,
                args.remote_port,
                lambda s: _wait_forever(args.local_port, stop),
            )
        else:
            session.ephemeral_tunnel(args.remote_host, args.remote_port, lambda port: _wait_forever(port, stop))
    except KeyboardInterrupt:
        pass
    except SSHError as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return EXIT_USAGE_ERROR
    finally:
        session.disconnect()

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
