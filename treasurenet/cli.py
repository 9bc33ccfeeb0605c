"""Command line entry point: play as the explorer or host the treasures."""

from __future__ import annotations

import argparse
import sys

from treasurenet.client import DOWNLOAD_DIR, ClientSession
from treasurenet.rawsocket import SocketSetupError, open_raw_socket
from treasurenet.server import TREASURES_DIR, ServerSession

_PROMPT = "Make your move, astronaut (w/a/s/d): "


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="treasurenet",
        description="Treasure hunt game played over a raw network interface.",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "-c", dest="mode", action="store_const", const="client", help="play as the explorer"
    )
    mode.add_argument(
        "-s", dest="mode", action="store_const", const="server", help="host the treasures"
    )
    parser.add_argument("interface", help="network interface to use")
    parser.add_argument(
        "--treasures-dir", default=TREASURES_DIR, help="where the server finds treasure files"
    )
    parser.add_argument(
        "--download-dir", default=DOWNLOAD_DIR, help="where the client stores treasures"
    )
    return parser


def _read_move() -> str | None:
    try:
        return input(_PROMPT)
    except EOFError:
        return None


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        sock = open_raw_socket(args.interface)
    except SocketSetupError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    try:
        with sock:
            if args.mode == "client":
                ClientSession(sock, download_dir=args.download_dir).run(_read_move)
            else:
                ServerSession(sock, treasures_dir=args.treasures_dir).run()
    except KeyboardInterrupt:
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())