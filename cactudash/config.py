"""Application constants and command-line options."""

from __future__ import annotations

import argparse
from collections.abc import Sequence

VERSION = "v0.1.0b"
SUPPORTED_OS = ("arch", "ubuntu", "debian", "fedora")
PORT = 3030


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the server's command line; ``debug`` is the only option."""
    parser = argparse.ArgumentParser(
        prog="cactudash",
        description="Web dashboard for a Docker host.",
    )
    parser.add_argument(
        "-debug",
        "--debug",
        action="store_true",
        help="run with the built-in debug login",
    )
    return parser.parse_args(argv)