"""Host operating-system and network address detection."""

from __future__ import annotations

import ipaddress
import logging
import socket
import sys
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

OS_RELEASE = "/etc/os-release"

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DistroInfo:
    """Detected operating system name and whether it is supported."""

    name: str
    supported: bool


def parse_os_release(lines: Iterable[str]) -> tuple[str, str]:
    """Return the ``ID`` and ``ID_LIKE`` values of an os-release file."""
    detected_id = ""
    detected_like = ""
    for raw in lines:
        line = raw.rstrip("\n").removesuffix("\r")
        if line.startswith("ID="):
            detected_id = line[len("ID="):].strip('"')
        elif line.startswith("ID_LIKE="):
            detected_like = line[len("ID_LIKE="):].strip('"')
    return detected_id, detected_like


def retrieve_distro_info(
    path: str | Path = OS_RELEASE, platform: str | None = None
) -> DistroInfo:
    """Detect the distribution from an os-release file.

    On Linux the name is the file's ``ID``; elsewhere it is the platform
    name. The system counts as supported when the name equals the file's
    ``ID`` or ``ID_LIKE``.
    """
    try:
        with open(path, encoding="utf-8", errors="replace") as fh:
            detected_id, detected_like = parse_os_release(fh)
    except OSError as exc:
        _log.warning("Error opening %s: %s", path, exc)
        detected_id = detected_like = ""

    platform = platform or sys.platform
    name = detected_id if platform == "linux" else platform
    return DistroInfo(name=name, supported=name in (detected_id, detected_like))


def get_ip_addr() -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    """Return the local address used for outbound traffic."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("8.8.8.8", 80))
        host = sock.getsockname()[0]
    finally:
        sock.close()
    return ipaddress.ip_address(host)