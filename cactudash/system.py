"""System updates, Docker installation and power control."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from cactudash.osinfo import DistroInfo

_log = logging.getLogger(__name__)

_UPDATE_SCRIPTS = {
    "arch": "sudo pacman -Syu -y",
    "debian": "sudo apt update -y && sudo apt upgrade -y",
    "ubuntu": "sudo apt update -y && sudo apt upgrade -y",
    "fedora": "sudo dnf update -y",
}

_START_DOCKER = [
    (["systemctl", "start", "docker"], None),
    (["systemctl", "enable", "docker"], None),
]

_POWER_COMMANDS = {
    True: ("shutdown", "-h", "now"),
    False: ("reboot",),
}


class CommandError(Exception):
    """A system command failed."""


class UnsupportedDistribution(Exception):
    """The distribution has no known package commands."""


def _run(args: Sequence[str]) -> str:
    result = subprocess.run(
        list(args),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        check=True,
    )
    return result.stdout or ""


def update_command(distro: str) -> list[str]:
    """Return the command that upgrades all packages on ``distro``."""
    try:
        script = _UPDATE_SCRIPTS[distro]
    except KeyError:
        raise UnsupportedDistribution("unsupported distribution") from None
    return ["/bin/sh", "-c", script]


def install_commands(distro: str) -> list[tuple[list[str], str | None]]:
    """Return the steps that install Docker on ``distro``.

    Each step is ``(args, error)``; ``error`` is the message raised when
    the step fails, or None if the step may fail without stopping.
    """
    if distro == "arch":
        steps = [
            (
                ["pacman", "-Sy", "--noconfirm", "docker", "docker-compose"],
                "failed to install docker",
            )
        ]
    elif distro in ("debian", "ubuntu"):
        steps = [
            (["apt-get", "update"], "failed to update apt-get"),
            (["apt-get", "install", "-y", "docker.io"], "failed to install docker.io"),
            (["apt-get", "install", "-y", "docker-compose-plugin"], None),
            (["apt-get", "install", "-y", "docker-compose"], None),
        ]
    elif distro == "fedora":
        steps = [
            (
                ["dnf", "install", "-y", "docker", "docker-compose"],
                "failed to install docker",
            )
        ]
    else:
        raise UnsupportedDistribution("unsupported distribution")
    return steps + [(list(args), error) for args, error in _START_DOCKER]


def run_update(distro_info: DistroInfo) -> bool:
    """Upgrade the system packages.

    Returns False without doing anything on an unsupported system, True
    after a successful update.
    """
    if not distro_info.supported:
        return False
    command = update_command(distro_info.name)
    try:
        _run(command)
    except (OSError, subprocess.CalledProcessError) as exc:
        _log.error("Error running update script: %s", exc)
        raise CommandError("failed to run update script") from exc
    _log.info("Update script executed")
    return True


def docker_available() -> bool:
    """Whether ``docker --version`` runs and reports a version."""
    try:
        output = _run(["docker", "--version"])
    except (OSError, subprocess.CalledProcessError) as exc:
        _log.warning("Docker not detected: %s", exc)
        return False
    return "not found" not in output


def check_requirements(distro_info: DistroInfo) -> bool:
    """Make sure Docker is installed, installing it where possible.

    Returns True when Docker is available afterwards.
    """
    if docker_available():
        return True
    if not distro_info.supported:
        return False

    steps = install_commands(distro_info.name)
    _log.info("Installing docker for %s", distro_info.name)
    for args, error in steps:
        try:
            _run(args)
        except (OSError, subprocess.CalledProcessError) as exc:
            if error is not None:
                raise CommandError(error) from exc
            _log.warning("Optional step %s failed: %s", " ".join(args), exc)
    return docker_available()


def power_command(shutdown: bool) -> list[str]:
    """Return the command that shuts the host down or reboots it."""
    if not isinstance(shutdown, bool):
        raise TypeError("power option must be a boolean")
    command = list(_POWER_COMMANDS[shutdown])
    return command


def power_off(shutdown: bool) -> None:
    """Shut the host down (``shutdown`` true) or reboot it."""
    _log.info("Shutting down server..." if shutdown else "Restart server...")
    try:
        _run(power_command(shutdown))
    except (OSError, subprocess.CalledProcessError) as exc:
        raise CommandError("failed to shutdown" if shutdown else "failed to reboot") from exc