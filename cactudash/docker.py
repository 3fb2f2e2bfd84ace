"""Docker container listing, control and creation."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

DOCKER_PS_FORMAT = "{{.ID}};{{.Image}};{{.Ports}};{{.Status}};{{.Names}}"
COMPOSE_FILE_NAME = "compose.yaml"
DEFAULT_WORK_DIR = "workDirectory"

_log = logging.getLogger(__name__)


class DockerError(Exception):
    """A docker command failed; ``details`` and ``output`` describe why."""

    def __init__(self, message: str, details: str = "", output: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.output = output


@dataclass(frozen=True)
class Container:
    """One row of ``docker ps -a``."""

    id: str
    image: str
    status: str
    name: str


def _run(
    args: Sequence[str], *, cwd: str | Path | None = None, merge_stderr: bool = False
) -> str:
    """Run a command and return its standard output; raise on failure."""
    result = subprocess.run(
        list(args),
        cwd=cwd,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
        text=True,
        check=True,
    )
    return result.stdout or ""


def _output_of(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        return exc.output or ""
    return ""


def parse_container_lines(output: str) -> list[Container]:
    """Parse ``docker ps`` output in the ``DOCKER_PS_FORMAT`` layout."""
    containers = []
    for line in output.split("\n"):
        if not line:
            continue
        fields = line.split(";")
        if len(fields) < 5:
            _log.warning("Unexpected format in docker output: %s", line)
            continue
        containers.append(
            Container(id=fields[0], image=fields[1], status=fields[3], name=fields[4])
        )
    return containers


def list_containers() -> list[Container]:
    """Return every container known to the docker daemon."""
    try:
        out = _run(["docker", "ps", "-a", "--format", DOCKER_PS_FORMAT])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError("Error executing docker command", str(exc)) from exc
    return parse_container_lines(out)


def toggle_container(container_id: str) -> bool:
    """Stop a running container or start a stopped one.

    Returns True if the container was started, False if it was stopped.
    """
    try:
        out = _run(["docker", "inspect", "--format={{.State.Running}}", container_id])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError(str(exc), str(exc), _output_of(exc)) from exc

    if out.strip() == "true":
        try:
            _run(["docker", "stop", container_id])
        except (OSError, subprocess.CalledProcessError) as exc:
            raise DockerError("Failed to stop container", str(exc)) from exc
        _log.info("Container stopped:%s", container_id)
        return False

    try:
        _run(["docker", "start", container_id])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError("Failed to start container", str(exc)) from exc
    _log.info("Container started:%s", container_id)
    return True


def restart_container(container_id: str) -> None:
    """Restart a container."""
    try:
        _run(["docker", "restart", container_id])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError("Failed to restart container", str(exc)) from exc
    _log.info("Container restarted:%s", container_id)


def remove_container(container_id: str) -> None:
    """Remove a stopped container."""
    try:
        _run(["docker", "rm", container_id])
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError("Failed to remove container", str(exc)) from exc
    _log.info("Container removed:%s", container_id)


def is_docker_run(code: str) -> bool:
    """Whether a shell snippet contains a ``docker run`` command."""
    return "docker run" in code


def run_docker_command(code: str) -> str:
    """Run a ``docker run`` shell command and return its combined output.

    Raises ValueError if the snippet is not a ``docker run`` command and
    DockerError if it fails.
    """
    if not is_docker_run(code):
        raise ValueError("Incorrect docker run command")
    try:
        output = _run(["bash", "-c", code], merge_stderr=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError(
            "Failed to execute docker run command", str(exc), _output_of(exc)
        ) from exc
    _log.info("Docker run command executed successfully")
    return output


def compose_up(name: str, code: str, work_dir: str | Path = DEFAULT_WORK_DIR) -> str:
    """Write ``code`` as ``<work_dir>/<name>/compose.yaml`` and start it.

    Returns the combined output of ``docker-compose up -d``.
    """
    directory = Path(work_dir) / name
    try:
        directory.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as exc:
        raise DockerError("Failed to create directory", str(exc)) from exc

    compose_file = directory / COMPOSE_FILE_NAME
    try:
        fh = compose_file.open("w", encoding="utf-8")
    except OSError as exc:
        raise DockerError("Failed to create compose.yaml", str(exc)) from exc
    with fh:
        try:
            fh.write(code)
        except OSError as exc:
            raise DockerError("Failed to write to compose.yaml", str(exc)) from exc

    try:
        output = _run(
            ["docker-compose", "-f", str(compose_file.resolve()), "up", "-d"],
            cwd=directory,
            merge_stderr=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise DockerError(
            "Failed to execute docker-compose up", str(exc), _output_of(exc)
        ) from exc
    _log.info("Docker Compose started successfully")
    return output