"""HTTP server for the dashboard: login, system status and Docker control."""

from __future__ import annotations

import asyncio
import os
import platform
import secrets
import socket
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiohttp
import psutil
from aiohttp import WSMsgType, web

from cactudash.auth import AuthError, Credentials, verify_debug_user, verify_system_user
from cactudash.config import PORT, VERSION, parse_args
from cactudash.docker import (
    Container,
    DockerError,
    compose_up,
    is_docker_run,
    list_containers,
    remove_container,
    restart_container,
    run_docker_command,
    toggle_container,
)
from cactudash.logs import AppLog
from cactudash.osinfo import get_ip_addr, retrieve_distro_info
from cactudash.sessions import COOKIE_NAME, Session, SessionError, SessionStore
from cactudash.system import (
    CommandError,
    UnsupportedDistribution,
    check_requirements,
    power_off,
    run_update,
)

WS_REFRESH_SECONDS = 10
TAGS_URL_ENV = "CACTUDASH_TAGS_URL"
WORK_DIR_NAME = "workDirectory"

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
    "riscv64": "riscv64",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

_WS_END = (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED, WSMsgType.ERROR)


def _redirect(location: str) -> web.Response:
    return web.Response(status=302, headers={"Location": location})


def _error(status: int, message: str, **extra: str) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


def _container_json(container: Container) -> dict[str, str]:
    return {
        "Id": container.id,
        "Image": container.image,
        "Status": container.status,
        "Name": container.name,
    }


def _arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


async def _json_object(request: web.Request) -> dict[str, Any]:
    try:
        data = await request.json()
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError(f"invalid JSON body: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("JSON body must be an object")
    return data


def _field(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key, default)
    if not isinstance(value, kind):
        raise ValueError(f"invalid field {key!r}")
    return value


async def _read_credentials(request: web.Request) -> Credentials:
    if request.content_type == "application/json":
        data = await _json_object(request)
    else:
        data = dict(await request.post())
    username = _field(data, "username", str, "")
    secret_value = _field(data, "password", str, "")
    return Credentials(username=username, password=secret_value)


class _Dashboard:
    """State shared by the request handlers of one application."""

    def __init__(self, debug: bool, base_dir: Path, log: AppLog) -> None:
        self.debug = debug
        self.base_dir = base_dir
        self.sites = base_dir / "sites"
        self.work_dir = base_dir / WORK_DIR_NAME
        self.log = log
        self.store = SessionStore(secrets.token_bytes(32))

    # sessions

    def _load_session(self, request: web.Request) -> Session:
        cookie = request.cookies.get(COOKIE_NAME)
        if cookie is None:
            return Session()
        return self.store.decode(cookie)

    def _save_session(self, response: web.StreamResponse, session: Session) -> None:
        response.set_cookie(
            COOKIE_NAME,
            self.store.encode(session),
            max_age=self.store.max_age_seconds,
            httponly=True,
            path="/",
        )

    # pages

    async def login_page(self, request: web.Request) -> web.StreamResponse:
        return web.FileResponse(self.sites / "login.html")

    async def welcome_page(self, request: web.Request) -> web.StreamResponse:
        try:
            session = self._load_session(request)
        except SessionError as exc:
            self.log.error(exc)
            return _redirect("/")
        if not session.logged_in:
            return _redirect("/")
        if not self.store.is_valid(session):
            session.logged_in = False
            response = _redirect("/")
            self._save_session(response, session)
            return response
        return web.FileResponse(self.sites / "welcome.html")

    # authentication

    async def auth(self, request: web.Request) -> web.Response:
        try:
            credentials = await _read_credentials(request)
        except ValueError as exc:
            self.log.error(exc)
            return _error(400, "invalid request")

        verify = verify_debug_user if self.debug else verify_system_user
        try:
            await asyncio.to_thread(verify, credentials)
        except AuthError as exc:
            self.log.message(str(exc))
            return _error(401, "invalid credentials")

        try:
            self._load_session(request)
        except SessionError as exc:
            self.log.error(exc)
            return _error(500, "session error")

        response = _redirect("/welcome")
        self._save_session(response, self.store.new_login())
        self.log.rotate()
        self.log.message(
            "Successful login in debug mode" if self.debug else "Successful login"
        )
        return response

    async def logout(self, request: web.Request) -> web.Response:
        response = _redirect("/")
        try:
            self._load_session(request)
        except SessionError as exc:
            self.log.error(exc)
            return response
        response.del_cookie(COOKIE_NAME, path="/")
        return response

    # system information

    async def system_info(self, request: web.Request) -> web.Response:
        try:
            hostname = socket.gethostname()
        except OSError as exc:
            self.log.error(exc)
            return _error(500, "unable to get hostname")
        distro = await asyncio.to_thread(retrieve_distro_info)
        return web.json_response(
            {
                "hostname": hostname,
                "nameOfOs": distro.name,
                "arch": _arch(),
                "supportStatus": distro.supported,
            }
        )

    async def disk_usage(self, request: web.Request) -> web.Response:
        try:
            usage = psutil.disk_usage("/")
        except OSError as exc:
            self.log.error(exc)
            return _error(500, "unable to get disk usage")
        return web.json_response(
            {"used": usage.used, "total": usage.total, "free": usage.free}
        )

    async def version(self, request: web.Request) -> web.Response:
        return web.json_response({"version": VERSION})

    async def last_tag(self, request: web.Request) -> web.Response:
        url = os.environ.get(TAGS_URL_ENV)
        if not url:
            self.log.message("tag source not configured")
            return _error(500, "tag source not configured")
        try:
            async with aiohttp.ClientSession() as http:
                tag = await fetch_tag(http, url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, RuntimeError) as exc:
            self.log.error(exc)
            return _error(500, str(exc) or "failed to fetch tags")
        return web.json_response({"last_tag": tag})

    # live status

    async def _containers_or_none(self) -> list[dict[str, str]] | None:
        try:
            containers = await asyncio.to_thread(list_containers)
        except DockerError:
            return None
        return [_container_json(c) for c in containers] or None

    async def websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        while not ws.closed:
            usage = psutil.cpu_percent(interval=None)
            containers = await self._containers_or_none()
            try:
                await ws.send_json({"cpu_usage": usage, "containers": containers})
            except (ConnectionError, RuntimeError) as exc:
                self.log.error(exc)
                break
            try:
                msg = await ws.receive(timeout=WS_REFRESH_SECONDS)
            except asyncio.TimeoutError:
                continue
            if msg.type in _WS_END:
                break
        return ws

    # host control

    async def power(self, request: web.Request) -> web.Response:
        try:
            self._load_session(request)
        except SessionError as exc:
            self.log.error(exc)
            return _error(500, "session error")
        try:
            data = await _json_object(request)
            shutdown = _field(data, "option", bool, False)
        except ValueError as exc:
            self.log.error(exc)
            return _error(400, "Invalid request")

        try:
            await asyncio.to_thread(power_off, shutdown)
        except CommandError as exc:
            self.log.error(exc)
            return _error(500, str(exc))

        self.log.message("Shutting down server..." if shutdown else "Restart server...")
        body = {"redirect": "/"}
        if shutdown:
            body["shutdown"] = "Shutting down"
        else:
            body["reboot"] = "rebooting"
        response = web.json_response(body)
        response.del_cookie(COOKIE_NAME, path="/")
        return response

    async def update(self, request: web.Request) -> web.Response:
        distro = await asyncio.to_thread(retrieve_distro_info)
        try:
            updated = await asyncio.to_thread(run_update, distro)
        except UnsupportedDistribution:
            self.log.message("Unsupported distribution")
            return _error(500, "unsupported distribution")
        except CommandError as exc:
            self.log.error(exc)
            return _error(500, str(exc))
        if not updated:
            return web.Response()
        self.log.message("Update script executed")
        return web.json_response({"status": "update script executed"})

    # containers

    async def containers(self, request: web.Request) -> web.Response:
        try:
            containers = await asyncio.to_thread(list_containers)
        except DockerError as exc:
            self.log.error(exc.details or exc.message)
            return _error(500, exc.message)
        return web.json_response([_container_json(c) for c in containers] or None)

    async def toggle(self, request: web.Request) -> web.Response:
        container_id = request.match_info["id"]
        try:
            started = await asyncio.to_thread(toggle_container, container_id)
        except DockerError as exc:
            self.log.error(exc.details or exc.message)
            return _error(500, exc.message)
        action = "started" if started else "stopped"
        self.log.message(f"Container {action}:{container_id}")
        return web.Response(status=204)

    async def restart(self, request: web.Request) -> web.Response:
        container_id = request.match_info["id"]
        try:
            await asyncio.to_thread(restart_container, container_id)
        except DockerError as exc:
            self.log.error(exc.details or exc.message)
            return _error(500, exc.message)
        self.log.message(f"Container restarted:{container_id}")
        return web.Response()

    async def remove(self, request: web.Request) -> web.Response:
        container_id = request.match_info["id"]
        try:
            await asyncio.to_thread(remove_container, container_id)
        except DockerError as exc:
            self.log.error(exc.details or exc.message)
            return _error(500, exc.message)
        self.log.message(f"Container removed:{container_id}")
        return web.Response()

    async def create_docker(self, request: web.Request) -> web.Response:
        try:
            data = await _json_object(request)
            is_run = _field(data, "type", bool, False)
            code = _field(data, "code", str, "")
            name = _field(data, "name", str, "")
        except ValueError as exc:
            self.log.error(exc)
            return _error(400, "Invalid request")
        if is_run:
            return await self._docker_run(request, code)
        return await self._compose(name, code)

    async def _docker_run(self, request: web.Request, code: str) -> web.Response:
        try:
            session = self._load_session(request)
        except SessionError as exc:
            self.log.error(exc)
            return _error(500, "Session error")
        if not session.logged_in:
            return _error(401, "Not authenticated")
        if not is_docker_run(code):
            self.log.message("error: incorrect docker run command")
            return _error(400, "Incorrect docker run command")
        try:
            await asyncio.to_thread(run_docker_command, code)
        except DockerError as exc:
            self.log.error(f"Docker run command failed: {exc.details} | {exc.output}")
            return _error(500, exc.message, details=exc.details, output=exc.output)
        self.log.message("Docker run command executed successfully")
        return web.json_response({"message": "Docker image built successfully"})

    async def _compose(self, name: str, code: str) -> web.Response:
        try:
            await asyncio.to_thread(compose_up, name, code, self.work_dir)
        except DockerError as exc:
            self.log.error(exc.details or exc.message)
            if exc.message == "Failed to create compose.yaml":
                return _error(400, exc.message)
            if exc.message == "Failed to execute docker-compose up":
                return _error(500, exc.message, details=exc.details, output=exc.output)
            return _error(500, exc.message)
        self.log.message("Docker Compose started successfully")
        return web.json_response({"message": "Docker Compose started successfully"})

    # logs

    async def js_log(self, request: web.Request) -> web.Response:
        try:
            data = await _json_object(request)
            is_message = _field(data, "type", bool, False)
            text = _field(data, "message", str, "")
        except ValueError as exc:
            self.log.error(exc)
            return _error(400, "Invalid request")
        if is_message:
            self.log.message(text)
        else:
            self.log.error(text)
        return web.Response()

    async def clear_old_logs(self, request: web.Request) -> web.Response:
        self.log.clear_old_logs()
        return web.Response()


async def fetch_tag(http: aiohttp.ClientSession, url: str) -> str:
    """Return the newest release tag listed at ``url``."""
    from cactudash.versions import fetch_last_tag

    return await fetch_last_tag(http, url)


def create_app(
    debug: bool = False, base_dir: str | Path = ".", log: AppLog | None = None
) -> web.Application:
    """Build the dashboard application serving files from ``base_dir``."""
    base = Path(base_dir)
    log = log or AppLog(base / "logs")
    dash = _Dashboard(debug, base, log)

    log.message(f"Server version: {VERSION}")
    if debug:
        log.message("Running in debug mode")

    app = web.Application()
    static_dir = base / "static"
    if static_dir.is_dir():
        app.router.add_static("/static", static_dir)

    app.router.add_get("/", dash.login_page)
    app.router.add_post("/auth", dash.auth)
    app.router.add_get("/welcome", dash.welcome_page)
    app.router.add_get("/system-info", dash.system_info)
    app.router.add_get("/disk-usage", dash.disk_usage)
    app.router.add_get("/ws", dash.websocket)
    app.router.add_get("/cactu-dash", dash.version)
    app.router.add_get("/lastTag", dash.last_tag)
    app.router.add_post("/power", dash.power)
    app.router.add_post("/logout", dash.logout)
    app.router.add_post("/update", dash.update)
    app.router.add_get("/containers", dash.containers)
    app.router.add_post("/toggle/{id}", dash.toggle)
    app.router.add_post("/restart/{id}", dash.restart)
    app.router.add_post("/remove/{id}", dash.remove)
    app.router.add_post("/log", dash.js_log)
    app.router.add_post("/createDockerType", dash.create_docker)
    app.router.add_post("/clearOldLogs", dash.clear_old_logs)
    return app


def main(argv: Sequence[str] | None = None) -> int:
    """Start the dashboard server on port 3030."""
    args = parse_args(argv)
    base_dir = Path.cwd()
    log = AppLog(base_dir / "logs")

    if not args.debug:
        print(f"Server starting in: {get_ip_addr()}:{PORT}")
        try:
            ready = check_requirements(retrieve_distro_info())
        except (CommandError, UnsupportedDistribution) as exc:
            log.error(exc)
            ready = False
        if not ready:
            raise SystemExit(
                "CactuDash cannot verify Docker installation. "
                "Check logs/logsfile.txt for details."
            )

    web.run_app(create_app(args.debug, base_dir, log), port=PORT)
    return 0