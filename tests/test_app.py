import socket
import subprocess
from unittest import mock

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from cactudash.app import create_app
from cactudash.config import VERSION
from cactudash.logs import AppLog

DEBUG_LOGIN = dict.fromkeys(("username", "password"), "debug")


def _make_site(base):
    sites = base / "sites"
    sites.mkdir()
    (sites / "login.html").write_text("<p>login page</p>", encoding="utf-8")
    (sites / "welcome.html").write_text("<p>welcome page</p>", encoding="utf-8")


def _log_text(base):
    return (base / "logs" / "logsfile.txt").read_text(encoding="utf-8")


@pytest_asyncio.fixture
async def debug_client(tmp_path):
    _make_site(tmp_path)
    app = create_app(debug=True, base_dir=tmp_path, log=AppLog(tmp_path / "logs"))
    async with TestClient(TestServer(app)) as client:
        yield client


@pytest_asyncio.fixture
async def system_client(tmp_path):
    _make_site(tmp_path)
    app = create_app(debug=False, base_dir=tmp_path, log=AppLog(tmp_path / "logs"))
    async with TestClient(TestServer(app)) as client:
        yield client


async def _login(client):
    return await client.post("/auth", json=DEBUG_LOGIN, allow_redirects=False)


@pytest.mark.asyncio
async def test_root_serves_login_page(debug_client):
    resp = await debug_client.get("/")
    assert resp.status == 200
    assert await resp.text() == "<p>login page</p>"


@pytest.mark.asyncio
async def test_version_endpoint(debug_client):
    resp = await debug_client.get("/cactu-dash")
    assert await resp.json() == {"version": VERSION}


@pytest.mark.asyncio
async def test_startup_logs_version(tmp_path):
    _make_site(tmp_path)
    app = create_app(debug=True, base_dir=tmp_path, log=AppLog(tmp_path / "logs"))
    async with TestClient(TestServer(app)) as client:
        resp = await client.get("/cactu-dash")
        assert (await resp.json())["version"] == VERSION
    text = _log_text(tmp_path)
    assert f"Server version: {VERSION}" in text
    assert "Running in debug mode" in text


@pytest.mark.asyncio
async def test_debug_login_redirects_and_opens_welcome(debug_client, tmp_path):
    resp = await _login(debug_client)
    assert resp.status == 302
    assert resp.headers["Location"] == "/welcome"
    assert "session-name" in resp.cookies

    page = await debug_client.get("/welcome", allow_redirects=False)
    assert page.status == 200
    assert await page.text() == "<p>welcome page</p>"
    assert "Successful login in debug mode" in _log_text(tmp_path)


@pytest.mark.asyncio
async def test_debug_login_with_form_data(debug_client):
    resp = await debug_client.post("/auth", data=DEBUG_LOGIN, allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == "/welcome"


@pytest.mark.asyncio
async def test_debug_login_rejects_wrong_credentials(debug_client, tmp_path):
    resp = await debug_client.post(
        "/auth", json={"username": "debug", "password": "password"}, allow_redirects=False
    )
    assert resp.status == 401
    assert await resp.json() == {"error": "invalid credentials"}
    assert "invalid credentials in debug mode" in _log_text(tmp_path)


@pytest.mark.asyncio
async def test_login_rejects_malformed_body(debug_client):
    resp = await debug_client.post(
        "/auth", data=b"{broken", headers={"Content-Type": "application/json"}
    )
    assert resp.status == 400
    assert await resp.json() == {"error": "invalid request"}


@pytest.mark.asyncio
async def test_system_login_rejects_missing_password(system_client):
    resp = await system_client.post("/auth", json={"username": "someone"})
    assert resp.status == 401
    assert await resp.json() == {"error": "invalid credentials"}


@pytest.mark.asyncio
async def test_welcome_requires_login(debug_client):
    resp = await debug_client.get("/welcome", allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == "/"


@pytest.mark.asyncio
async def test_forged_cookie_is_rejected(debug_client):
    debug_client.session.cookie_jar.update_cookies({"session-name": "abc.def"})
    resp = await debug_client.get("/welcome", allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == "/"


@pytest.mark.asyncio
async def test_cookie_from_other_server_is_rejected(debug_client, tmp_path):
    resp = await _login(debug_client)
    cookie = resp.cookies["session-name"].value

    other_base = tmp_path / "other"
    other_base.mkdir()
    _make_site(other_base)
    other = create_app(debug=True, base_dir=other_base, log=AppLog(other_base / "logs"))
    async with TestClient(TestServer(other)) as client:
        client.session.cookie_jar.update_cookies({"session-name": cookie})
        page = await client.get("/welcome", allow_redirects=False)
        assert page.status == 302
        assert page.headers["Location"] == "/"


@pytest.mark.asyncio
async def test_logout_ends_session(debug_client):
    await _login(debug_client)
    resp = await debug_client.post("/logout", allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == "/"
    page = await debug_client.get("/welcome", allow_redirects=False)
    assert page.status == 302


@pytest.mark.asyncio
async def test_js_log_writes_message_and_error(debug_client, tmp_path):
    ok = await debug_client.post("/log", json={"type": True, "message": "hello from js"})
    bad = await debug_client.post("/log", json={"type": False, "message": "broken js"})
    assert ok.status == 200
    assert bad.status == 200
    lines = _log_text(tmp_path).splitlines()
    assert any(line.endswith("|-| hello from js") and not line.startswith("ERROR: ") for line in lines)
    assert any(line.startswith("ERROR: ") and line.endswith("|-| broken js") for line in lines)


@pytest.mark.asyncio
async def test_js_log_rejects_bad_field(debug_client):
    resp = await debug_client.post("/log", json={"type": "yes", "message": "x"})
    assert resp.status == 400
    assert await resp.json() == {"error": "Invalid request"}


@pytest.mark.asyncio
async def test_clear_old_logs_removes_backups(debug_client, tmp_path):
    old = tmp_path / "logs" / "old_logs"
    old.mkdir()
    (old / "backup_logs.txt").write_text("x\n", encoding="utf-8")
    resp = await debug_client.post("/clearOldLogs")
    assert resp.status == 200
    assert not old.exists()


@pytest.mark.asyncio
async def test_disk_usage_reports_sizes(debug_client):
    data = await (await debug_client.get("/disk-usage")).json()
    assert set(data) == {"used", "total", "free"}
    assert data["total"] >= data["free"] >= 0


@pytest.mark.asyncio
async def test_system_info_reports_hostname(debug_client):
    data = await (await debug_client.get("/system-info")).json()
    assert data["hostname"] == socket.gethostname()
    assert isinstance(data["supportStatus"], bool)


@pytest.mark.asyncio
async def test_docker_run_requires_login(debug_client):
    resp = await debug_client.post(
        "/createDockerType", json={"type": True, "code": "docker run hello-world"}
    )
    assert resp.status == 401
    assert await resp.json() == {"error": "Not authenticated"}


@pytest.mark.asyncio
async def test_docker_run_rejects_other_commands(debug_client):
    await _login(debug_client)
    resp = await debug_client.post("/createDockerType", json={"type": True, "code": "ls -l"})
    assert resp.status == 400
    assert await resp.json() == {"error": "Incorrect docker run command"}


@pytest.mark.asyncio
async def test_compose_writes_file_and_reports_failure(debug_client, tmp_path):
    code = "services:\n  web:\n    image: nginx\n"
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("docker-compose")):
        resp = await debug_client.post(
            "/createDockerType", json={"type": False, "code": code, "name": "demo"}
        )
    assert resp.status == 500
    body = await resp.json()
    assert body["error"] == "Failed to execute docker-compose up"
    compose = tmp_path / "workDirectory" / "demo" / "compose.yaml"
    assert compose.read_text(encoding="utf-8") == code


@pytest.mark.asyncio
async def test_containers_lists_parsed_rows(debug_client):
    out = "abc123;nginx;80/tcp;Up 2 hours;web\nshort;line\n"
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout=out)
    with mock.patch("subprocess.run", return_value=done):
        resp = await debug_client.get("/containers")
    assert resp.status == 200
    assert await resp.json() == [
        {"Id": "abc123", "Image": "nginx", "Status": "Up 2 hours", "Name": "web"}
    ]


@pytest.mark.asyncio
async def test_containers_empty_is_null(debug_client):
    done = subprocess.CompletedProcess(args=[], returncode=0, stdout="")
    with mock.patch("subprocess.run", return_value=done):
        resp = await debug_client.get("/containers")
    assert await resp.json() is None


@pytest.mark.asyncio
async def test_toggle_stops_running_container(debug_client):
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        stdout = "true\n" if args[1] == "inspect" else ""
        return subprocess.CompletedProcess(args, 0, stdout=stdout)

    with mock.patch("subprocess.run", side_effect=fake_run):
        resp = await debug_client.post("/toggle/abc123")
    assert resp.status == 204
    assert calls[-1] == ["docker", "stop", "abc123"]


@pytest.mark.asyncio
async def test_restart_failure_is_reported(debug_client):
    error = subprocess.CalledProcessError(1, ["docker", "restart", "abc123"])
    with mock.patch("subprocess.run", side_effect=error):
        resp = await debug_client.post("/restart/abc123")
    assert resp.status == 500
    assert await resp.json() == {"error": "Failed to restart container"}


@pytest.mark.asyncio
async def test_power_reboot_failure(debug_client):
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("reboot")):
        resp = await debug_client.post("/power", json={"option": False})
    assert resp.status == 500
    assert await resp.json() == {"error": "failed to reboot"}


@pytest.mark.asyncio
async def test_power_shutdown_runs_command(debug_client):
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout="")

    with mock.patch("subprocess.run", side_effect=fake_run):
        resp = await debug_client.post("/power", json={"option": True})
    assert resp.status == 200
    assert (await resp.json())["redirect"] == "/"
    assert calls == [["shutdown", "-h", "now"]]


@pytest.mark.asyncio
async def test_websocket_sends_status(debug_client):
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("docker")):
        ws = await debug_client.ws_connect("/ws")
        message = await ws.receive_json(timeout=5)
        await ws.close()
    assert 0.0 <= message["cpu_usage"] <= 100.0
    assert message["containers"] is None