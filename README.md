# cactudash

A lightweight HTTP server for looking after a Linux host and its Docker
containers. It offers:

- login with a system account (the user must exist in the passwd
  database and `su` must accept the password),
- the hostname, distribution, architecture and disk usage of `/`,
- CPU usage and the list of Docker containers, pushed over a WebSocket
  every 10 seconds,
- starting, stopping, restarting and removing containers,
- running a `docker run` command, or bringing up a Docker Compose
  project from the text of a `compose.yaml`,
- a system package update, reboot or shutdown,
- lookup of the newest release tag from a configurable tag list.

Supported distributions for updates and Docker installation: Arch,
Debian, Ubuntu and Fedora.

## Installation

```
pip install .
```

## Running

```
cactudash
```

The server listens on port 3030 and prints the local address it can be
reached at. Before starting it checks that `docker --version` works; if
not, on a supported distribution it installs Docker with the package
manager and enables the `docker` service, and it stops with an error if
Docker still cannot be found. Logging in, updating and power actions
need enough privileges to call `su`, the package manager, `reboot` and
`shutdown`.

To try the server without touching the host's accounts:

```
cactudash --debug
```

In debug mode the only accepted login is user `debug` with password
`debug`, and the Docker check at start-up is skipped.

## Routes

| Method | Path | Purpose |
| --- | --- | --- |
| GET | `/` | `sites/login.html` |
| POST | `/auth` | log in (form or JSON with `username`, `password`) |
| GET | `/welcome` | `sites/welcome.html`, only with a valid session |
| POST | `/logout` | end the session |
| GET | `/system-info` | `hostname`, `nameOfOs`, `arch`, `supportStatus` |
| GET | `/disk-usage` | `used`, `total`, `free` in bytes |
| GET | `/ws` | WebSocket with `cpu_usage` and `containers` |
| GET | `/cactu-dash` | server `version` |
| GET | `/lastTag` | newest release tag as `last_tag` |
| GET | `/containers` | list of containers (`Id`, `Image`, `Status`, `Name`) |
| POST | `/toggle/{id}` | stop a running container or start a stopped one |
| POST | `/restart/{id}` | restart a container |
| POST | `/remove/{id}` | remove a container |
| POST | `/createDockerType` | JSON `type`, `code`, `name`: `type` true runs `code` as a `docker run` command (logged-in users only), false writes it to a Compose project and runs `docker-compose up -d` |
| POST | `/update` | upgrade the system packages |
| POST | `/power` | JSON `option`: true shuts down, false reboots |
| POST | `/log` | JSON `type`, `message`: write a message (true) or error (false) to the log |
| POST | `/clearOldLogs` | delete rotated log files |
| GET | `/static/...` | files under `static/`, if that directory exists |

`/lastTag` reads the URL of a JSON list of `{"name": ...}` objects from
the `CACTUDASH_TAGS_URL` environment variable and answers with an error
when it is not set. Tags are compared part by part after a leading `v`.

Only `/welcome` and the `docker run` form of `/createDockerType` check
the login; the other routes answer any client.

## Files

The server works in its current directory:

- `logs/logsfile.txt` holds the application log. When it reaches 100
  lines (checked at start-up and on each login) it is moved to
  `logs/old_logs/<timestamp>_logs.txt` and started afresh.
- `workDirectory/<name>/compose.yaml` holds each Compose project.
- `sites/` and `static/` hold the web pages that are served.

Sessions are kept in a signed cookie, last 15 minutes, and end when the
server restarts, since the signing key is generated at each start.

## Using the pieces directly

The modules can be used on their own:

- `cactudash.app.create_app(debug, base_dir, log)` builds the aiohttp
  application; `cactudash.app.main(argv)` is the command.
- `cactudash.docker`: `list_containers`, `toggle_container`,
  `restart_container`, `remove_container`, `run_docker_command`,
  `compose_up`, `parse_container_lines`; failures raise `DockerError`.
- `cactudash.system`: `run_update`, `check_requirements`,
  `docker_available`, `power_off`, and `update_command`,
  `install_commands`, `power_command` which only build the commands.
- `cactudash.osinfo`: `retrieve_distro_info`, `parse_os_release`,
  `get_ip_addr`.
- `cactudash.auth`: `verify_system_user`, `verify_debug_user`, raising
  `AuthError`.
- `cactudash.sessions.SessionStore`: signed session cookies.
- `cactudash.logs.AppLog`: the rotating log file.
- `cactudash.versions`: `compare_versions`, `newest_tag`,
  `fetch_last_tag`.

## What it does not include

The package ships no web pages: `sites/login.html`, `sites/welcome.html`
and anything under `static/` must be supplied in the working directory.
Without them the server still answers its JSON and WebSocket routes, but
there is no browser interface. No release tag URL is built in either.

## Development

```
pip install -e ".[test]"
pytest
```