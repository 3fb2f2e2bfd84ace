"""Login credential checks."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field

_DEBUG_LOGIN = ("debug", "debug")


class AuthError(Exception):
    """Login refused; the message gives the reason for the log."""


@dataclass(frozen=True)
class Credentials:
    """A username and password from the login form."""

    username: str = ""
    password: str = field(default="", repr=False)


def verify_system_user(credentials: Credentials) -> None:
    """Check the credentials against the host's user accounts.

    The user must exist in the passwd database and ``su`` must accept the
    password. Raises AuthError otherwise.
    """
    if not credentials.username or not credentials.password:
        raise AuthError("invalid credentials")

    try:
        entry = subprocess.run(
            ["getent", "passwd", credentials.username],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise AuthError("invalid user") from exc
    if not entry.stdout:
        raise AuthError("invalid user")

    try:
        subprocess.run(
            ["su", "-", credentials.username, "-c", "exit"],
            input=credentials.password + "\n",
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise AuthError("invalid password") from exc


def verify_debug_user(credentials: Credentials) -> None:
    """Accept only the built-in debug login; raise AuthError otherwise."""
    if (credentials.username, credentials.password) != _DEBUG_LOGIN:
        raise AuthError("invalid credentials in debug mode")