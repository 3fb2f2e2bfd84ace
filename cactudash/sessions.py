"""Signed cookie sessions for the dashboard login."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

COOKIE_NAME = "session-name"
SESSION_EXPIRATION = timedelta(minutes=15)


class SessionError(Exception):
    """A session cookie is missing, forged, malformed or too old."""


@dataclass
class Session:
    """Login state carried in the session cookie."""

    logged_in: bool = False
    expires_at: datetime | None = None
    server_start_time: datetime | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _dump_time(value: datetime | None) -> str | None:
    return None if value is None else value.isoformat()


def _load_time(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("invalid timestamp")
    return datetime.fromisoformat(value)


class SessionStore:
    """Encodes sessions into HMAC-signed cookies and checks their validity.

    Datetimes are timezone-aware; sessions issued before
    ``server_start_time`` are no longer accepted.
    """

    def __init__(
        self,
        secret: str | bytes,
        max_age: timedelta = SESSION_EXPIRATION,
        server_start_time: datetime | None = None,
    ) -> None:
        key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        if not key:
            raise ValueError("secret must not be empty")
        self._key = key
        self.max_age = max_age
        self.server_start_time = server_start_time or _now()

    @property
    def max_age_seconds(self) -> int:
        """Cookie lifetime in whole seconds."""
        return int(self.max_age.total_seconds())

    def _sign(self, body: str) -> str:
        digest = hmac.new(self._key, body.encode("ascii"), hashlib.sha256).digest()
        return _b64encode(digest)

    def encode(self, session: Session) -> str:
        """Serialise and sign a session as a cookie value."""
        payload = {
            "loggedin": session.logged_in,
            "expires_at": _dump_time(session.expires_at),
            "server_start_time": _dump_time(session.server_start_time),
            "issued": int(time.time()),
        }
        body = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{body}.{self._sign(body)}"

    def decode(self, cookie: str) -> Session:
        """Verify a cookie value and return its session; raise SessionError."""
        body, sep, signature = cookie.rpartition(".")
        if not sep or not body:
            raise SessionError("malformed session cookie")
        try:
            expected = self._sign(body)
        except UnicodeEncodeError as exc:
            raise SessionError("malformed session cookie") from exc
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("ascii")):
            raise SessionError("invalid session signature")
        try:
            data = json.loads(_b64decode(body))
            logged_in = data["loggedin"]
            issued = data["issued"]
            if not isinstance(logged_in, bool) or not isinstance(issued, (int, float)):
                raise ValueError("invalid session fields")
            session = Session(
                logged_in=logged_in,
                expires_at=_load_time(data.get("expires_at")),
                server_start_time=_load_time(data.get("server_start_time")),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise SessionError("malformed session cookie") from exc
        if self.max_age > timedelta(0) and time.time() - issued > self.max_age.total_seconds():
            raise SessionError("expired session cookie")
        return session

    def new_login(self, now: datetime | None = None) -> Session:
        """Return a logged-in session expiring ``max_age`` from now."""
        now = now or _now()
        return Session(
            logged_in=True,
            expires_at=now + self.max_age,
            server_start_time=self.server_start_time,
        )

    def is_valid(self, session: Session, now: datetime | None = None) -> bool:
        """Whether the session is logged in, unexpired and from this server run."""
        now = now or _now()
        if not session.logged_in:
            return False
        if session.expires_at is None or now > session.expires_at:
            return False
        if session.server_start_time is None or session.server_start_time < self.server_start_time:
            return False
        return True