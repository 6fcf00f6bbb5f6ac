from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import Request, Response

from emive_portal.core.config import get_settings
from emive_portal.repositories import auth as auth_repo


@dataclass
class SessionData:
    id: int
    user_id: int
    session_token: str
    csrf_token: str
    created_at: datetime
    expires_at: datetime
    last_seen_at: datetime
    ip_address: str | None
    user_agent: str | None


class SessionManager:
    def __init__(self) -> None:
        self._settings = get_settings()
        self.session_cookie_name = self._settings.session_cookie_name
        self.csrf_cookie_name = f"{self.session_cookie_name}_csrf"
        self.session_ttl = timedelta(hours=12)

    def _is_secure(self) -> bool:
        return self._settings.environment.lower() == "production"

    async def create_session(self, user_id: int, request: Request) -> SessionData:
        now = datetime.utcnow()
        record = await auth_repo.create_session(
            user_id=user_id,
            session_token=secrets_token(),
            csrf_token=secrets_token(),
            created_at=now,
            expires_at=now + self.session_ttl,
            last_seen_at=now,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        return self._map_session(record)

    async def load_session(
        self,
        request: Request,
        *,
        allow_inactive: bool = False,
    ) -> Optional[SessionData]:
        cached: SessionData | None = getattr(request.state, "session", None)
        if cached:
            return cached
        token = request.cookies.get(self.session_cookie_name)
        if not token:
            return None
        record = await auth_repo.get_session_by_token(token)
        if not record:
            return None
        if not allow_inactive and int(record.get("is_active", 0)) != 1:
            return None
        now = datetime.utcnow()
        expires_at = ensure_datetime(record.get("expires_at"))
        if expires_at < now:
            await auth_repo.deactivate_session(record["id"])
            return None
        session = self._map_session(record)
        session.expires_at = now + self.session_ttl
        session.last_seen_at = now
        await auth_repo.update_session(
            session.id,
            last_seen_at=now,
            expires_at=session.expires_at,
        )
        request.state.session = session
        return session

    async def revoke_session(self, session: SessionData) -> None:
        await auth_repo.deactivate_session(session.id)

    def apply_session_cookies(self, response: Response, session: SessionData) -> None:
        max_age = int(self.session_ttl.total_seconds())
        secure = self._is_secure()
        response.set_cookie(
            self.session_cookie_name,
            session.session_token,
            httponly=True,
            secure=secure,
            max_age=max_age,
            samesite="lax",
        )
        response.set_cookie(
            self.csrf_cookie_name,
            session.csrf_token,
            httponly=False,
            secure=secure,
            max_age=max_age,
            samesite="lax",
        )

    def clear_session_cookies(self, response: Response) -> None:
        response.delete_cookie(self.session_cookie_name)
        response.delete_cookie(self.csrf_cookie_name)

    def _map_session(self, record: dict[str, Any]) -> SessionData:
        return SessionData(
            id=int(record["id"]),
            user_id=int(record["user_id"]),
            session_token=record["session_token"],
            csrf_token=record["csrf_token"],
            created_at=ensure_datetime(record.get("created_at")),
            expires_at=ensure_datetime(record.get("expires_at")),
            last_seen_at=ensure_datetime(record.get("last_seen_at")),
            ip_address=record.get("ip_address"),
            user_agent=record.get("user_agent"),
        )


def ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value is None:
        return datetime.utcnow()
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return datetime.strptime(str(value), "%Y-%m-%d %H:%M:%S")


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def secrets_token() -> str:
    return secrets.token_hex(32)


session_manager = SessionManager()
