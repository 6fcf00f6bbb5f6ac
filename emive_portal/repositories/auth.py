from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from emive_portal.core.database import db


async def create_session(
    *,
    user_id: int,
    session_token: str,
    csrf_token: str,
    created_at: datetime,
    expires_at: datetime,
    last_seen_at: datetime,
    ip_address: str | None,
    user_agent: str | None,
) -> dict[str, Any]:
    await db.execute(
        """
        INSERT INTO user_sessions (
            user_id,
            session_token,
            csrf_token,
            created_at,
            expires_at,
            last_seen_at,
            ip_address,
            user_agent,
            is_active
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, 1)
        """,
        (
            user_id,
            session_token,
            csrf_token,
            created_at,
            expires_at,
            last_seen_at,
            ip_address,
            user_agent,
        ),
    )
    record = await get_session_by_token(session_token)
    if not record:
        raise RuntimeError("Failed to create session")
    return record


async def get_session_by_token(token: str) -> Optional[dict[str, Any]]:
    return await db.fetch_one(
        "SELECT * FROM user_sessions WHERE session_token = %s", (token,)
    )


async def update_session(
    session_id: int,
    *,
    last_seen_at: datetime | None = None,
    expires_at: datetime | None = None,
    csrf_token: str | None = None,
    is_active: Optional[bool] = None,
) -> None:
    updates: list[str] = []
    params: list[Any] = []
    if last_seen_at is not None:
        updates.append("last_seen_at = %s")
        params.append(last_seen_at)
    if expires_at is not None:
        updates.append("expires_at = %s")
        params.append(expires_at)
    if csrf_token is not None:
        updates.append("csrf_token = %s")
        params.append(csrf_token)
    if is_active is not None:
        updates.append("is_active = %s")
        params.append(1 if is_active else 0)
    if not updates:
        return
    params.append(session_id)
    await db.execute(
        f"UPDATE user_sessions SET {', '.join(updates)} WHERE id = %s",
        tuple(params),
    )


async def deactivate_session(session_id: int) -> None:
    await update_session(session_id, is_active=False)


async def deactivate_user_sessions(user_id: int) -> None:
    await db.execute(
        "UPDATE user_sessions SET is_active = 0 WHERE user_id = %s",
        (user_id,),
    )


async def register_login_attempt(
    identifier: str, *, window_seconds: int, max_attempts: int
) -> bool:
    now = datetime.utcnow()
    row = await db.fetch_one(
        "SELECT * FROM login_rate_limits WHERE identifier = %s",
        (identifier,),
    )
    if not row:
        await db.execute(
            "INSERT INTO login_rate_limits (identifier, window_start, attempts) VALUES (%s, %s, %s)",
            (identifier, now, 1),
        )
        return True

    window_start = row["window_start"]
    if isinstance(window_start, datetime):
        window_start_dt = window_start
    else:
        window_start_dt = datetime.fromisoformat(str(window_start))

    if now - window_start_dt > timedelta(seconds=window_seconds):
        await db.execute(
            "UPDATE login_rate_limits SET window_start = %s, attempts = %s WHERE identifier = %s",
            (now, 1, identifier),
        )
        return True

    attempts = int(row["attempts"]) + 1
    await db.execute(
        "UPDATE login_rate_limits SET attempts = %s WHERE identifier = %s",
        (attempts, identifier),
    )
    return attempts <= max_attempts


async def clear_login_attempts(identifier: str) -> None:
    await db.execute(
        "DELETE FROM login_rate_limits WHERE identifier = %s",
        (identifier,),
    )
