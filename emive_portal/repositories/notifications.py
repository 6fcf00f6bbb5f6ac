from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from emive_portal.core.database import db


def _normalise_notification(row: dict[str, Any]) -> dict[str, Any]:
    notification = dict(row)
    notification["id"] = int(notification["id"])
    notification["lido"] = bool(int(notification.get("lido") or 0))
    return notification


async def create_notification(
    *,
    user_id: int,
    kind: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
) -> int:
    return await db.execute_returning_lastrowid(
        """
        INSERT INTO notifications (user_id, kind, title, message, entity_type, entity_id, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (user_id, kind, title, message, entity_type, entity_id, datetime.utcnow()),
    )


async def create_for_users(
    user_ids: Iterable[int],
    *,
    kind: str,
    title: str,
    message: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
) -> int:
    now = datetime.utcnow()
    rows = [
        (user_id, kind, title, message, entity_type, entity_id, now)
        for user_id in dict.fromkeys(user_ids)
    ]
    await db.execute_many(
        """
        INSERT INTO notifications (user_id, kind, title, message, entity_type, entity_id, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        rows,
    )
    return len(rows)


async def list_for_user(user_id: int, *, unread_only: bool = False, limit: int = 50) -> list[dict[str, Any]]:
    unread_clause = "AND lido = 0" if unread_only else ""
    rows = await db.fetch_all(
        f"""
        SELECT * FROM notifications
        WHERE user_id = %s {unread_clause}
        ORDER BY lido ASC, created_at DESC, id DESC
        LIMIT %s
        """,
        (user_id, limit),
    )
    return [_normalise_notification(row) for row in rows]


async def count_unread(user_id: int) -> int:
    row = await db.fetch_one(
        "SELECT COUNT(*) AS count FROM notifications WHERE user_id = %s AND lido = 0",
        (user_id,),
    )
    return int(row["count"]) if row else 0


async def mark_read(notification_id: int, user_id: int) -> bool:
    row = await db.fetch_one(
        "SELECT id FROM notifications WHERE id = %s AND user_id = %s",
        (notification_id, user_id),
    )
    if not row:
        return False
    await db.execute(
        "UPDATE notifications SET lido = 1, lido_em = %s WHERE id = %s",
        (datetime.utcnow(), notification_id),
    )
    return True


async def mark_all_read(user_id: int) -> None:
    await db.execute(
        "UPDATE notifications SET lido = 1, lido_em = %s WHERE user_id = %s AND lido = 0",
        (datetime.utcnow(), user_id),
    )
