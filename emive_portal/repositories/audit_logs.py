from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from emive_portal.core.database import db


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def _serialise(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=_default)


def _deserialise(value: Any) -> Any:
    if value in (None, "", b""):
        return None
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


async def create_audit_log(
    *,
    user_id: int | None,
    action: str,
    entity_type: str | None = None,
    entity_id: int | None = None,
    previous_value: Any = None,
    new_value: Any = None,
    metadata: dict[str, Any] | None = None,
    api_key: str | None = None,
    ip_address: str | None = None,
) -> None:
    await db.execute(
        """
        INSERT INTO audit_logs (user_id, action, entity_type, entity_id, previous_value, new_value, metadata, api_key, ip_address, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            user_id,
            action,
            entity_type,
            entity_id,
            _serialise(previous_value),
            _serialise(new_value),
            _serialise(metadata or {}),
            api_key,
            ip_address,
            datetime.utcnow(),
        ),
    )


async def list_audit_logs(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if entity_type:
        clauses.append("entity_type = %s")
        params.append(entity_type)
    if entity_id is not None:
        clauses.append("entity_id = %s")
        params.append(entity_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    params.append(limit)
    rows = await db.fetch_all(
        f"SELECT * FROM audit_logs {where} ORDER BY created_at DESC, id DESC LIMIT %s",
        tuple(params),
    )
    entries = []
    for row in rows:
        entry = dict(row)
        for key in ("previous_value", "new_value", "metadata"):
            entry[key] = _deserialise(entry.get(key))
        entries.append(entry)
    return entries
