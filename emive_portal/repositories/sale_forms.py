from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from emive_portal.core.database import db

_BOOL_FIELDS = ("acessos_tem_camera_int_ext", "possui_cancela", "possui_catraca", "possui_totem")


def _normalise_sale_form(row: dict[str, Any]) -> dict[str, Any]:
    sale_form = dict(row)
    sale_form["id"] = int(sale_form["id"])
    sale_form["project_id"] = int(sale_form["project_id"])
    for field in _BOOL_FIELDS:
        if sale_form.get(field) is not None:
            sale_form[field] = bool(int(sale_form[field]))
    return sale_form


def _prepare(data: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(data)
    for field in _BOOL_FIELDS:
        if prepared.get(field) is not None:
            prepared[field] = 1 if prepared[field] else 0
    return prepared


async def get_sale_form(project_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM sale_forms WHERE project_id = %s", (project_id,))
    return _normalise_sale_form(row) if row else None


async def create_sale_form(*, project_id: int, **fields: Any) -> dict[str, Any]:
    prepared = _prepare(fields)
    prepared["project_id"] = project_id
    columns = ", ".join(prepared.keys())
    placeholders = ", ".join(["%s"] * len(prepared))
    await db.execute(
        f"INSERT INTO sale_forms ({columns}) VALUES ({placeholders})",
        tuple(prepared.values()),
    )
    created = await get_sale_form(project_id)
    if not created:
        raise RuntimeError("Failed to create sale form")
    return created


async def update_sale_form(project_id: int, **updates: Any) -> dict[str, Any]:
    prepared = _prepare(updates)
    if prepared:
        assignments = ", ".join(f"{column} = %s" for column in prepared)
        await db.execute(
            f"UPDATE sale_forms SET {assignments}, updated_at = %s WHERE project_id = %s",
            (*prepared.values(), datetime.utcnow(), project_id),
        )
    updated = await get_sale_form(project_id)
    if not updated:
        raise ValueError("Sale form not found after update")
    return updated
