from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Optional

from emive_portal.core.database import db

_PROJECT_DATETIME_FIELDS = (
    "engineering_received_at",
    "engineering_production_at",
    "engineering_completed_at",
    "created_at",
    "updated_at",
)
_PROJECT_DATE_FIELDS = ("prazo_entrega_projeto", "data_assembleia")
_TAP_BOOL_FIELDS = ("interfonia", "observacao_nao_assumir_cameras", "marcacao_croqui_confirmada")


def _coerce_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def _coerce_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _load_json(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def _normalise_project(row: dict[str, Any]) -> dict[str, Any]:
    project = dict(row)
    project["id"] = int(project["id"])
    project["numero_projeto"] = int(project["numero_projeto"])
    if project.get("created_by_user_id") is not None:
        project["created_by_user_id"] = int(project["created_by_user_id"])
    for field in _PROJECT_DATETIME_FIELDS:
        if field in project:
            project[field] = _coerce_datetime(project[field])
    for field in _PROJECT_DATE_FIELDS:
        if field in project:
            project[field] = _coerce_date(project[field])
    project["dados_originais_pre_reenvio"] = _load_json(project.get("dados_originais_pre_reenvio"))
    return project


def _normalise_tap_form(row: dict[str, Any]) -> dict[str, Any]:
    tap_form = dict(row)
    for field in _TAP_BOOL_FIELDS:
        if tap_form.get(field) is not None:
            tap_form[field] = bool(int(tap_form[field]))
    tap_form["marcacao_croqui_itens"] = _load_json(tap_form.get("marcacao_croqui_itens")) or []
    return tap_form


def _prepare_tap(data: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(data)
    for field in _TAP_BOOL_FIELDS:
        if prepared.get(field) is not None:
            prepared[field] = 1 if prepared[field] else 0
    if "marcacao_croqui_itens" in prepared:
        prepared["marcacao_croqui_itens"] = json.dumps(prepared["marcacao_croqui_itens"] or [])
    return prepared


async def next_project_number() -> int:
    row = await db.fetch_one("SELECT MAX(numero_projeto) AS numero FROM projects")
    current = row.get("numero") if row else None
    return int(current or 0) + 1


async def get_project(project_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM projects WHERE id = %s", (project_id,))
    return _normalise_project(row) if row else None


async def list_projects(
    *,
    status: str | None = None,
    engineering_status: str | None = None,
    created_by_user_id: int | None = None,
    search: str | None = None,
    exclude_drafts: bool = False,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        clauses.append("status = %s")
        params.append(status)
    if engineering_status:
        clauses.append("engineering_status = %s")
        params.append(engineering_status)
    if created_by_user_id is not None:
        clauses.append("created_by_user_id = %s")
        params.append(created_by_user_id)
    if exclude_drafts:
        clauses.append("status <> 'RASCUNHO'")
    if search:
        like = f"%{search.strip().lower()}%"
        clauses.append("(LOWER(cliente_condominio_nome) LIKE %s OR CAST(numero_projeto AS CHAR) LIKE %s)")
        params.extend([like, like])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = await db.fetch_all(
        f"SELECT * FROM projects {where} ORDER BY created_at DESC, id DESC",
        tuple(params),
    )
    return [_normalise_project(row) for row in rows]


async def count_projects() -> int:
    row = await db.fetch_one("SELECT COUNT(*) AS count FROM projects")
    return int(row["count"]) if row else 0


async def create_project(**data: Any) -> dict[str, Any]:
    columns = ", ".join(data.keys())
    placeholders = ", ".join(["%s"] * len(data))
    project_id = await db.execute_returning_lastrowid(
        f"INSERT INTO projects ({columns}) VALUES ({placeholders})",
        tuple(data.values()),
    )
    created = await get_project(project_id)
    if not created:
        raise RuntimeError("Failed to create project")
    return created


async def update_project(project_id: int, **updates: Any) -> dict[str, Any]:
    if "dados_originais_pre_reenvio" in updates and updates["dados_originais_pre_reenvio"] is not None:
        updates["dados_originais_pre_reenvio"] = json.dumps(updates["dados_originais_pre_reenvio"])
    if updates:
        assignments = ", ".join(f"{column} = %s" for column in updates)
        await db.execute(
            f"UPDATE projects SET {assignments}, updated_at = %s WHERE id = %s",
            (*updates.values(), datetime.utcnow(), project_id),
        )
    updated = await get_project(project_id)
    if not updated:
        raise ValueError("Project not found after update")
    return updated


async def get_tap_form(project_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM tap_forms WHERE project_id = %s", (project_id,))
    return _normalise_tap_form(row) if row else None


async def upsert_tap_form(project_id: int, **fields: Any) -> dict[str, Any]:
    prepared = _prepare_tap(fields)
    existing = await get_tap_form(project_id)
    if existing:
        if prepared:
            assignments = ", ".join(f"{column} = %s" for column in prepared)
            await db.execute(
                f"UPDATE tap_forms SET {assignments} WHERE project_id = %s",
                (*prepared.values(), project_id),
            )
    else:
        prepared["project_id"] = project_id
        columns = ", ".join(prepared.keys())
        placeholders = ", ".join(["%s"] * len(prepared))
        await db.execute(
            f"INSERT INTO tap_forms ({columns}) VALUES ({placeholders})",
            tuple(prepared.values()),
        )
    tap_form = await get_tap_form(project_id)
    if not tap_form:
        raise RuntimeError("Failed to store TAP form")
    return tap_form


async def add_status_history(
    *,
    project_id: int,
    from_status: str | None,
    to_status: str,
    reason: str | None,
    user_id: int | None,
    user_name: str | None,
) -> None:
    await db.execute(
        """
        INSERT INTO project_status_history
            (project_id, from_status, to_status, reason, changed_by_user_id, changed_by_user_name, changed_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (project_id, from_status, to_status, reason, user_id, user_name, datetime.utcnow()),
    )


async def list_status_history(project_id: int) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM project_status_history WHERE project_id = %s ORDER BY changed_at, id",
        (project_id,),
    )
    return [dict(row, changed_at=_coerce_datetime(row.get("changed_at"))) for row in rows]


async def add_comment(
    *,
    project_id: int,
    user_id: int,
    user_name: str,
    user_role: str | None,
    texto: str,
    is_internal: bool,
) -> dict[str, Any]:
    comment_id = await db.execute_returning_lastrowid(
        """
        INSERT INTO project_comments (project_id, user_id, user_name, user_role, texto, is_internal, created_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        """,
        (project_id, user_id, user_name, user_role, texto, 1 if is_internal else 0, datetime.utcnow()),
    )
    row = await db.fetch_one("SELECT * FROM project_comments WHERE id = %s", (comment_id,))
    if not row:
        raise RuntimeError("Failed to create comment")
    return _normalise_comment(row)


def _normalise_comment(row: dict[str, Any]) -> dict[str, Any]:
    comment = dict(row)
    comment["is_internal"] = bool(int(comment.get("is_internal") or 0))
    comment["created_at"] = _coerce_datetime(comment.get("created_at"))
    return comment


async def list_comments(project_id: int, *, include_internal: bool = True) -> list[dict[str, Any]]:
    internal_clause = "" if include_internal else "AND is_internal = 0"
    rows = await db.fetch_all(
        f"SELECT * FROM project_comments WHERE project_id = %s {internal_clause} ORDER BY created_at, id",
        (project_id,),
    )
    return [_normalise_comment(row) for row in rows]
