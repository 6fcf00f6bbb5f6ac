from __future__ import annotations

import json
from typing import Any, Iterable, Optional

from emive_portal.core.database import db
from emive_portal.security.passwords import hash_password


def _normalise_user(row: dict[str, Any]) -> dict[str, Any]:
    user = dict(row)
    user["id"] = int(user["id"])
    for flag in ("must_change_password", "is_active"):
        if flag in user and user[flag] is not None:
            user[flag] = bool(int(user[flag]))
    filiais = user.get("filiais")
    if isinstance(filiais, (str, bytes)):
        try:
            filiais = json.loads(filiais)
        except ValueError:
            filiais = []
    user["filiais"] = [str(item) for item in filiais or []]
    return user


async def get_user_by_id(user_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM users WHERE id = %s", (user_id,))
    return _normalise_user(row) if row else None


async def get_user_by_email(email: str) -> Optional[dict[str, Any]]:
    row = await db.fetch_one(
        "SELECT * FROM users WHERE LOWER(email) = LOWER(%s) LIMIT 1",
        (email.strip(),),
    )
    return _normalise_user(row) if row else None


async def list_users(*, role: str | None = None, include_inactive: bool = False) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if role:
        clauses.append("role = %s")
        params.append(role)
    if not include_inactive:
        clauses.append("is_active = 1")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = await db.fetch_all(f"SELECT * FROM users {where} ORDER BY nome", tuple(params))
    return [_normalise_user(row) for row in rows]


async def list_emails_for_role(role: str) -> list[str]:
    rows = await db.fetch_all(
        "SELECT email FROM users WHERE role = %s AND is_active = 1",
        (role,),
    )
    return [str(row["email"]) for row in rows if row.get("email")]


async def create_user(
    *,
    email: str,
    nome: str,
    password: str,
    role: str,
    telefone: str | None = None,
    filial: str | None = None,
    filiais: Iterable[str] | None = None,
    must_change_password: bool = True,
) -> dict[str, Any]:
    user_id = await db.execute_returning_lastrowid(
        """
        INSERT INTO users (email, nome, telefone, filial, filiais, role, password_hash, must_change_password)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            email.strip().lower(),
            nome,
            telefone,
            filial,
            json.dumps(list(filiais or [])),
            role,
            hash_password(password),
            1 if must_change_password else 0,
        ),
    )
    created = await get_user_by_id(user_id)
    if not created:
        raise RuntimeError("Failed to create user")
    return created


async def update_user(user_id: int, **updates: Any) -> dict[str, Any]:
    if "filiais" in updates and updates["filiais"] is not None:
        updates["filiais"] = json.dumps(list(updates["filiais"]))
    for flag in ("must_change_password", "is_active"):
        if flag in updates and updates[flag] is not None:
            updates[flag] = 1 if updates[flag] else 0
    if updates:
        columns = ", ".join(f"{column} = %s" for column in updates)
        await db.execute(
            f"UPDATE users SET {columns}, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
            (*updates.values(), user_id),
        )
    updated = await get_user_by_id(user_id)
    if not updated:
        raise ValueError("User not found")
    return updated


async def set_user_password(user_id: int, password: str, *, must_change: bool = False) -> None:
    await db.execute(
        "UPDATE users SET password_hash = %s, must_change_password = %s WHERE id = %s",
        (hash_password(password), 1 if must_change else 0, user_id),
    )
