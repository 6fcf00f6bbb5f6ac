from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from emive_portal.core.database import db


def _normalise_location(row: dict[str, Any]) -> dict[str, Any]:
    location = dict(row)
    location["id"] = int(location["id"])
    return location


def _normalise_item(row: dict[str, Any]) -> dict[str, Any]:
    item = dict(row)
    item["id"] = int(item["id"])
    return item


def _normalise_stock(row: dict[str, Any]) -> dict[str, Any]:
    stock = dict(row)
    for field in ("id", "item_id", "local_estoque_id", "estoque_minimo", "estoque_atual"):
        if stock.get(field) is not None:
            stock[field] = int(stock[field])
    return stock


async def list_locations() -> list[dict[str, Any]]:
    rows = await db.fetch_all("SELECT * FROM locais_estoque ORDER BY cidade, tipo")
    return [_normalise_location(row) for row in rows]


async def get_location(location_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM locais_estoque WHERE id = %s", (location_id,))
    return _normalise_location(row) if row else None


async def list_items() -> list[dict[str, Any]]:
    rows = await db.fetch_all("SELECT * FROM estoque_itens ORDER BY modelo")
    return [_normalise_item(row) for row in rows]


async def get_item(item_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM estoque_itens WHERE id = %s", (item_id,))
    return _normalise_item(row) if row else None


async def get_item_by_code(codigo: str) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM estoque_itens WHERE codigo = %s", (codigo,))
    return _normalise_item(row) if row else None


async def create_item(codigo: str, modelo: str) -> dict[str, Any]:
    now = datetime.utcnow()
    item_id = await db.execute_returning_lastrowid(
        "INSERT INTO estoque_itens (codigo, modelo, created_at, updated_at) VALUES (%s, %s, %s, %s)",
        (codigo, modelo, now, now),
    )
    created = await get_item(item_id)
    if not created:
        raise RuntimeError("Failed to create stock item")
    return created


async def upsert_item(codigo: str, modelo: str) -> dict[str, Any]:
    existing = await get_item_by_code(codigo)
    if not existing:
        return await create_item(codigo, modelo)
    if existing.get("modelo") != modelo:
        await db.execute(
            "UPDATE estoque_itens SET modelo = %s, updated_at = %s WHERE id = %s",
            (modelo, datetime.utcnow(), existing["id"]),
        )
        existing["modelo"] = modelo
    return existing


async def list_stock() -> list[dict[str, Any]]:
    rows = await db.fetch_all("SELECT * FROM estoque")
    return [_normalise_stock(row) for row in rows]


async def get_stock(item_id: int, location_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one(
        "SELECT * FROM estoque WHERE item_id = %s AND local_estoque_id = %s",
        (item_id, location_id),
    )
    return _normalise_stock(row) if row else None


async def upsert_stock(
    item_id: int,
    location_id: int,
    *,
    estoque_minimo: int | None = None,
    estoque_atual: int | None = None,
) -> dict[str, Any]:
    """Write one item/location stock row, leaving unspecified figures untouched.

    New rows start at zero for whichever figure was not given.
    """

    existing = await get_stock(item_id, location_id)
    now = datetime.utcnow()
    if existing:
        updates: dict[str, Any] = {}
        if estoque_minimo is not None:
            updates["estoque_minimo"] = estoque_minimo
        if estoque_atual is not None:
            updates["estoque_atual"] = estoque_atual
        if updates:
            assignments = ", ".join(f"{column} = %s" for column in updates)
            await db.execute(
                f"UPDATE estoque SET {assignments}, updated_at = %s WHERE id = %s",
                (*updates.values(), now, existing["id"]),
            )
            existing.update(updates)
        return existing
    await db.execute(
        """
        INSERT INTO estoque (item_id, local_estoque_id, estoque_minimo, estoque_atual, updated_at)
        VALUES (%s, %s, %s, %s, %s)
        """,
        (item_id, location_id, estoque_minimo or 0, estoque_atual or 0, now),
    )
    created = await get_stock(item_id, location_id)
    if not created:
        raise RuntimeError("Failed to store stock row")
    return created


async def record_import(
    *,
    arquivo_nome: str,
    itens_importados: int,
    importado_por: int | None,
    tipo_importacao: str = "MINIMO",
) -> int:
    return await db.execute_returning_lastrowid(
        """
        INSERT INTO estoque_importacoes (arquivo_nome, tipo_importacao, itens_importados, importado_por, created_at)
        VALUES (%s, %s, %s, %s, %s)
        """,
        (arquivo_nome, tipo_importacao, itens_importados, importado_por, datetime.utcnow()),
    )


async def list_imports(limit: int = 50) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        """
        SELECT i.*, u.nome AS importado_por_nome
        FROM estoque_importacoes AS i
        LEFT JOIN users AS u ON u.id = i.importado_por
        ORDER BY i.created_at DESC, i.id DESC
        LIMIT %s
        """,
        (limit,),
    )
    return [dict(row) for row in rows]
