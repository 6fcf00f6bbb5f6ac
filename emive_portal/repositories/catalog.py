from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional

from emive_portal.core.database import db

PRICE_FIELDS = (
    "preco_unitario",
    "preco_kit",
    "valor_minimo",
    "valor_locacao",
    "valor_minimo_locacao",
    "valor_instalacao",
)

PRODUCT_COLUMNS = (
    "id_produto",
    "codigo",
    "nome",
    "categoria",
    "subgrupo",
    "unidade",
    "preco_unitario",
    "valor_minimo",
    "valor_locacao",
    "valor_minimo_locacao",
    "valor_instalacao",
    "descricao",
    "adicional",
    "qtd_max",
    "ativo",
)

KIT_COLUMNS = (
    "id_kit",
    "codigo",
    "nome",
    "categoria",
    "descricao",
    "preco_kit",
    "valor_minimo",
    "valor_locacao",
    "valor_minimo_locacao",
    "valor_instalacao",
    "ativo",
)


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return float(value)


def _load_history(value: Any) -> list[dict[str, Any]]:
    if not value:
        return []
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")
    if isinstance(value, str):
        try:
            loaded = json.loads(value)
        except json.JSONDecodeError:
            return []
        return loaded if isinstance(loaded, list) else []
    return list(value)


def _normalise_catalog_row(row: dict[str, Any]) -> dict[str, Any]:
    record = dict(row)
    record["id"] = int(record["id"])
    for field in PRICE_FIELDS:
        if field in record:
            record[field] = _to_float(record[field])
    for flag in ("ativo", "adicional"):
        if flag in record:
            record[flag] = bool(int(record[flag] or 0))
    record["historico_alteracoes"] = _load_history(record.get("historico_alteracoes"))
    return record


def _normalise_rule(row: dict[str, Any]) -> dict[str, Any]:
    rule = dict(row)
    rule["id"] = int(rule["id"])
    rule["percentual"] = _to_float(rule["percentual"])
    return rule


def _prepare(fields: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(fields)
    for flag in ("ativo", "adicional"):
        if flag in prepared and prepared[flag] is not None:
            prepared[flag] = 1 if prepared[flag] else 0
    if "historico_alteracoes" in prepared:
        prepared["historico_alteracoes"] = json.dumps(prepared["historico_alteracoes"] or [], default=str)
    return prepared


async def _insert(table: str, fields: dict[str, Any]) -> int:
    prepared = _prepare(fields)
    now = datetime.utcnow()
    prepared.setdefault("created_at", now)
    prepared.setdefault("updated_at", now)
    columns = ", ".join(prepared)
    placeholders = ", ".join(["%s"] * len(prepared))
    return await db.execute_returning_lastrowid(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        tuple(prepared.values()),
    )


async def _update(table: str, record_id: int, fields: dict[str, Any]) -> None:
    prepared = _prepare(fields)
    if not prepared:
        return
    prepared["updated_at"] = datetime.utcnow()
    assignments = ", ".join(f"{column} = %s" for column in prepared)
    await db.execute(
        f"UPDATE {table} SET {assignments} WHERE id = %s",
        (*prepared.values(), record_id),
    )


async def list_products(
    *,
    categoria: str | None = None,
    ativo: bool | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if categoria:
        clauses.append("categoria = %s")
        params.append(categoria)
    if ativo is not None:
        clauses.append("ativo = %s")
        params.append(1 if ativo else 0)
    if search:
        clauses.append("(LOWER(nome) LIKE %s OR LOWER(COALESCE(codigo, '')) LIKE %s)")
        like = f"%{search.strip().lower()}%"
        params.extend([like, like])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = await db.fetch_all(
        f"SELECT * FROM orcamento_produtos {where} ORDER BY categoria, nome",
        tuple(params),
    )
    return [_normalise_catalog_row(row) for row in rows]


async def get_product(product_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM orcamento_produtos WHERE id = %s", (product_id,))
    return _normalise_catalog_row(row) if row else None


async def create_product(**fields: Any) -> dict[str, Any]:
    product_id = await _insert("orcamento_produtos", fields)
    created = await get_product(product_id)
    if not created:
        raise RuntimeError("Failed to create catalog product")
    return created


async def update_product(product_id: int, **fields: Any) -> dict[str, Any]:
    await _update("orcamento_produtos", product_id, fields)
    updated = await get_product(product_id)
    if not updated:
        raise ValueError("Catalog product not found after update")
    return updated


async def delete_product(product_id: int) -> None:
    await db.execute("DELETE FROM orcamento_kit_itens WHERE produto_id = %s", (product_id,))
    await db.execute("DELETE FROM orcamento_produtos WHERE id = %s", (product_id,))


async def list_priced_products() -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT id, preco_unitario, subgrupo FROM orcamento_produtos WHERE preco_unitario > 0"
    )
    return [
        {"id": int(row["id"]), "preco_unitario": _to_float(row["preco_unitario"]), "subgrupo": row.get("subgrupo")}
        for row in rows
    ]


async def set_product_prices(product_id: int, prices: dict[str, float]) -> None:
    assignments = ", ".join(f"{column} = %s" for column in prices)
    await db.execute(
        f"UPDATE orcamento_produtos SET {assignments}, updated_at = %s WHERE id = %s",
        (*prices.values(), datetime.utcnow(), product_id),
    )


async def list_kits(*, ativo: bool | None = None) -> list[dict[str, Any]]:
    if ativo is None:
        rows = await db.fetch_all("SELECT * FROM orcamento_kits ORDER BY categoria, nome")
    else:
        rows = await db.fetch_all(
            "SELECT * FROM orcamento_kits WHERE ativo = %s ORDER BY categoria, nome",
            (1 if ativo else 0,),
        )
    return [_normalise_catalog_row(row) for row in rows]


async def get_kit(kit_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM orcamento_kits WHERE id = %s", (kit_id,))
    return _normalise_catalog_row(row) if row else None


async def create_kit(**fields: Any) -> dict[str, Any]:
    kit_id = await _insert("orcamento_kits", fields)
    created = await get_kit(kit_id)
    if not created:
        raise RuntimeError("Failed to create catalog kit")
    return created


async def update_kit(kit_id: int, **fields: Any) -> dict[str, Any]:
    await _update("orcamento_kits", kit_id, fields)
    updated = await get_kit(kit_id)
    if not updated:
        raise ValueError("Catalog kit not found after update")
    return updated


async def delete_kit(kit_id: int) -> None:
    await db.execute("DELETE FROM orcamento_kit_itens WHERE kit_id = %s", (kit_id,))
    await db.execute("DELETE FROM orcamento_kits WHERE id = %s", (kit_id,))


async def list_kit_items(kit_ids: Iterable[int] | None = None) -> list[dict[str, Any]]:
    query = """
        SELECT ki.id, ki.kit_id, ki.produto_id, ki.quantidade,
               p.nome AS produto_nome, p.preco_unitario AS produto_preco_unitario
        FROM orcamento_kit_itens AS ki
        LEFT JOIN orcamento_produtos AS p ON p.id = ki.produto_id
    """
    params: tuple[Any, ...] = ()
    ids = list(kit_ids) if kit_ids is not None else None
    if ids is not None:
        if not ids:
            return []
        query += f" WHERE ki.kit_id IN ({', '.join(['%s'] * len(ids))})"
        params = tuple(ids)
    rows = await db.fetch_all(query + " ORDER BY ki.id", params)
    items = []
    for row in rows:
        item = dict(row)
        for field in ("id", "kit_id", "produto_id", "quantidade"):
            item[field] = int(item[field])
        item["produto_preco_unitario"] = _to_float(item.get("produto_preco_unitario"))
        items.append(item)
    return items


async def replace_kit_items(kit_id: int, items: Iterable[dict[str, Any]]) -> None:
    await db.execute("DELETE FROM orcamento_kit_itens WHERE kit_id = %s", (kit_id,))
    rows = [(kit_id, int(item["produto_id"]), int(item["quantidade"])) for item in items]
    if rows:
        await db.execute_many(
            "INSERT INTO orcamento_kit_itens (kit_id, produto_id, quantidade) VALUES (%s, %s, %s)",
            rows,
        )


async def list_pricing_rules() -> list[dict[str, Any]]:
    rows = await db.fetch_all("SELECT * FROM orcamento_regras_precificacao ORDER BY id")
    return [_normalise_rule(row) for row in rows]


async def get_pricing_rule(rule_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM orcamento_regras_precificacao WHERE id = %s", (rule_id,))
    return _normalise_rule(row) if row else None


async def update_pricing_rule(rule_id: int, percentual: float) -> dict[str, Any]:
    await db.execute(
        "UPDATE orcamento_regras_precificacao SET percentual = %s, updated_at = %s WHERE id = %s",
        (percentual, datetime.utcnow(), rule_id),
    )
    updated = await get_pricing_rule(rule_id)
    if not updated:
        raise ValueError("Pricing rule not found after update")
    return updated
