from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from emive_portal.core.database import db

_INT_COLUMNS = (
    "id",
    "portoes",
    "portas",
    "cameras",
    "zonas_perimetro",
    "cancelas",
    "catracas",
    "totem_simples",
    "totem_duplo",
    "faciais_hik",
    "faciais_avicam",
    "faciais_outros",
    "dvr_nvr",
    "unidades",
    "quantidade_leitores",
    "supervisor_responsavel_id",
    "project_id",
)
_BOOL_COLUMNS = ("transbordo", "gateway")
_DECIMAL_COLUMNS = ("taxa_ativacao", "mensalidade")
_DATE_COLUMNS = ("data_ativacao", "data_termino")


def _normalise_customer(row: dict[str, Any]) -> dict[str, Any]:
    customer = dict(row)
    for column in _INT_COLUMNS:
        if customer.get(column) is not None:
            customer[column] = int(customer[column])
    for column in _BOOL_COLUMNS:
        if customer.get(column) is not None:
            customer[column] = bool(int(customer[column]))
    for column in _DECIMAL_COLUMNS:
        if customer.get(column) is not None:
            customer[column] = Decimal(str(customer[column]))
    for column in _DATE_COLUMNS:
        value = customer.get(column)
        if isinstance(value, str) and value:
            customer[column] = date.fromisoformat(value[:10])
    return customer


def _prepare(data: dict[str, Any]) -> dict[str, Any]:
    prepared = dict(data)
    for column in _BOOL_COLUMNS:
        if prepared.get(column) is not None:
            prepared[column] = 1 if prepared[column] else 0
    return prepared


async def count_customers() -> int:
    row = await db.fetch_one("SELECT COUNT(*) AS count FROM customer_portfolio")
    return int(row["count"]) if row else 0


async def list_customers() -> list[dict[str, Any]]:
    rows = await db.fetch_all("SELECT * FROM customer_portfolio ORDER BY razao_social")
    return [_normalise_customer(row) for row in rows]


async def list_recent_customers(limit: int = 50) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM customer_portfolio ORDER BY created_at DESC, id DESC LIMIT %s",
        (limit,),
    )
    return [_normalise_customer(row) for row in rows]


async def get_customer_by_id(customer_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM customer_portfolio WHERE id = %s", (customer_id,))
    return _normalise_customer(row) if row else None


async def get_customer_by_contrato(contrato: str) -> Optional[dict[str, Any]]:
    row = await db.fetch_one(
        "SELECT * FROM customer_portfolio WHERE contrato = %s LIMIT 1",
        (contrato,),
    )
    return _normalise_customer(row) if row else None


async def create_customer(**data: Any) -> dict[str, Any]:
    prepared = _prepare(data)
    columns = ", ".join(prepared.keys())
    placeholders = ", ".join(["%s"] * len(prepared))
    customer_id = await db.execute_returning_lastrowid(
        f"INSERT INTO customer_portfolio ({columns}) VALUES ({placeholders})",
        tuple(prepared.values()),
    )
    created = await get_customer_by_id(customer_id)
    if not created:
        raise RuntimeError("Failed to create customer")
    return created


async def update_customer(customer_id: int, **updates: Any) -> dict[str, Any]:
    prepared = _prepare(updates)
    if prepared:
        columns = ", ".join(f"{column} = %s" for column in prepared)
        await db.execute(
            f"UPDATE customer_portfolio SET {columns}, updated_at = CURRENT_TIMESTAMP WHERE id = %s",
            (*prepared.values(), customer_id),
        )
    updated = await get_customer_by_id(customer_id)
    if not updated:
        raise ValueError("Customer not found after update")
    return updated


async def delete_customer(customer_id: int) -> None:
    await db.execute("DELETE FROM customer_portfolio WHERE id = %s", (customer_id,))


def _search_clauses(filters: dict[str, Any]) -> tuple[list[str], list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    search = filters.get("search")
    if search:
        like = f"%{str(search).lower()}%"
        clauses.append(
            "(LOWER(razao_social) LIKE %s OR LOWER(contrato) LIKE %s OR LOWER(COALESCE(cnpj, '')) LIKE %s)"
        )
        params.extend([like, like, like])
    if filters.get("customer_id") is not None:
        clauses.append("id = %s")
        params.append(filters["customer_id"])
    for column in ("filial", "contrato", "sistema", "app", "tipo", "noc"):
        value = filters.get(column)
        if value:
            clauses.append(f"{column} = %s")
            params.append(value)
    for column in ("transbordo", "gateway"):
        value = filters.get(column)
        if value is not None:
            clauses.append(f"{column} = %s")
            params.append(1 if value else 0)
    if filters.get("data_ativacao_inicio"):
        clauses.append("data_ativacao >= %s")
        params.append(filters["data_ativacao_inicio"])
    if filters.get("data_ativacao_fim"):
        clauses.append("data_ativacao <= %s")
        params.append(filters["data_ativacao_fim"])
    return clauses, params


async def search_customers(
    *,
    limit: int = 100,
    offset: int = 0,
    **filters: Any,
) -> tuple[list[dict[str, Any]], int]:
    """Filtered page of customers plus the total count matching the filters."""

    clauses, params = _search_clauses(filters)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    count_row = await db.fetch_one(
        f"SELECT COUNT(*) AS count FROM customer_portfolio {where}",
        tuple(params),
    )
    rows = await db.fetch_all(
        f"SELECT * FROM customer_portfolio {where} ORDER BY razao_social LIMIT %s OFFSET %s",
        (*params, limit, offset),
    )
    total = int(count_row["count"]) if count_row else 0
    return [_normalise_customer(row) for row in rows], total


async def list_documents(customer_id: int) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM customer_documents WHERE customer_id = %s ORDER BY created_at DESC, id DESC",
        (customer_id,),
    )
    return [dict(row) for row in rows]


async def list_documents_for_customers(customer_ids: Sequence[int]) -> dict[int, list[dict[str, Any]]]:
    if not customer_ids:
        return {}
    placeholders = ", ".join(["%s"] * len(customer_ids))
    rows = await db.fetch_all(
        f"SELECT * FROM customer_documents WHERE customer_id IN ({placeholders}) ORDER BY id",
        tuple(customer_ids),
    )
    grouped: dict[int, list[dict[str, Any]]] = {int(cid): [] for cid in customer_ids}
    for row in rows:
        grouped.setdefault(int(row["customer_id"]), []).append(dict(row))
    return grouped


async def get_document(document_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM customer_documents WHERE id = %s", (document_id,))
    return dict(row) if row else None


async def create_document(
    *,
    customer_id: int,
    nome_arquivo: str,
    arquivo_url: str,
    tipo_arquivo: str | None = None,
    tamanho: int | None = None,
    created_by: int | None = None,
) -> dict[str, Any]:
    document_id = await db.execute_returning_lastrowid(
        """
        INSERT INTO customer_documents (customer_id, nome_arquivo, arquivo_url, tipo_arquivo, tamanho, created_by)
        VALUES (%s, %s, %s, %s, %s, %s)
        """,
        (customer_id, nome_arquivo, arquivo_url, tipo_arquivo, tamanho, created_by),
    )
    created = await get_document(document_id)
    if not created:
        raise RuntimeError("Failed to create customer document")
    return created


async def delete_document(document_id: int) -> None:
    await db.execute("DELETE FROM customer_documents WHERE id = %s", (document_id,))
