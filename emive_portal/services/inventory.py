"""Stock status view over items, locations and per-location stock rows."""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from emive_portal.core.logging import log_info
from emive_portal.repositories import inventory as inventory_repo

STATUS_OK = "OK"
STATUS_CRITICAL = "CRITICO"
STATUS_NO_BASE = "SEM_BASE"

TIPO_LABELS: dict[str, str] = {
    "INSTALACAO": "Instalação",
    "MANUTENCAO": "Manutenção",
    "URGENCIA": "Urgência",
}


class InventoryError(ValueError):
    pass


class DuplicateProductError(InventoryError):
    pass


def cell_status(stock: Mapping[str, Any] | None) -> str:
    if stock is None:
        return STATUS_NO_BASE
    if int(stock.get("estoque_atual") or 0) < int(stock.get("estoque_minimo") or 0):
        return STATUS_CRITICAL
    return STATUS_OK


def group_stock(
    items: Iterable[Mapping[str, Any]],
    locations: Sequence[Mapping[str, Any]],
    stock_rows: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """Build one entry per item with a cell for every location.

    Each cell carries the stock figures and status for that location; the item
    status is SEM_BASE when it has no stock rows at all.
    """

    by_item: dict[int, dict[int, Mapping[str, Any]]] = {}
    for row in stock_rows:
        by_item.setdefault(int(row["item_id"]), {})[int(row["local_estoque_id"])] = row

    grouped = []
    for item in items:
        rows = by_item.get(int(item["id"]), {})
        cells: dict[int, dict[str, Any]] = {}
        for location in locations:
            stock = rows.get(int(location["id"]))
            cells[int(location["id"])] = {
                "local_estoque_id": int(location["id"]),
                "estoque_minimo": int(stock["estoque_minimo"]) if stock else 0,
                "estoque_atual": int(stock["estoque_atual"]) if stock else 0,
                "status": cell_status(stock),
            }
        if not rows:
            overall = STATUS_NO_BASE
        elif any(cell["status"] == STATUS_CRITICAL for cell in cells.values()):
            overall = STATUS_CRITICAL
        else:
            overall = STATUS_OK
        grouped.append(
            {
                "item_id": int(item["id"]),
                "codigo": item["codigo"],
                "modelo": item.get("modelo") or "",
                "locais": cells,
                "status": overall,
            }
        )
    return grouped


def filter_locations(
    locations: Sequence[Mapping[str, Any]],
    *,
    cidade: str | None = None,
    tipo: str | None = None,
) -> list[dict[str, Any]]:
    selected = [
        dict(location)
        for location in locations
        if (not cidade or cidade == "all" or location.get("cidade") == cidade)
        and (not tipo or tipo == "all" or location.get("tipo") == tipo)
    ]
    return selected or [dict(location) for location in locations]


def filter_grouped(
    grouped: Iterable[Mapping[str, Any]],
    locations: Sequence[Mapping[str, Any]],
    *,
    search: str | None = None,
    status: str | None = None,
    cidade: str | None = None,
    tipo: str | None = None,
) -> list[dict[str, Any]]:
    checked = [int(location["id"]) for location in filter_locations(locations, cidade=cidade, tipo=tipo)]
    needle = (search or "").strip().lower()
    result = []
    for entry in grouped:
        if needle and needle not in str(entry.get("codigo") or "").lower() and needle not in str(
            entry.get("modelo") or ""
        ).lower():
            continue
        if status and status != "all":
            statuses = [entry["locais"][location_id]["status"] for location_id in checked]
            if status == STATUS_NO_BASE:
                if not all(value == STATUS_NO_BASE for value in statuses):
                    continue
            elif status not in statuses:
                continue
        result.append(dict(entry))
    return result


def critical_items(
    grouped: Iterable[Mapping[str, Any]],
    locations: Sequence[Mapping[str, Any]],
    *,
    cidade: str | None = None,
    tipo: str | None = None,
) -> list[dict[str, Any]]:
    checked = [int(location["id"]) for location in filter_locations(locations, cidade=cidade, tipo=tipo)]
    return [
        dict(entry)
        for entry in grouped
        if any(entry["locais"][location_id]["status"] == STATUS_CRITICAL for location_id in checked)
    ]


def stock_stats(grouped: Sequence[Mapping[str, Any]]) -> dict[str, int]:
    return {
        "total": len(grouped),
        "ok": sum(1 for entry in grouped if entry["status"] == STATUS_OK),
        "critico": sum(1 for entry in grouped if entry["status"] == STATUS_CRITICAL),
        "sem_base": sum(1 for entry in grouped if entry["status"] == STATUS_NO_BASE),
    }


def distinct_values(locations: Iterable[Mapping[str, Any]], column: str) -> list[str]:
    return sorted({str(location[column]) for location in locations if location.get(column)})


async def load_grouped() -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    locations = await inventory_repo.list_locations()
    items = await inventory_repo.list_items()
    stock_rows = await inventory_repo.list_stock()
    return group_stock(items, locations, stock_rows), locations


async def _require_item_and_location(item_id: int, location_id: int) -> None:
    if not await inventory_repo.get_item(item_id):
        raise InventoryError("Stock item not found")
    if not await inventory_repo.get_location(location_id):
        raise InventoryError("Stock location not found")


async def update_current_stock(item_id: int, location_id: int, value: int) -> dict[str, Any]:
    if value < 0:
        raise InventoryError("Stock quantity cannot be negative")
    await _require_item_and_location(item_id, location_id)
    stock = await inventory_repo.upsert_stock(item_id, location_id, estoque_atual=value)
    log_info("Current stock updated", item_id=item_id, location_id=location_id, value=value)
    return stock


async def update_minimum_stock(item_id: int, location_id: int, value: int) -> dict[str, Any]:
    if value < 0:
        raise InventoryError("Minimum stock cannot be negative")
    await _require_item_and_location(item_id, location_id)
    return await inventory_repo.upsert_stock(item_id, location_id, estoque_minimo=value)


async def create_product(codigo: str, modelo: str) -> dict[str, Any]:
    codigo = codigo.strip()
    modelo = modelo.strip()
    if not codigo or not modelo:
        raise InventoryError("Product code and model are required")
    if await inventory_repo.get_item_by_code(codigo):
        raise DuplicateProductError(f"A product with code {codigo} already exists")
    item = await inventory_repo.create_item(codigo, modelo)
    log_info("Stock product created", item_id=item["id"], codigo=codigo)
    return item
