"""Spreadsheet imports for minimum stock and current stock levels."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence

from openpyxl import load_workbook

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_info, log_warning
from emive_portal.repositories import inventory as inventory_repo

ACCEPTED_EXTENSIONS = (".xlsx", ".xls")

SHEET_TYPES: dict[str, str] = {
    "instalação": "INSTALACAO",
    "manutenção": "MANUTENCAO",
    "urgência": "URGENCIA",
}

FIRST_CELL_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("instalação", "instalacao"), "INSTALACAO"),
    (("manutenção", "manutencao"), "MANUTENCAO"),
    (("urgência", "urgencia"), "URGENCIA"),
)

CITY_MARKERS = ("BH", "VIX", "RIO")
HEADER_SEARCH_ROWS = 20
DEFAULT_MODEL = "Sem modelo"

LOCATION_CODE_MAP: dict[str, tuple[str, str]] = {
    "135000": ("BH", "INSTALACAO"),
    "139000": ("BH", "MANUTENCAO"),
    "225104": ("VIX", "MANUTENCAO"),
    "2205900": ("RIO", "MANUTENCAO"),
    "2250800": ("CD_SR", "INSTALACAO"),
}

ProgressCallback = Callable[[int, int], Optional[Awaitable[None]]]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class StockImportError(ValueError):
    """Raised when an uploaded stock file cannot be imported."""


@dataclass
class MinimumEntry:
    cidade: str
    tipo: str
    minimo: int


@dataclass
class ParsedItem:
    codigo: str
    modelo: str
    estoques: list[MinimumEntry] = field(default_factory=list)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_minimum(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(_text(value))
    return int(match.group(1)) if match else 0


def sheet_type(sheet_name: str, rows: Sequence[Sequence[Any]]) -> str | None:
    lowered = sheet_name.lower()
    for marker, tipo in SHEET_TYPES.items():
        if marker in lowered:
            return tipo
    if rows and rows[0] and rows[0][0]:
        first_cell = _text(rows[0][0]).lower()
        for markers, tipo in FIRST_CELL_TYPES:
            if any(marker in first_cell for marker in markers):
                return tipo
    return None


def _locate_columns(rows: Sequence[Sequence[Any]]) -> tuple[int, int, int, dict[str, int]] | None:
    model_col = -1
    for index, row in enumerate(rows[:HEADER_SEARCH_ROWS]):
        if not row:
            continue
        code_col = -1
        for column, cell in enumerate(row):
            value = _text(cell).lower()
            if "sankhya" in value:
                code_col = column
            if "modelo" in value:
                model_col = column
        if code_col == -1:
            continue
        previous = rows[index - 1] if index > 0 else ()
        cities: dict[str, int] = {}
        for column, cell in enumerate(row):
            value = _text(cell).upper()
            above = _text(previous[column]).upper() if column < len(previous) else ""
            for city in CITY_MARKERS:
                if city in value or city in above:
                    cities[city] = column
        return index, code_col, model_col if model_col != -1 else code_col - 1, cities
    return None


def parse_sheet(
    sheet_name: str,
    rows: Sequence[Sequence[Any]],
    items: dict[str, ParsedItem],
) -> int:
    """Merge one sheet into ``items`` and return the number of data rows read."""

    tipo = sheet_type(sheet_name, rows)
    if not tipo:
        log_warning("Stock sheet type not recognised", sheet=sheet_name)
        return 0
    located = _locate_columns(rows)
    if not located:
        log_warning("Stock sheet headers not found", sheet=sheet_name)
        return 0
    header_index, code_col, model_col, cities = located

    read = 0
    for row in rows[header_index + 1 :]:
        if not row or code_col >= len(row):
            continue
        codigo = _text(row[code_col]).strip()
        if not codigo or codigo in ("undefined", "null"):
            continue
        raw_model = row[model_col] if 0 <= model_col < len(row) else None
        modelo = _text(raw_model).strip() if raw_model not in (None, "") else DEFAULT_MODEL
        item = items.setdefault(codigo, ParsedItem(codigo=codigo, modelo=modelo))
        for cidade, column in cities.items():
            minimo = parse_minimum(row[column]) if column < len(row) else 0
            if minimo > 0:
                item.estoques.append(MinimumEntry(cidade=cidade, tipo=tipo, minimo=minimo))
        read += 1
    return read


def parse_minimum_workbook(content: bytes) -> list[ParsedItem]:
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise StockImportError("Could not read the spreadsheet file") from exc

    items: dict[str, ParsedItem] = {}
    try:
        for sheet in workbook.worksheets:
            rows = [list(row) for row in sheet.iter_rows(values_only=True)]
            parse_sheet(sheet.title, rows, items)
    finally:
        workbook.close()
    if not items:
        raise StockImportError("No valid data found in the spreadsheet")
    return list(items.values())


def validate_filename(filename: str | None) -> str:
    name = (filename or "").strip()
    if not name.lower().endswith(ACCEPTED_EXTENSIONS):
        raise StockImportError("Please upload an Excel file (.xlsx or .xls)")
    return name


def _location_index(locations: Iterable[Mapping[str, Any]]) -> dict[tuple[str, str], int]:
    return {(str(location["cidade"]), str(location["tipo"])): int(location["id"]) for location in locations}


async def _report(callback: ProgressCallback | None, processed: int, total: int) -> None:
    if callback is None:
        return
    result = callback(processed, total)
    if result is not None:
        await result


def _summary(items_processed: int, stock_records: int) -> dict[str, Any]:
    return {
        "items_processed": items_processed,
        "stock_records": stock_records,
        "message": (
            f"Importação concluída: {items_processed} produtos processados, "
            f"{stock_records} registros de estoque criados/atualizados."
        ),
    }


async def import_minimums(
    items: Sequence[ParsedItem],
    *,
    filename: str,
    user_id: int | None,
    progress: ProgressCallback | None = None,
    batch_size: int | None = None,
) -> dict[str, Any]:
    """Upsert parsed minimum-stock rows in batches, keeping current stock untouched."""

    if not items:
        raise StockImportError("No valid data found in the spreadsheet")
    size = max(1, batch_size or get_settings().stock_import_batch_size)
    locations = _location_index(await inventory_repo.list_locations())

    processed = 0
    stock_records = 0
    total = len(items)
    for start in range(0, total, size):
        for parsed in items[start : start + size]:
            item = await inventory_repo.upsert_item(parsed.codigo, parsed.modelo)
            for entry in parsed.estoques:
                location_id = locations.get((entry.cidade, entry.tipo))
                if location_id is None:
                    log_warning(
                        "Stock location not found", cidade=entry.cidade, tipo=entry.tipo, codigo=parsed.codigo
                    )
                    continue
                await inventory_repo.upsert_stock(item["id"], location_id, estoque_minimo=entry.minimo)
                stock_records += 1
            processed += 1
        await _report(progress, processed, total)

    await inventory_repo.record_import(
        arquivo_nome=filename,
        itens_importados=processed,
        importado_por=user_id,
        tipo_importacao="MINIMO",
    )
    log_info("Minimum stock import completed", filename=filename, items=processed, stock_records=stock_records)
    return _summary(processed, stock_records)


async def import_stock_levels(
    rows: Sequence[Mapping[str, Any]],
    *,
    filename: str,
    user_id: int | None,
) -> dict[str, Any]:
    if not rows:
        raise StockImportError("Invalid stock data")
    locations = _location_index(await inventory_repo.list_locations())

    grouped: dict[str, dict[str, Any]] = {}
    for row in rows:
        codigo = _text(row.get("codigo")).strip()
        if not codigo or codigo in ("undefined", "null"):
            continue
        mapped = LOCATION_CODE_MAP.get(_text(row.get("localCode")).strip())
        if not mapped:
            log_warning("Unmapped stock location code", local_code=row.get("localCode"))
            continue
        location_id = locations.get(mapped)
        if location_id is None:
            log_warning("Stock location not found", cidade=mapped[0], tipo=mapped[1])
            continue
        entry = grouped.setdefault(
            codigo, {"modelo": row.get("modelo") or DEFAULT_MODEL, "estoques": {}}
        )
        quantity = float(row.get("estoque") or 0)
        entry["estoques"][location_id] = entry["estoques"].get(location_id, 0) + quantity

    items_processed = 0
    stock_records = 0
    for codigo, data in grouped.items():
        item = await inventory_repo.upsert_item(codigo, data["modelo"])
        items_processed += 1
        for location_id, quantity in data["estoques"].items():
            await inventory_repo.upsert_stock(item["id"], location_id, estoque_atual=math.floor(quantity))
            stock_records += 1

    await inventory_repo.record_import(
        arquivo_nome=filename,
        itens_importados=items_processed,
        importado_por=user_id,
        tipo_importacao="ATUAL",
    )
    log_info("Stock level import completed", filename=filename, items=items_processed, stock_records=stock_records)
    return _summary(items_processed, stock_records)
