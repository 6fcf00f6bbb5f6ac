from __future__ import annotations

from datetime import date
from io import BytesIO
from typing import Any, Mapping, Sequence

from openpyxl import Workbook
from openpyxl.styles import Font

from emive_portal.services.inventory import TIPO_LABELS

CRITICAL_SHEET_TITLE = "Itens Críticos"


def critical_headers(locations: Sequence[Mapping[str, Any]]) -> list[str]:
    headers = ["Código", "Modelo/Produto"]
    for location in locations:
        headers.append(f"{location['nome_local']} - Mín")
        headers.append(f"{location['nome_local']} - Atual")
    headers.append("Status")
    return headers


def critical_filename(
    *, cidade: str | None = None, tipo: str | None = None, today: date | None = None
) -> str:
    parts = ["itens_criticos"]
    if cidade and cidade != "all":
        parts.append(cidade)
    if tipo and tipo != "all":
        parts.append(TIPO_LABELS.get(tipo, tipo))
    parts.append((today or date.today()).isoformat())
    return "_".join(parts) + ".xlsx"


def build_critical_workbook(
    items: Sequence[Mapping[str, Any]], locations: Sequence[Mapping[str, Any]]
) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = CRITICAL_SHEET_TITLE
    sheet.append(critical_headers(locations))
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for item in items:
        row: list[Any] = [item["codigo"], item["modelo"]]
        for location in locations:
            stock = item["locais"].get(int(location["id"]), {})
            row.append(stock.get("estoque_minimo", 0))
            row.append(stock.get("estoque_atual", 0))
        row.append(item["status"])
        sheet.append(row)
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()
