"""Customer portfolio table behaviour: termination dates, column filters, sorting."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Literal, Mapping, Sequence

from dateutil.relativedelta import relativedelta

CONTRACT_TERM_MONTHS = 36

SortDirection = Literal["asc", "desc"]

TEXT_COLUMNS = ("contrato", "razao_social", "filial")
DATE_COLUMNS = ("data_ativacao", "data_termino")
NUMBER_COLUMNS = ("taxa_ativacao", "portoes", "zonas_perimetro", "cameras", "mensalidade")
OPTIONAL_NUMBER_COLUMNS = ("taxa_ativacao", "mensalidade")
FILTERABLE_COLUMNS = TEXT_COLUMNS + DATE_COLUMNS + NUMBER_COLUMNS


def _as_date(value: Any) -> date | None:
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


def format_date(value: Any) -> str:
    parsed = _as_date(value)
    return parsed.strftime("%d/%m/%Y") if parsed else "-"


def _number_text(value: Any) -> str:
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def termination_date(customer: Mapping[str, Any]) -> date | None:
    """Contract end: explicit ``data_termino`` or activation plus 36 months."""

    explicit = _as_date(customer.get("data_termino"))
    if explicit:
        return explicit
    activation = _as_date(customer.get("data_ativacao"))
    if activation:
        return activation + relativedelta(months=CONTRACT_TERM_MONTHS)
    return None


def matches_search(customer: Mapping[str, Any], search: str | None) -> bool:
    if not search:
        return True
    needle = search.strip().lower()
    if not needle:
        return True
    return any(
        needle in str(customer.get(column) or "").lower()
        for column in ("razao_social", "contrato", "filial")
    )


def matches_column_filter(customer: Mapping[str, Any], column: str, value: str) -> bool:
    if column not in FILTERABLE_COLUMNS:
        raise ValueError(f"Unsupported filter column {column}")
    if value == "" or value == "all":
        return True
    if column in TEXT_COLUMNS:
        text = customer.get(column) or ("-" if column == "filial" else "")
        return value.lower() in str(text).lower()
    if column == "data_ativacao":
        return value in format_date(customer.get("data_ativacao"))
    if column == "data_termino":
        return value in format_date(termination_date(customer))
    raw = customer.get(column)
    if column in OPTIONAL_NUMBER_COLUMNS and not raw:
        return value == "-"
    return value in _number_text(raw if raw is not None else 0)


def apply_filters(
    customers: Iterable[Mapping[str, Any]],
    *,
    search: str | None = None,
    column_filters: Mapping[str, str] | None = None,
) -> list[dict[str, Any]]:
    result = []
    for customer in customers:
        if not matches_search(customer, search):
            continue
        if column_filters and not all(
            matches_column_filter(customer, column, value)
            for column, value in column_filters.items()
        ):
            continue
        result.append(dict(customer))
    return result


def _sort_key(customer: Mapping[str, Any], column: str) -> Any:
    if column in TEXT_COLUMNS:
        text = str(customer.get(column) or "")
        return (text.casefold(), text)
    if column == "data_ativacao":
        parsed = _as_date(customer.get(column))
        return parsed.toordinal() if parsed else 0
    if column == "data_termino":
        parsed = termination_date(customer)
        return parsed.toordinal() if parsed else 0
    return float(customer.get(column) or 0)


def sort_customers(
    customers: Sequence[Mapping[str, Any]],
    column: str | None,
    direction: SortDirection | None,
) -> list[dict[str, Any]]:
    rows = [dict(customer) for customer in customers]
    if not column or not direction:
        return rows
    if column not in FILTERABLE_COLUMNS:
        raise ValueError(f"Unsupported sort column {column}")
    return sorted(rows, key=lambda row: _sort_key(row, column), reverse=direction == "desc")


def next_sort_state(
    current_column: str | None,
    current_direction: SortDirection | None,
    clicked: str,
) -> tuple[str | None, SortDirection | None]:
    """Header click cycle: ascending, then descending, then unsorted."""

    if current_column == clicked:
        if current_direction == "asc":
            return clicked, "desc"
        if current_direction == "desc":
            return None, None
    return clicked, "asc"


def distinct_values(customers: Iterable[Mapping[str, Any]], column: str) -> list[str]:
    if column not in TEXT_COLUMNS:
        raise ValueError(f"Unsupported column {column}")
    values = {
        str(customer.get(column) or ("-" if column == "filial" else ""))
        for customer in customers
    }
    return sorted(value for value in values if value)


def paginate(rows: Sequence[dict[str, Any]], page: int, page_size: int) -> dict[str, Any]:
    total = len(rows)
    start = max(page - 1, 0) * page_size
    items = list(rows[start : start + page_size])
    return {
        "total": total,
        "page": page,
        "page_size": page_size,
        "items": items,
        "has_more": start + page_size < total,
    }


def with_termination(customer: Mapping[str, Any]) -> dict[str, Any]:
    enriched = dict(customer)
    enriched["data_termino_calculada"] = termination_date(customer)
    return enriched
