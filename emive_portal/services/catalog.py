from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping

from emive_portal.core.logging import log_info
from emive_portal.repositories import catalog as catalog_repo


class CatalogError(ValueError):
    pass


def history_entry(
    previous: Mapping[str, Any], changes: Mapping[str, Any], user: Mapping[str, Any]
) -> dict[str, Any] | None:
    """Describe the fields that actually changed, or ``None`` when nothing did."""

    diff = {
        field: {"de": previous.get(field), "para": value}
        for field, value in changes.items()
        if previous.get(field) != value
    }
    if not diff:
        return None
    return {
        "data": datetime.utcnow().isoformat(),
        "usuario_id": user.get("id"),
        "usuario": user.get("nome"),
        "alteracoes": diff,
    }


def _require_name(fields: Mapping[str, Any]) -> None:
    if "nome" in fields and not str(fields.get("nome") or "").strip():
        raise CatalogError("Name is required")


async def create_product(fields: Mapping[str, Any], user: Mapping[str, Any]) -> dict[str, Any]:
    if not str(fields.get("nome") or "").strip():
        raise CatalogError("Name is required")
    product = await catalog_repo.create_product(
        **fields, updated_by=user.get("id"), updated_by_name=user.get("nome")
    )
    log_info("Catalog product created", product_id=product["id"], user_id=user.get("id"))
    return product


async def update_product(
    product: Mapping[str, Any], changes: Mapping[str, Any], user: Mapping[str, Any]
) -> dict[str, Any]:
    _require_name(changes)
    entry = history_entry(product, changes, user)
    if entry is None:
        return dict(product)
    return await catalog_repo.update_product(
        product["id"],
        **changes,
        historico_alteracoes=[*product.get("historico_alteracoes", []), entry],
        updated_by=user.get("id"),
        updated_by_name=user.get("nome"),
    )


def _clean_items(items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [
        {"produto_id": int(item["produto_id"]), "quantidade": max(1, int(item.get("quantidade") or 1))}
        for item in items
        if item.get("produto_id")
    ]


def component_total(items: Iterable[Mapping[str, Any]]) -> float:
    total = sum(
        int(item.get("quantidade") or 0) * float(item.get("produto_preco_unitario") or 0) for item in items
    )
    return round(total, 2)


def attach_items(kits: Iterable[Mapping[str, Any]], items: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    by_kit: dict[int, list[dict[str, Any]]] = {}
    for item in items:
        by_kit.setdefault(int(item["kit_id"]), []).append(dict(item))
    result = []
    for kit in kits:
        enriched = dict(kit)
        enriched["itens"] = by_kit.get(int(kit["id"]), [])
        enriched["total_componentes"] = component_total(enriched["itens"])
        result.append(enriched)
    return result


async def list_kits(*, ativo: bool | None = None) -> list[dict[str, Any]]:
    kits = await catalog_repo.list_kits(ativo=ativo)
    items = await catalog_repo.list_kit_items([kit["id"] for kit in kits])
    return attach_items(kits, items)


async def get_kit(kit_id: int) -> dict[str, Any] | None:
    kit = await catalog_repo.get_kit(kit_id)
    if not kit:
        return None
    return attach_items([kit], await catalog_repo.list_kit_items([kit_id]))[0]


async def save_kit(
    kit: Mapping[str, Any] | None,
    fields: Mapping[str, Any],
    items: Iterable[Mapping[str, Any]] | None,
    user: Mapping[str, Any],
) -> dict[str, Any]:
    """Create or update a kit; a given item list replaces the existing one."""

    _require_name(fields)
    if kit is None:
        if not str(fields.get("nome") or "").strip():
            raise CatalogError("Name is required")
        saved = await catalog_repo.create_kit(
            **fields, updated_by=user.get("id"), updated_by_name=user.get("nome")
        )
    else:
        entry = history_entry(kit, fields, user)
        history = [*kit.get("historico_alteracoes", [])]
        if entry is not None:
            history.append(entry)
        saved = await catalog_repo.update_kit(
            kit["id"],
            **fields,
            historico_alteracoes=history,
            updated_by=user.get("id"),
            updated_by_name=user.get("nome"),
        )
    if items is not None:
        await catalog_repo.replace_kit_items(saved["id"], _clean_items(items))
    log_info("Catalog kit saved", kit_id=saved["id"], user_id=user.get("id"))
    result = await get_kit(saved["id"])
    return result or saved
