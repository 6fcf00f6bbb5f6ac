"""Percentage-based price derivation for catalog products and services."""
from __future__ import annotations

from typing import Any, Iterable, Literal, Mapping

from emive_portal.core.logging import log_info
from emive_portal.repositories import catalog as catalog_repo

PriceTarget = Literal["produtos", "servicos"]

SERVICE_SUBGROUP = "Serviço"
SERVICE_PREFIX = "servico_"
DEFAULT_PREVIEW_BASE = 1000.0

DEFAULT_PERCENTAGES: dict[str, float] = {
    "valor_minimo": 90.0,
    "valor_locacao": 3.57,
    "valor_minimo_locacao": 90.0,
    "valor_instalacao": 10.0,
}


class PricingRuleError(ValueError):
    pass


def _rule_percentages(rules: Iterable[Mapping[str, Any]], target: PriceTarget) -> dict[str, float]:
    """Resolve the four percentages for ``target``; missing or zero rules use the defaults."""

    by_field = {str(rule["campo"]): float(rule.get("percentual") or 0) for rule in rules}
    prefix = SERVICE_PREFIX if target == "servicos" else ""
    return {
        field: by_field.get(f"{prefix}{field}") or default
        for field, default in DEFAULT_PERCENTAGES.items()
    }


def derive_prices(base: float, percentages: Mapping[str, float]) -> dict[str, float]:
    locacao = base * percentages["valor_locacao"] / 100
    return {
        "valor_minimo": round(base * percentages["valor_minimo"] / 100, 2),
        "valor_locacao": round(locacao, 2),
        "valor_minimo_locacao": round(locacao * percentages["valor_minimo_locacao"] / 100, 2),
        "valor_instalacao": round(base * percentages["valor_instalacao"] / 100, 2),
    }


def preview(
    rules: Iterable[Mapping[str, Any]], *, base: float = DEFAULT_PREVIEW_BASE
) -> dict[str, dict[str, float]]:
    rules = list(rules)
    return {
        "produtos": derive_prices(base, _rule_percentages(rules, "produtos")),
        "servicos": derive_prices(base, _rule_percentages(rules, "servicos")),
    }


def is_service(product: Mapping[str, Any]) -> bool:
    return product.get("subgrupo") == SERVICE_SUBGROUP


async def update_rule(rule_id: int, percentual: float) -> dict[str, Any]:
    if percentual is None or percentual <= 0:
        raise PricingRuleError("Percentage must be greater than zero")
    rule = await catalog_repo.get_pricing_rule(rule_id)
    if not rule:
        raise LookupError("Pricing rule not found")
    return await catalog_repo.update_pricing_rule(rule_id, percentual)


async def apply_rules(target: PriceTarget) -> int:
    """Recalculate derived prices for every priced product or service and return the count."""

    percentages = _rule_percentages(await catalog_repo.list_pricing_rules(), target)
    want_services = target == "servicos"
    updated = 0
    for product in await catalog_repo.list_priced_products():
        if is_service(product) != want_services:
            continue
        await catalog_repo.set_product_prices(
            product["id"], derive_prices(float(product["preco_unitario"]), percentages)
        )
        updated += 1
    log_info("Pricing rules applied", target=target, updated=updated)
    return updated
