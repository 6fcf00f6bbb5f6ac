import pytest

from emive_portal.repositories import catalog as catalog_repo
from emive_portal.services import pricing as pricing_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


RULES = [
    {"id": 1, "campo": "valor_minimo", "percentual": 85},
    {"id": 2, "campo": "valor_locacao", "percentual": 0},
    {"id": 3, "campo": "servico_valor_instalacao", "percentual": 20},
]


def test_preview_uses_defaults_for_missing_or_zero_rules():
    assert pricing_service.preview([]) == {
        "produtos": {
            "valor_minimo": 900.0,
            "valor_locacao": 35.7,
            "valor_minimo_locacao": 32.13,
            "valor_instalacao": 100.0,
        },
        "servicos": {
            "valor_minimo": 900.0,
            "valor_locacao": 35.7,
            "valor_minimo_locacao": 32.13,
            "valor_instalacao": 100.0,
        },
    }


def test_preview_keeps_products_and_services_separate():
    result = pricing_service.preview(RULES, base=200)

    assert result["produtos"]["valor_minimo"] == 170.0
    assert result["produtos"]["valor_locacao"] == 7.14
    assert result["produtos"]["valor_instalacao"] == 20.0
    assert result["servicos"]["valor_minimo"] == 180.0
    assert result["servicos"]["valor_instalacao"] == 40.0


def test_minimum_rental_derives_from_rental_value():
    prices = pricing_service.derive_prices(
        500,
        {"valor_minimo": 90, "valor_locacao": 10, "valor_minimo_locacao": 50, "valor_instalacao": 10},
    )

    assert prices["valor_locacao"] == 50.0
    assert prices["valor_minimo_locacao"] == 25.0


@pytest.mark.anyio
async def test_update_rule_rejects_non_positive_percentages():
    with pytest.raises(pricing_service.PricingRuleError):
        await pricing_service.update_rule(1, 0)


@pytest.mark.anyio
async def test_update_rule_requires_existing_rule(monkeypatch):
    async def fake_get(rule_id):
        return None

    monkeypatch.setattr(catalog_repo, "get_pricing_rule", fake_get)

    with pytest.raises(LookupError):
        await pricing_service.update_rule(99, 12.5)


@pytest.mark.anyio
async def test_apply_rules_only_touches_requested_target(monkeypatch):
    updated = {}

    async def fake_rules():
        return RULES

    async def fake_products():
        return [
            {"id": 1, "subgrupo": "Câmeras", "preco_unitario": 100},
            {"id": 2, "subgrupo": "Serviço", "preco_unitario": 300},
            {"id": 3, "subgrupo": None, "preco_unitario": 50},
        ]

    async def fake_set_prices(product_id, prices):
        updated[product_id] = prices

    monkeypatch.setattr(catalog_repo, "list_pricing_rules", fake_rules)
    monkeypatch.setattr(catalog_repo, "list_priced_products", fake_products)
    monkeypatch.setattr(catalog_repo, "set_product_prices", fake_set_prices)

    count = await pricing_service.apply_rules("servicos")

    assert count == 1
    assert list(updated) == [2]
    assert updated[2]["valor_instalacao"] == 60.0
