import pytest

from emive_portal.repositories import catalog as catalog_repo
from emive_portal.services import catalog as catalog_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


USER = {"id": 2, "nome": "Gustavo"}


def test_history_entry_records_only_changed_fields():
    entry = catalog_service.history_entry(
        {"nome": "Câmera", "preco_unitario": 100.0},
        {"nome": "Câmera", "preco_unitario": 120.0},
        USER,
    )

    assert entry["usuario"] == "Gustavo"
    assert entry["alteracoes"] == {"preco_unitario": {"de": 100.0, "para": 120.0}}


def test_history_entry_is_none_without_changes():
    assert catalog_service.history_entry({"nome": "A"}, {"nome": "A"}, USER) is None


def test_attach_items_computes_component_total():
    kits = [{"id": 1, "nome": "Kit Portaria"}, {"id": 2, "nome": "Kit Vazio"}]
    items = [
        {"kit_id": 1, "produto_id": 10, "quantidade": 2, "produto_preco_unitario": 150.5},
        {"kit_id": 1, "produto_id": 11, "quantidade": 1, "produto_preco_unitario": 99.9},
    ]

    result = catalog_service.attach_items(kits, items)

    assert result[0]["total_componentes"] == 400.9
    assert len(result[0]["itens"]) == 2
    assert result[1]["itens"] == []
    assert result[1]["total_componentes"] == 0


@pytest.mark.anyio
async def test_create_product_requires_name():
    with pytest.raises(catalog_service.CatalogError):
        await catalog_service.create_product({"nome": "  "}, USER)


@pytest.mark.anyio
async def test_update_product_appends_history(monkeypatch):
    captured = {}

    async def fake_update(product_id, **fields):
        captured.update(fields)
        return {"id": product_id, **fields}

    monkeypatch.setattr(catalog_repo, "update_product", fake_update)

    product = {"id": 5, "nome": "Fonte", "ativo": True, "historico_alteracoes": [{"data": "old"}]}
    await catalog_service.update_product(product, {"ativo": False}, USER)

    assert len(captured["historico_alteracoes"]) == 2
    assert captured["historico_alteracoes"][-1]["alteracoes"] == {"ativo": {"de": True, "para": False}}
    assert captured["updated_by_name"] == "Gustavo"


@pytest.mark.anyio
async def test_update_product_without_changes_skips_write(monkeypatch):
    async def fail_update(*args, **kwargs):
        raise AssertionError("no write expected")

    monkeypatch.setattr(catalog_repo, "update_product", fail_update)

    product = {"id": 5, "nome": "Fonte"}
    assert await catalog_service.update_product(product, {"nome": "Fonte"}, USER) == product


@pytest.mark.anyio
async def test_save_kit_replaces_items_with_clean_rows(monkeypatch):
    replaced = {}

    async def fake_create_kit(**fields):
        return {"id": 8, **fields}

    async def fake_replace(kit_id, items):
        replaced[kit_id] = items

    async def fake_get_kit(kit_id):
        return {"id": kit_id, "nome": "Kit Novo"}

    async def fake_kit_items(kit_ids):
        return []

    monkeypatch.setattr(catalog_repo, "create_kit", fake_create_kit)
    monkeypatch.setattr(catalog_repo, "replace_kit_items", fake_replace)
    monkeypatch.setattr(catalog_repo, "get_kit", fake_get_kit)
    monkeypatch.setattr(catalog_repo, "list_kit_items", fake_kit_items)

    kit = await catalog_service.save_kit(
        None,
        {"nome": "Kit Novo"},
        [{"produto_id": 3, "quantidade": 0}, {"produto_id": None, "quantidade": 4}, {"produto_id": "4", "quantidade": 2}],
        USER,
    )

    assert kit["id"] == 8
    assert replaced[8] == [{"produto_id": 3, "quantidade": 1}, {"produto_id": 4, "quantidade": 2}]
