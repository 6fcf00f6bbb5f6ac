from io import BytesIO

import pytest
from openpyxl import Workbook

from emive_portal.repositories import inventory as inventory_repo
from emive_portal.services import inventory_import


@pytest.fixture
def anyio_backend():
    return "asyncio"


LOCATIONS = [
    {"id": 1, "cidade": "BH", "tipo": "INSTALACAO"},
    {"id": 2, "cidade": "BH", "tipo": "MANUTENCAO"},
    {"id": 3, "cidade": "VIX", "tipo": "MANUTENCAO"},
    {"id": 4, "cidade": "RIO", "tipo": "MANUTENCAO"},
]


def _workbook_bytes() -> bytes:
    workbook = Workbook()
    install = workbook.active
    install.title = "Estoque Instalação"
    install.append(["Estoque mínimo", None, None, None])
    install.append([None, None, "BH", "VIX"])
    install.append(["Modelo", "Cód. Sankhya", "Mín", "Mín"])
    install.append(["Câmera Bullet", 1001, 5, "3 un"])
    install.append([None, 1002, "abc", 0])
    install.append([None, None, 4, 4])

    maintenance = workbook.create_sheet("Planilha2")
    maintenance.append(["Manutencao", None, None])
    maintenance.append(["Modelo", "Sankhya", "Mínimo BH"])
    maintenance.append(["Câmera Bullet", "1001", 2])

    workbook.create_sheet("Resumo").append(["qualquer coisa"])

    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def test_parse_minimum():
    assert inventory_import.parse_minimum(7) == 7
    assert inventory_import.parse_minimum(7.9) == 7
    assert inventory_import.parse_minimum("12 peças") == 12
    assert inventory_import.parse_minimum("n/a") == 0
    assert inventory_import.parse_minimum(None) == 0


def test_sheet_type_from_name_or_first_cell():
    assert inventory_import.sheet_type("Urgência BH", []) == "URGENCIA"
    assert inventory_import.sheet_type("Planilha1", [["Instalacao"]]) == "INSTALACAO"
    assert inventory_import.sheet_type("Planilha1", [["Outro"]]) is None


def test_parse_workbook_merges_items_across_sheets():
    items = inventory_import.parse_minimum_workbook(_workbook_bytes())

    by_code = {item.codigo: item for item in items}
    assert set(by_code) == {"1001", "1002"}
    camera = by_code["1001"]
    assert camera.modelo == "Câmera Bullet"
    assert [(e.cidade, e.tipo, e.minimo) for e in camera.estoques] == [
        ("BH", "INSTALACAO", 5),
        ("VIX", "INSTALACAO", 3),
        ("BH", "MANUTENCAO", 2),
    ]
    assert by_code["1002"].modelo == "Sem modelo"
    assert by_code["1002"].estoques == []


def test_parse_workbook_rejects_unreadable_content():
    with pytest.raises(inventory_import.StockImportError):
        inventory_import.parse_minimum_workbook(b"not a spreadsheet")


def test_validate_filename():
    assert inventory_import.validate_filename("minimos.XLSX") == "minimos.XLSX"
    with pytest.raises(inventory_import.StockImportError):
        inventory_import.validate_filename("minimos.csv")


@pytest.fixture
def fake_repo(monkeypatch):
    state = {"items": {}, "stock": {}, "imports": []}

    async def fake_locations():
        return LOCATIONS

    async def fake_upsert_item(codigo, modelo):
        item = state["items"].setdefault(codigo, {"id": len(state["items"]) + 100, "codigo": codigo})
        item["modelo"] = modelo
        return item

    async def fake_upsert_stock(item_id, location_id, **fields):
        row = state["stock"].setdefault((item_id, location_id), {"estoque_minimo": 0, "estoque_atual": 0})
        row.update(fields)
        return row

    async def fake_record_import(**fields):
        state["imports"].append(fields)

    monkeypatch.setattr(inventory_repo, "list_locations", fake_locations)
    monkeypatch.setattr(inventory_repo, "upsert_item", fake_upsert_item)
    monkeypatch.setattr(inventory_repo, "upsert_stock", fake_upsert_stock)
    monkeypatch.setattr(inventory_repo, "record_import", fake_record_import)
    return state


@pytest.mark.anyio
async def test_import_minimums_reports_progress_per_batch(fake_repo):
    items = [
        inventory_import.ParsedItem(
            codigo="1001",
            modelo="Câmera",
            estoques=[inventory_import.MinimumEntry("BH", "INSTALACAO", 5)],
        ),
        inventory_import.ParsedItem(
            codigo="1002",
            modelo="Fonte",
            estoques=[inventory_import.MinimumEntry("CD_SR", "INSTALACAO", 1)],
        ),
        inventory_import.ParsedItem(codigo="1003", modelo="Cabo"),
    ]
    progress = []

    result = await inventory_import.import_minimums(
        items, filename="minimos.xlsx", user_id=4, progress=lambda done, total: progress.append((done, total)), batch_size=2
    )

    assert progress == [(2, 3), (3, 3)]
    assert result["items_processed"] == 3
    assert result["stock_records"] == 1
    assert result["message"] == (
        "Importação concluída: 3 produtos processados, 1 registros de estoque criados/atualizados."
    )
    assert fake_repo["stock"][(100, 1)] == {"estoque_minimo": 5, "estoque_atual": 0}
    assert fake_repo["imports"] == [
        {"arquivo_nome": "minimos.xlsx", "itens_importados": 3, "importado_por": 4, "tipo_importacao": "MINIMO"}
    ]


@pytest.mark.anyio
async def test_import_stock_levels_sums_rows_per_location(fake_repo):
    rows = [
        {"codigo": "1001", "modelo": "Câmera", "localCode": "139000", "estoque": 2.5},
        {"codigo": "1001", "modelo": "Câmera", "localCode": "139000", "estoque": 1.7},
        {"codigo": "1001", "modelo": "Câmera", "localCode": "225104", "estoque": 1},
        {"codigo": "1002", "modelo": None, "localCode": "999", "estoque": 8},
        {"codigo": "", "modelo": "Vazio", "localCode": "139000", "estoque": 1},
    ]

    result = await inventory_import.import_stock_levels(rows, filename="estoque.xlsx", user_id=None)

    assert result["items_processed"] == 1
    assert result["stock_records"] == 2
    assert fake_repo["stock"][(100, 2)]["estoque_atual"] == 4
    assert fake_repo["stock"][(100, 3)]["estoque_atual"] == 1
    assert fake_repo["imports"][0]["tipo_importacao"] == "ATUAL"


@pytest.mark.anyio
async def test_import_stock_levels_rejects_empty_payload(fake_repo):
    with pytest.raises(inventory_import.StockImportError):
        await inventory_import.import_stock_levels([], filename="estoque.xlsx", user_id=1)
