from datetime import date
from io import BytesIO

from openpyxl import load_workbook

from emive_portal.services import inventory_export

LOCATIONS = [
    {"id": 1, "nome_local": "BH Instalação"},
    {"id": 2, "nome_local": "BH Manutenção"},
]


def test_critical_filename_includes_filters():
    today = date(2024, 7, 1)

    assert inventory_export.critical_filename(today=today) == "itens_criticos_2024-07-01.xlsx"
    assert (
        inventory_export.critical_filename(cidade="BH", tipo="MANUTENCAO", today=today)
        == "itens_criticos_BH_Manutenção_2024-07-01.xlsx"
    )
    assert inventory_export.critical_filename(cidade="all", tipo="all", today=today) == (
        "itens_criticos_2024-07-01.xlsx"
    )


def test_critical_workbook_has_min_and_current_columns_per_location():
    items = [
        {
            "codigo": "1001",
            "modelo": "Câmera Bullet",
            "status": "CRITICO",
            "locais": {
                1: {"estoque_minimo": 5, "estoque_atual": 2},
                2: {"estoque_minimo": 1, "estoque_atual": 3},
            },
        }
    ]

    content = inventory_export.build_critical_workbook(items, LOCATIONS)

    sheet = load_workbook(BytesIO(content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert sheet.title == "Itens Críticos"
    assert rows[0] == (
        "Código",
        "Modelo/Produto",
        "BH Instalação - Mín",
        "BH Instalação - Atual",
        "BH Manutenção - Mín",
        "BH Manutenção - Atual",
        "Status",
    )
    assert rows[1] == ("1001", "Câmera Bullet", 5, 2, 1, 3, "CRITICO")
    assert sheet["A1"].font.bold
