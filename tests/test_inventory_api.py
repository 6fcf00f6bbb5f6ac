from io import BytesIO

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from openpyxl import Workbook

from emive_portal.api.dependencies import auth as auth_dependencies
from emive_portal.api.dependencies import database as database_dependencies
from emive_portal.api.routes import inventory
from emive_portal.repositories import inventory as inventory_repo
from emive_portal.services import audit as audit_service
from emive_portal.services import inventory_import

LOCATIONS = [
    {"id": 1, "cidade": "BH", "tipo": "INSTALACAO", "nome_local": "BH Instalação"},
    {"id": 2, "cidade": "VIX", "tipo": "MANUTENCAO", "nome_local": "VIX Manutenção"},
]
ITEMS = [
    {"id": 10, "codigo": "1001", "modelo": "Câmera"},
    {"id": 11, "codigo": "1002", "modelo": "Fonte"},
]
STOCK = [
    {"item_id": 10, "local_estoque_id": 1, "estoque_minimo": 4, "estoque_atual": 1},
    {"item_id": 11, "local_estoque_id": 2, "estoque_minimo": 1, "estoque_atual": 5},
]


def _build_client(monkeypatch, role: str) -> TestClient:
    app = FastAPI()
    app.include_router(inventory.router)
    app.dependency_overrides[database_dependencies.require_database] = lambda: None
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: {
        "id": 1,
        "nome": "Ana",
        "role": role,
    }

    async def fake_log_action(**kwargs):
        return None

    async def fake_locations():
        return LOCATIONS

    async def fake_items():
        return ITEMS

    async def fake_stock():
        return STOCK

    monkeypatch.setattr(audit_service, "log_action", fake_log_action)
    monkeypatch.setattr(inventory_repo, "list_locations", fake_locations)
    monkeypatch.setattr(inventory_repo, "list_items", fake_items)
    monkeypatch.setattr(inventory_repo, "list_stock", fake_stock)
    return TestClient(app)


def test_overview_returns_grouped_items_and_stats(monkeypatch):
    with _build_client(monkeypatch, "vendedor") as client:
        response = client.get("/api/inventory", params={"cidade": "BH"})

    assert response.status_code == 200
    body = response.json()
    assert body["checked_locations"] == [1]
    assert body["stats"] == {"total": 2, "ok": 1, "critico": 1, "sem_base": 0}
    assert body["critical_count"] == 1
    assert body["cidades"] == ["BH", "VIX"]
    assert body["items"][0]["locais"]["1"]["status"] == "CRITICO"


def test_critical_export_streams_workbook(monkeypatch):
    with _build_client(monkeypatch, "vendedor") as client:
        response = client.get("/api/inventory/critical/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == inventory.XLSX_MEDIA_TYPE
    assert "itens_criticos_" in response.headers["content-disposition"]


def test_critical_export_without_critical_items_is_rejected(monkeypatch):
    with _build_client(monkeypatch, "vendedor") as client:
        response = client.get("/api/inventory/critical/export", params={"cidade": "VIX"})

    assert response.status_code == 400


def test_minimum_update_requires_stock_importer(monkeypatch):
    with _build_client(monkeypatch, "vendedor") as client:
        response = client.put(
            "/api/inventory/stock/minimum", json={"item_id": 10, "local_estoque_id": 1, "value": 3}
        )

    assert response.status_code == 403


def test_negative_stock_value_is_rejected(monkeypatch):
    with _build_client(monkeypatch, "admin") as client:
        response = client.put(
            "/api/inventory/stock/current", json={"item_id": 10, "local_estoque_id": 1, "value": -2}
        )

    assert response.status_code == 422


def test_duplicate_product_returns_conflict(monkeypatch):
    async def fake_by_code(codigo):
        return {"id": 10, "codigo": codigo}

    monkeypatch.setattr(inventory_repo, "get_item_by_code", fake_by_code)

    with _build_client(monkeypatch, "vendedor") as client:
        response = client.post("/api/inventory/products", json={"codigo": "1001", "modelo": "Câmera"})

    assert response.status_code == 409


def test_minimum_import_rejects_non_excel_upload(monkeypatch):
    with _build_client(monkeypatch, "administrativo") as client:
        response = client.post(
            "/api/inventory/imports/minimum",
            files={"file": ("minimos.csv", b"a,b", "text/csv")},
        )

    assert response.status_code == 400


def test_minimum_import_processes_workbook(monkeypatch):
    captured = {}

    async def fake_import(items, **kwargs):
        captured["codes"] = [item.codigo for item in items]
        captured["filename"] = kwargs["filename"]
        return {"items_processed": len(items), "stock_records": 1, "message": "ok"}

    monkeypatch.setattr(inventory_import, "import_minimums", fake_import)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Urgência"
    sheet.append(["Modelo", "Sankhya", "BH"])
    sheet.append(["Câmera", "1001", 3])
    buffer = BytesIO()
    workbook.save(buffer)

    with _build_client(monkeypatch, "admin") as client:
        response = client.post(
            "/api/inventory/imports/minimum",
            files={
                "file": (
                    "minimos.xlsx",
                    buffer.getvalue(),
                    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                )
            },
        )

    assert response.status_code == 200
    assert response.json()["items_processed"] == 1
    assert captured == {"codes": ["1001"], "filename": "minimos.xlsx"}


def test_minimum_import_reports_unreadable_workbook(monkeypatch):
    with _build_client(monkeypatch, "admin") as client:
        response = client.post(
            "/api/inventory/imports/minimum",
            files={"file": ("minimos.xlsx", b"not a workbook", "application/octet-stream")},
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "Could not read the spreadsheet file"
