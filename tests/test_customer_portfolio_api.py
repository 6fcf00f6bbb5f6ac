import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from emive_portal.api.dependencies import database as database_dependencies
from emive_portal.api.routes import customer_portfolio_api
from emive_portal.repositories import customers as customer_repo
from emive_portal.services import audit as audit_service

API_KEY = "test-customer-api-key"


@pytest.fixture
def client(monkeypatch):
    app = FastAPI()
    app.include_router(customer_portfolio_api.router)
    app.dependency_overrides[database_dependencies.require_database] = lambda: None

    audit_calls: list[dict] = []

    async def fake_log_action(**kwargs):
        audit_calls.append(kwargs)

    monkeypatch.setattr(audit_service, "log_action", fake_log_action)
    with TestClient(app) as test_client:
        test_client.audit_calls = audit_calls
        yield test_client
    app.dependency_overrides.clear()


def test_missing_api_key_is_rejected(client):
    response = client.get("/api/customer-portfolio")

    assert response.status_code == 401


def test_invalid_api_key_is_rejected(client):
    response = client.get("/api/customer-portfolio", headers={"x-api-key": "wrong"})

    assert response.status_code == 401


def test_list_returns_pagination_envelope(client, monkeypatch):
    captured = {}

    async def fake_search(**kwargs):
        captured.update(kwargs)
        return [{"id": 1, "contrato": "C-1", "razao_social": "Alfa"}], 3

    monkeypatch.setattr(customer_repo, "search_customers", fake_search)

    response = client.get(
        "/api/customer-portfolio",
        params={"filial": "BH", "limit": 1, "offset": 1},
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["pagination"] == {"total": 3, "limit": 1, "offset": 1, "hasMore": True}
    assert captured["filial"] == "BH"
    assert captured["limit"] == 1


def test_single_customer_includes_documents(client, monkeypatch):
    async def fake_get(customer_id):
        return {"id": customer_id, "contrato": "C-9", "razao_social": "Beta"}

    async def fake_documents(customer_id):
        return [{"id": 5, "customer_id": customer_id, "nome_arquivo": "contrato.pdf"}]

    monkeypatch.setattr(customer_repo, "get_customer_by_id", fake_get)
    monkeypatch.setattr(customer_repo, "list_documents", fake_documents)

    response = client.get(
        "/api/customer-portfolio", params={"customer_id": 9}, headers={"x-api-key": API_KEY}
    )

    assert response.status_code == 200
    assert response.json()["data"]["documents"][0]["id"] == 5


def test_create_rejects_duplicate_contract(client, monkeypatch):
    async def fake_by_contract(contrato):
        return {"id": 1, "contrato": contrato}

    monkeypatch.setattr(customer_repo, "get_customer_by_contrato", fake_by_contract)

    response = client.put(
        "/api/customer-portfolio",
        json={"contrato": "C-1", "razao_social": "Alfa", "filial": "BH"},
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 409


def test_create_records_audit_with_masked_key(client, monkeypatch):
    async def fake_by_contract(_):
        return None

    async def fake_create(**data):
        return {"id": 12, **data}

    monkeypatch.setattr(customer_repo, "get_customer_by_contrato", fake_by_contract)
    monkeypatch.setattr(customer_repo, "create_customer", fake_create)

    response = client.put(
        "/api/customer-portfolio",
        json={"contrato": "C-2", "razao_social": "Gama", "filial": "VIX"},
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 201
    assert response.json()["data"]["id"] == 12
    assert client.audit_calls[0]["action"] == "customer_api.create"
    assert client.audit_calls[0]["api_key"] == API_KEY[-4:]


def test_delete_removes_documents_first(client, monkeypatch):
    deleted: list[tuple[str, int]] = []

    async def fake_get(customer_id):
        return {"id": customer_id, "contrato": "C-3", "razao_social": "Delta"}

    async def fake_documents(customer_id):
        return [{"id": 20}, {"id": 21}]

    async def fake_delete_document(document_id):
        deleted.append(("document", document_id))

    async def fake_delete_customer(customer_id):
        deleted.append(("customer", customer_id))

    monkeypatch.setattr(customer_repo, "get_customer_by_id", fake_get)
    monkeypatch.setattr(customer_repo, "list_documents", fake_documents)
    monkeypatch.setattr(customer_repo, "delete_document", fake_delete_document)
    monkeypatch.setattr(customer_repo, "delete_customer", fake_delete_customer)

    response = client.request(
        "DELETE",
        "/api/customer-portfolio",
        json={"customer_id": 3},
        headers={"x-api-key": API_KEY},
    )

    assert response.status_code == 200
    assert deleted == [("document", 20), ("document", 21), ("customer", 3)]
