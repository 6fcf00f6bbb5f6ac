from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from emive_portal.api.dependencies import auth as auth_dependencies
from emive_portal.api.dependencies import database as database_dependencies
from emive_portal.api.routes import customers
from emive_portal.repositories import customers as customer_repo
from emive_portal.services import audit as audit_service

CUSTOMER = {
    "id": 4,
    "contrato": "C-400",
    "razao_social": "Condomínio Alfa",
    "filial": "BH",
    "data_ativacao": date(2023, 1, 31),
    "data_termino": None,
}


@pytest.fixture
def client(monkeypatch):
    app = FastAPI()
    app.include_router(customers.router)
    app.dependency_overrides[database_dependencies.require_database] = lambda: None
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: {
        "id": 1,
        "nome": "Admin",
        "role": "admin",
    }

    state: dict = {"created": [], "updated": [], "documents": [], "deleted_documents": [], "audit": []}

    async def fake_get(customer_id):
        return dict(CUSTOMER) if customer_id == CUSTOMER["id"] else None

    async def fake_by_contrato(contrato):
        return {"id": 9, "contrato": contrato} if contrato == "C-900" else None

    async def fake_create(**data):
        state["created"].append(data)
        return {"id": 12, **data}

    async def fake_update(customer_id, **data):
        state["updated"].append(data)
        return {**CUSTOMER, **data}

    async def fake_list_documents(customer_id):
        return [{"id": 3, "customer_id": customer_id, "nome_arquivo": "contrato.pdf", "arquivo_url": "https://files/3"}]

    async def fake_create_document(**data):
        state["documents"].append(data)
        return {"id": 50, **data}

    async def fake_get_document(document_id):
        return {"id": document_id, "customer_id": 4} if document_id == 3 else None

    async def fake_delete_document(document_id):
        state["deleted_documents"].append(document_id)

    async def fake_log_action(**kwargs):
        state["audit"].append(kwargs["action"])

    monkeypatch.setattr(customer_repo, "get_customer_by_id", fake_get)
    monkeypatch.setattr(customer_repo, "get_customer_by_contrato", fake_by_contrato)
    monkeypatch.setattr(customer_repo, "create_customer", fake_create)
    monkeypatch.setattr(customer_repo, "update_customer", fake_update)
    monkeypatch.setattr(customer_repo, "list_documents", fake_list_documents)
    monkeypatch.setattr(customer_repo, "create_document", fake_create_document)
    monkeypatch.setattr(customer_repo, "get_document", fake_get_document)
    monkeypatch.setattr(customer_repo, "delete_document", fake_delete_document)
    monkeypatch.setattr(audit_service, "log_action", fake_log_action)

    with TestClient(app) as test_client:
        test_client.state = state
        yield test_client


def test_create_customer(client):
    response = client.post("/api/customers", json={"contrato": "C-401", "razao_social": "Edifício Lua"})

    assert response.status_code == 201
    assert response.json()["id"] == 12
    assert client.state["created"] == [{"contrato": "C-401", "razao_social": "Edifício Lua"}]
    assert client.state["audit"] == ["customer.create"]


def test_create_customer_with_registered_contract_is_a_conflict(client):
    response = client.post("/api/customers", json={"contrato": "C-900", "razao_social": "Torre"})

    assert response.status_code == 409
    assert client.state["created"] == []


def test_partial_update_only_writes_sent_fields(client):
    response = client.patch("/api/customers/4", json={"filial": "VIX"})

    assert response.status_code == 200
    assert response.json()["filial"] == "VIX"
    assert response.json()["data_termino_calculada"] == "2026-01-31"
    assert client.state["updated"] == [{"filial": "VIX"}]


def test_update_to_registered_contract_is_a_conflict(client):
    response = client.patch("/api/customers/4", json={"contrato": "C-900"})

    assert response.status_code == 409
    assert client.state["updated"] == []


def test_get_customer_includes_documents(client):
    response = client.get("/api/customers/4")

    assert response.status_code == 200
    assert [document["id"] for document in response.json()["documents"]] == [3]


def test_unknown_customer_is_404(client):
    assert client.get("/api/customers/99").status_code == 404


def test_attach_document_records_uploader(client):
    response = client.post(
        "/api/customers/4/documents",
        json={"nome_arquivo": "planta.pdf", "arquivo_url": "https://files/planta.pdf"},
    )

    assert response.status_code == 201
    assert client.state["documents"][0]["customer_id"] == 4
    assert client.state["documents"][0]["created_by"] == 1


def test_delete_document_of_other_customer_is_404(client):
    response = client.delete("/api/customers/5/documents/3")

    assert response.status_code == 404
    assert client.state["deleted_documents"] == []


def test_delete_document(client):
    response = client.delete("/api/customers/4/documents/3")

    assert response.status_code == 204
    assert client.state["deleted_documents"] == [3]
