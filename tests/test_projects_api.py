import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from emive_portal.api.dependencies import auth as auth_dependencies
from emive_portal.api.dependencies import database as database_dependencies
from emive_portal.api.routes import projects
from emive_portal.repositories import projects as project_repo

PROJECT = {
    "id": 10,
    "numero_projeto": 42,
    "created_by_user_id": 7,
    "vendedor_nome": "Vera",
    "vendedor_email": "vera@example.com",
    "cliente_condominio_nome": "Residencial Sol",
    "status": "APROVADO_PROJETO",
    "engineering_status": "CONCLUIDO",
    "sale_status": "NAO_INICIADO",
}


def _client(monkeypatch, user: dict) -> TestClient:
    app = FastAPI()
    app.include_router(projects.router)
    app.dependency_overrides[database_dependencies.require_database] = lambda: None
    app.dependency_overrides[auth_dependencies.get_current_user] = lambda: user

    async def fake_get_project(project_id):
        return dict(PROJECT) if project_id == PROJECT["id"] else None

    monkeypatch.setattr(project_repo, "get_project", fake_get_project)
    return TestClient(app)


def test_seller_cannot_see_other_sellers_project(monkeypatch):
    with _client(monkeypatch, {"id": 99, "nome": "Outro", "role": "vendedor"}) as client:
        response = client.get("/api/projects/10")

    assert response.status_code == 404


def test_terminal_status_change_is_a_conflict(monkeypatch):
    with _client(monkeypatch, {"id": 3, "nome": "Paulo", "role": "projetos"}) as client:
        response = client.post("/api/projects/10/status", json={"status": "ENVIADO"})

    assert response.status_code == 409


def test_status_change_requires_engineering_role(monkeypatch):
    with _client(monkeypatch, {"id": 7, "nome": "Vera", "role": "vendedor"}) as client:
        response = client.post("/api/projects/10/status", json={"status": "CANCELADO"})

    assert response.status_code == 403


@pytest.mark.parametrize("role", ["vendedor", "admin"])
def test_submit_of_approved_project_is_rejected(monkeypatch, role):
    user = {"id": 7, "nome": "Vera", "role": role}
    with _client(monkeypatch, user) as client:
        response = client.post("/api/projects/10/submit")

    assert response.status_code == 409
