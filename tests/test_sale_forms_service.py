import pytest

from emive_portal.repositories import projects as project_repo
from emive_portal.repositories import sale_forms as sale_form_repo
from emive_portal.services import sale_forms as sale_form_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


SELLER = {"id": 7, "nome": "Vera", "role": "vendedor"}


def _project(**overrides):
    base = {
        "id": 10,
        "created_by_user_id": SELLER["id"],
        "status": "APROVADO_PROJETO",
        "engineering_status": "CONCLUIDO",
        "sale_status": "NAO_INICIADO",
        "cliente_condominio_nome": "Residencial Sol",
        "vendedor_nome": "Vera",
        "vendedor_email": "vera@example.com",
    }
    base.update(overrides)
    return base


def test_summary_skips_empty_values_and_uses_labels():
    summary = sale_form_service.build_summary(
        {
            "nome_condominio": "Residencial Sol",
            "qtd_blocos": 0,
            "internet_exclusiva": "A_CONTRATAR",
            "alarme_tipo": "CERCA_ELETRICA",
            "possui_cancela": True,
            "obs_gerais": "",
        }
    )

    titles = [section["title"] for section in summary]
    assert titles == ["Identificação", "Infraestrutura / Central", "Alarme", "Controle de Acesso"]
    assert summary[0]["items"] == [
        {"field": "nome_condominio", "label": "Nome do Condomínio", "value": "Residencial Sol"}
    ]
    assert summary[1]["items"][0]["value"] == "A Contratar"
    assert summary[2]["items"][0]["value"] == "Cerca Elétrica"
    assert summary[3]["items"][0]["value"] == "Sim"


def test_missing_required_fields_lists_labels():
    missing = sale_form_service.missing_required_fields({"nome_condominio": " ", "filial": "BH"})

    assert missing == ["Nome do Condomínio", "Produto", "Qtd. Apartamentos"]


def test_completed_form_is_locked():
    assert sale_form_service.is_locked(_project(sale_status="CONCLUIDO"), None)
    assert sale_form_service.is_locked(_project(), {"completed_at": "2024-01-01"})
    assert not sale_form_service.is_locked(_project(), {"completed_at": None})


@pytest.mark.anyio
async def test_start_requires_completed_engineering():
    with pytest.raises(sale_form_service.SaleFormError):
        await sale_form_service.start_sale_form(_project(engineering_status="EM_PRODUCAO"), SELLER)


@pytest.mark.anyio
async def test_start_creates_form_from_project(monkeypatch):
    created = {}
    project_updates = {}

    async def fake_get(project_id):
        return None

    async def fake_create(**fields):
        created.update(fields)
        return {"id": 1, **fields}

    async def fake_update_project(project_id, **fields):
        project_updates.update(fields)
        return fields

    monkeypatch.setattr(sale_form_repo, "get_sale_form", fake_get)
    monkeypatch.setattr(sale_form_repo, "create_sale_form", fake_create)
    monkeypatch.setattr(project_repo, "update_project", fake_update_project)

    await sale_form_service.start_sale_form(_project(), SELLER)

    assert created["nome_condominio"] == "Residencial Sol"
    assert created["vendedor_email"] == "vera@example.com"
    assert project_updates == {"sale_status": "EM_ANDAMENTO"}


@pytest.mark.anyio
async def test_complete_rejects_missing_fields(monkeypatch):
    async def fake_get(project_id):
        return {"project_id": project_id, "nome_condominio": "Residencial Sol", "completed_at": None}

    monkeypatch.setattr(sale_form_repo, "get_sale_form", fake_get)

    with pytest.raises(sale_form_service.SaleFormError) as excinfo:
        await sale_form_service.complete_sale_form(_project(sale_status="EM_ANDAMENTO"), SELLER)

    assert "Filial" in str(excinfo.value)


@pytest.mark.anyio
async def test_complete_locks_form_and_project(monkeypatch):
    form_updates = {}
    project_updates = {}

    async def fake_get(project_id):
        return {"project_id": project_id, "nome_condominio": "Residencial Sol", "completed_at": None}

    async def fake_update_form(project_id, **fields):
        form_updates.update(fields)
        return fields

    async def fake_update_project(project_id, **fields):
        project_updates.update(fields)
        return fields

    monkeypatch.setattr(sale_form_repo, "get_sale_form", fake_get)
    monkeypatch.setattr(sale_form_repo, "update_sale_form", fake_update_form)
    monkeypatch.setattr(project_repo, "update_project", fake_update_project)

    await sale_form_service.complete_sale_form(
        _project(sale_status="EM_ANDAMENTO"),
        SELLER,
        {"filial": "BH", "produto": "Portaria Digital", "qtd_apartamentos": 120},
    )

    assert form_updates["completed_at"] is not None
    assert form_updates["produto"] == "Portaria Digital"
    assert project_updates == {"sale_status": "CONCLUIDO"}


@pytest.mark.anyio
async def test_completed_form_cannot_be_saved(monkeypatch):
    async def fake_get(project_id):
        return {"project_id": project_id, "completed_at": "2024-01-01T10:00:00"}

    monkeypatch.setattr(sale_form_repo, "get_sale_form", fake_get)

    with pytest.raises(sale_form_service.SaleFormLockedError):
        await sale_form_service.save_sale_form(
            _project(sale_status="EM_ANDAMENTO"), SELLER, {"obs_gerais": "x"}
        )
