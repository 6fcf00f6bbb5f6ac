import pytest

from emive_portal.repositories import notifications as notifications_repo
from emive_portal.repositories import users as user_repo
from emive_portal.services import email as email_service
from emive_portal.services import notifications as notification_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


PROJECT = {
    "id": 15,
    "cliente_condominio_nome": "Residencial <Sol>",
    "cliente_cidade": "Belo Horizonte",
    "cliente_estado": "MG",
    "vendedor_nome": "Vera",
    "vendedor_email": "vera@example.com",
    "created_by_user_id": 7,
}


@pytest.fixture
def recorded(monkeypatch):
    calls = {"bulk": [], "single": [], "emails": []}

    async def fake_list_users(*, role=None, **_):
        if role == "projetos":
            return [{"id": 3, "email": "paulo@example.com"}, {"id": 4, "email": None}]
        if role == "supervisor_operacoes":
            return [{"id": 8}, {"id": 9}]
        return []

    async def fake_create_for_users(user_ids, **fields):
        calls["bulk"].append((list(user_ids), fields))
        return len(user_ids)

    async def fake_create_notification(**fields):
        calls["single"].append(fields)

    async def fake_send_email(**kwargs):
        calls["emails"].append(kwargs)
        return True

    monkeypatch.setattr(user_repo, "list_users", fake_list_users)
    monkeypatch.setattr(notifications_repo, "create_for_users", fake_create_for_users)
    monkeypatch.setattr(notifications_repo, "create_notification", fake_create_notification)
    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return calls


@pytest.mark.anyio
async def test_submission_notifies_all_engineers(recorded):
    result = await notification_service.notify_project_submitted(PROJECT, is_resubmission=False)

    assert result == {"notified": 2, "email_sent": True, "error": None}
    user_ids, fields = recorded["bulk"][0]
    assert user_ids == [3, 4]
    assert fields["kind"] == "PROJECT_SUBMITTED"
    email = recorded["emails"][0]
    assert email["recipients"] == ["paulo@example.com"]
    assert email["subject"] == "Novo Projeto Enviado: Residencial <Sol>"
    assert "Residencial &lt;Sol&gt;" in email["html_body"]
    assert "Belo Horizonte - MG" in email["html_body"]


@pytest.mark.anyio
async def test_resubmission_email_failure_is_reported(recorded, monkeypatch):
    async def failing_send(**kwargs):
        raise email_service.EmailDispatchError("relay down")

    monkeypatch.setattr(email_service, "send_email", failing_send)

    result = await notification_service.notify_project_submitted(PROJECT, is_resubmission=True)

    assert result["email_sent"] is False
    assert result["error"] == "relay down"
    assert recorded["bulk"][0][1]["kind"] == "PROJECT_RESUBMITTED"


@pytest.mark.anyio
async def test_pending_info_email_includes_comment(recorded):
    sent = await notification_service.notify_project_status_changed(
        PROJECT, new_status="PENDENTE_INFO", changed_by="Paulo", comment="Enviar croqui"
    )

    assert sent is True
    assert recorded["single"][0]["user_id"] == 7
    assert recorded["single"][0]["title"] == "Projeto Pendente Info"
    email = recorded["emails"][0]
    assert email["subject"].startswith("Ação Necessária")
    assert "Enviar croqui" in email["html_body"]


@pytest.mark.anyio
async def test_status_change_without_seller_email_skips_delivery(recorded):
    project = {**PROJECT, "vendedor_email": None}

    sent = await notification_service.notify_project_status_changed(
        project, new_status="APROVADO_PROJETO", changed_by="Paulo"
    )

    assert sent is False
    assert recorded["emails"] == []
    assert len(recorded["single"]) == 1


@pytest.mark.anyio
async def test_preventive_due_falls_back_to_all_supervisors(recorded):
    count = await notification_service.notify_preventive_due(
        {"id": 2, "razao_social": "Torre Lua", "contrato": "C-2", "proxima_execucao": "2024-05-12"}
    )

    assert count == 2
    assert recorded["bulk"][0][0] == [8, 9]
    assert recorded["bulk"][0][1]["kind"] == "PREVENTIVA_PROXIMA"


@pytest.mark.anyio
async def test_preventive_due_targets_assigned_supervisor(recorded):
    count = await notification_service.notify_preventive_due(
        {"id": 2, "supervisor_responsavel_id": 5, "razao_social": "Torre Lua", "contrato": "C-2"}
    )

    assert count == 1
    assert recorded["bulk"][0][0] == [5]


@pytest.mark.anyio
async def test_send_email_skips_without_recipients():
    assert await email_service.send_email(subject="x", recipients=["", " "], html_body="<p>x</p>") is False
