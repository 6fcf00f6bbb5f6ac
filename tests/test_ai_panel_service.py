import json
from types import SimpleNamespace

import httpx
import pytest

from emive_portal.repositories import ai_panel as ai_repo
from emive_portal.services import ai_panel as ai_panel_service


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(monkeypatch):
    values = SimpleNamespace(
        ai_base_url="http://ai.internal:11434/",
        ai_model="llama3",
        ai_cost_per_interaction=0.003,
    )
    monkeypatch.setattr(ai_panel_service, "get_settings", lambda: values)
    return values


@pytest.fixture
def transport(monkeypatch):
    state = {"requests": [], "response": httpx.Response(200, json={"message": {"content": "Olá"}})}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["response"]

    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    async def fake_context():
        return "contexto"

    monkeypatch.setattr(ai_panel_service.httpx, "AsyncClient", client_factory)
    monkeypatch.setattr(ai_panel_service, "gather_context", fake_context)
    return state


@pytest.mark.anyio
async def test_stats_include_estimated_cost(monkeypatch, settings):
    async def fake_counts():
        return {"total_mensagens": 1000, "total_sessoes": 10}

    monkeypatch.setattr(ai_repo, "count_all", fake_counts)

    stats = await ai_panel_service.get_stats()

    assert stats["custo_por_interacao"] == 0.003
    assert stats["custo_estimado"] == 3.0


def test_session_label_prefers_generated_proposal():
    assert ai_panel_service.session_label({"status": "ativa", "proposta_gerada_at": "2024-01-01"}) == "Proposta Gerada"
    assert ai_panel_service.session_label({"status": "ativa"}) == "ativa"


def test_data_sources_list_counts():
    sources = ai_panel_service.data_sources({"produtos_ativos": 12, "clientes_carteira": 40})

    counts = {source["name"]: source["count"] for source in sources}
    assert counts["orcamento_produtos"] == 12
    assert counts["customer_portfolio"] == 40
    assert counts["Treinamento PDF"] == 9


def test_system_prompt_projects_customer_columns_and_truncates_messages():
    prompt = ai_panel_service.build_system_prompt(
        products=[{"codigo": "P1", "nome": "Câmera", "preco_unitario": 100.0}],
        kits=[],
        rules=[],
        customers=[{"razao_social": "Residencial Sol", "cnpj": "00.000.000/0001-00"}],
        sessions=[],
        messages=[{"role": "user", "content": "x" * 500}],
        stats={"total_sessoes": 3},
    )

    assert "Residencial Sol" in prompt
    assert "00.000.000/0001-00" not in prompt
    assert "x" * 200 in prompt
    assert "x" * 201 not in prompt
    assert "1. Catálogo de Produtos: 1 produtos ativos" in prompt


@pytest.mark.anyio
async def test_chat_posts_conversation_with_system_context(settings, transport):
    reply = await ai_panel_service.chat([{"role": "user", "content": "Quanto custa a câmera?"}])

    assert reply == {"role": "assistant", "content": "Olá", "model": "llama3"}
    request = transport["requests"][0]
    assert str(request.url) == "http://ai.internal:11434/api/chat"
    body = json.loads(request.content)
    assert body["stream"] is False
    assert body["messages"][0] == {"role": "system", "content": "contexto"}
    assert body["messages"][1]["content"] == "Quanto custa a câmera?"


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [429, 402])
async def test_chat_maps_rate_limit_and_credit_errors(settings, transport, status_code):
    transport["response"] = httpx.Response(status_code, json={"error": "x"})

    with pytest.raises(ai_panel_service.AIPanelError) as excinfo:
        await ai_panel_service.chat([{"role": "user", "content": "oi"}])

    assert excinfo.value.status_code == status_code


@pytest.mark.anyio
async def test_chat_maps_other_failures_to_bad_gateway(settings, transport):
    transport["response"] = httpx.Response(500, text="boom")

    with pytest.raises(ai_panel_service.AIPanelError) as excinfo:
        await ai_panel_service.chat([{"role": "user", "content": "oi"}])

    assert excinfo.value.status_code == 502


@pytest.mark.anyio
async def test_chat_requires_configured_endpoint(settings, transport):
    settings.ai_base_url = None

    with pytest.raises(ai_panel_service.AIPanelError) as excinfo:
        await ai_panel_service.chat([{"role": "user", "content": "oi"}])

    assert excinfo.value.status_code == 503


@pytest.mark.anyio
async def test_chat_rejects_empty_conversation(settings, transport):
    with pytest.raises(ValueError):
        await ai_panel_service.chat([])
