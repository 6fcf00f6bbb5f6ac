"""Monitoring figures and context-grounded chat for the AI assistant panel."""
from __future__ import annotations

import json
from typing import Any, Iterable, Mapping, Sequence
from urllib.parse import urljoin

import httpx

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_error, log_info
from emive_portal.repositories import ai_panel as ai_repo
from emive_portal.repositories import catalog as catalog_repo
from emive_portal.repositories import customers as customer_repo
from emive_portal.services import catalog as catalog_service

REQUEST_TIMEOUT = 120.0
CUSTOMER_CONTEXT_COLUMNS = (
    "razao_social",
    "contrato",
    "unidades",
    "mensalidade",
    "taxa_ativacao",
    "tipo",
    "sistema",
    "filial",
    "praca",
    "cameras",
    "portoes",
    "portas",
    "cancelas",
    "catracas",
    "totem_simples",
    "totem_duplo",
    "faciais_hik",
    "faciais_avicam",
    "dvr_nvr",
    "status_implantacao",
    "data_ativacao",
)
RECENT_SESSION_LIMIT = 15
RECENT_MESSAGE_LIMIT = 30
PORTFOLIO_CONTEXT_LIMIT = 50
MESSAGE_SNIPPET_LENGTH = 200
TRAINING_DOCUMENTS = 9
PROPOSAL_LABEL = "Proposta Gerada"


class AIPanelError(RuntimeError):
    """Raised when the assistant endpoint cannot produce a reply."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


def _truncate(value: Any, limit: int = MESSAGE_SNIPPET_LENGTH) -> str:
    text = str(value or "")
    return text[:limit]


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


async def get_stats() -> dict[str, Any]:
    counts = await ai_repo.count_all()
    cost = get_settings().ai_cost_per_interaction
    counts["custo_por_interacao"] = cost
    counts["custo_estimado"] = round(counts["total_mensagens"] * cost, 4)
    return counts


def data_sources(stats: Mapping[str, Any]) -> list[dict[str, Any]]:
    return [
        {"name": "orcamento_produtos", "description": "Catálogo de Produtos", "count": stats.get("produtos_ativos", 0), "status": "active"},
        {"name": "orcamento_kits", "description": "Kits de Equipamentos", "count": stats.get("kits_ativos", 0), "status": "active"},
        {"name": "customer_portfolio", "description": "Carteira de Clientes", "count": stats.get("clientes_carteira", 0), "status": "active"},
        {"name": "projects + sale_forms", "description": "Projetos e Formulários", "count": stats.get("projetos", 0), "status": "active"},
        {"name": "orcamento_regras_precificacao", "description": "Regras de Precificação", "count": stats.get("regras_preco", 0), "status": "active"},
        {"name": "orcamento_sessoes", "description": "Histórico de Sessões", "count": stats.get("total_sessoes", 0), "status": "active"},
        {"name": "orcamento_midias", "description": "Fotos e Vídeos das Visitas", "count": stats.get("total_midias", 0), "status": "active"},
        {"name": "Treinamento PDF", "description": "Conhecimento de Produtos Emive", "count": TRAINING_DOCUMENTS, "status": "trained"},
    ]


def session_label(session: Mapping[str, Any]) -> str:
    return PROPOSAL_LABEL if session.get("proposta_gerada_at") else str(session.get("status") or "")


async def recent_sessions(limit: int = RECENT_SESSION_LIMIT) -> list[dict[str, Any]]:
    sessions = await ai_repo.list_recent_sessions(limit)
    return [{**session, "label": session_label(session)} for session in sessions]


async def session_transcript(session_id: int) -> dict[str, Any] | None:
    session = await ai_repo.get_session(session_id)
    if not session:
        return None
    return {
        "session": {**session, "label": session_label(session)},
        "messages": await ai_repo.list_session_messages(session_id),
        "media": await ai_repo.list_session_media(session_id),
    }


def build_system_prompt(
    *,
    products: Sequence[Mapping[str, Any]],
    kits: Sequence[Mapping[str, Any]],
    rules: Sequence[Mapping[str, Any]],
    customers: Sequence[Mapping[str, Any]],
    sessions: Sequence[Mapping[str, Any]],
    messages: Sequence[Mapping[str, Any]],
    stats: Mapping[str, Any],
) -> str:
    product_rows = [
        {
            "codigo": product.get("codigo"),
            "nome": product.get("nome"),
            "categoria": product.get("categoria"),
            "subgrupo": product.get("subgrupo"),
            "preco": product.get("preco_unitario"),
            "minimo": product.get("valor_minimo"),
            "locacao": product.get("valor_locacao"),
            "min_locacao": product.get("valor_minimo_locacao"),
            "instalacao": product.get("valor_instalacao"),
            "unidade": product.get("unidade"),
            "qtd_max": product.get("qtd_max"),
        }
        for product in products
    ]
    kit_rows = [
        {
            "codigo": kit.get("codigo"),
            "nome": kit.get("nome"),
            "categoria": kit.get("categoria"),
            "preco": kit.get("preco_kit"),
            "itens": [
                {"produto": item.get("produto_nome"), "qtd": item.get("quantidade"), "preco_un": item.get("produto_preco_unitario")}
                for item in kit.get("itens", [])
            ],
        }
        for kit in kits
    ]
    session_rows = [
        {
            "cliente": session.get("nome_cliente"),
            "vendedor": session.get("vendedor_nome"),
            "status": session.get("status"),
            "proposta": "Sim" if session.get("proposta_gerada_at") else "Não",
            "data": session.get("created_at"),
        }
        for session in sessions
    ]
    customer_rows = [
        {column: customer.get(column) for column in CUSTOMER_CONTEXT_COLUMNS} for customer in customers
    ]
    message_rows = [
        {"role": message.get("role"), "content": _truncate(message.get("content")), "data": message.get("created_at")}
        for message in messages
    ]
    return "\n\n".join(
        [
            "Você é a IA da Emive, especialista em portaria digital e segurança condominial. "
            "Responda com base exclusivamente nos dados reais abaixo e nunca invente dados.",
            "## FONTES DE DADOS\n"
            f"1. Catálogo de Produtos: {len(products)} produtos ativos\n"
            f"2. Kits de Equipamentos: {len(kits)} kits ativos\n"
            f"3. Carteira de Clientes: {len(customers)} clientes carregados\n"
            f"4. Regras de Precificação: {len(rules)} regras\n"
            f"5. Histórico de Sessões: {stats.get('total_sessoes', 0)} sessões de orçamento\n"
            f"6. Mensagens do Chat: {stats.get('total_mensagens', 0)} mensagens\n"
            f"7. Mídias: {stats.get('total_midias', 0)} fotos/vídeos de visitas\n"
            f"8. Propostas Geradas: {stats.get('propostas_geradas', 0)}",
            f"## CATÁLOGO DE PRODUTOS\n{_dump(product_rows)}",
            f"## KITS DE EQUIPAMENTOS\n{_dump(kit_rows)}",
            f"## REGRAS DE PRECIFICAÇÃO\n{_dump(list(rules))}",
            f"## CARTEIRA DE CLIENTES\n{_dump(customer_rows)}",
            f"## SESSÕES RECENTES DE ORÇAMENTO\n{_dump(session_rows)}",
            f"## CONVERSAS RECENTES\n{_dump(message_rows)}",
            "## REGRAS DE RESPOSTA\n"
            "- Responda em português brasileiro\n"
            "- Use exatamente os valores do catálogo ao citar preços\n"
            "- Se não souber, diga que a informação não está nas fontes de dados\n"
            "- Mencione de qual fonte de dados veio a informação",
        ]
    )


async def gather_context() -> str:
    products = await catalog_repo.list_products(ativo=True)
    kits = await catalog_service.list_kits(ativo=True)
    return build_system_prompt(
        products=products,
        kits=kits,
        rules=await catalog_repo.list_pricing_rules(),
        customers=await customer_repo.list_recent_customers(PORTFOLIO_CONTEXT_LIMIT),
        sessions=await ai_repo.list_recent_sessions(RECENT_SESSION_LIMIT),
        messages=await ai_repo.list_recent_messages(RECENT_MESSAGE_LIMIT),
        stats=await ai_repo.count_all(),
    )


def _chat_endpoint() -> str:
    base_url = get_settings().ai_base_url
    if not base_url:
        raise AIPanelError("AI endpoint is not configured", status_code=503)
    return urljoin(f"{str(base_url).rstrip('/')}/", "api/chat")


async def chat(messages: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    conversation = [
        {"role": str(message["role"]), "content": str(message["content"])} for message in messages
    ]
    if not conversation:
        raise ValueError("At least one message is required")
    endpoint = _chat_endpoint()
    model = get_settings().ai_model
    body = {
        "model": model,
        "messages": [{"role": "system", "content": await gather_context()}, *conversation],
        "stream": False,
    }
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
            response = await client.post(endpoint, json=body)
    except httpx.HTTPError as exc:
        log_error("AI panel request failed", endpoint=endpoint, error=str(exc))
        raise AIPanelError("Could not reach the AI endpoint") from exc

    if response.status_code == 429:
        raise AIPanelError("Rate limit exceeded, try again shortly", status_code=429)
    if response.status_code == 402:
        raise AIPanelError("Insufficient credits for the AI endpoint", status_code=402)
    if response.is_error:
        log_error("AI panel endpoint error", status=response.status_code, body=response.text[:500])
        raise AIPanelError("AI endpoint error")

    payload = response.json()
    content = (payload.get("message") or {}).get("content") or payload.get("response") or ""
    log_info("AI panel reply received", model=model, messages=len(conversation))
    return {"role": "assistant", "content": content, "model": payload.get("model") or model}
