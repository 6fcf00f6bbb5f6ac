from __future__ import annotations

from typing import Any, Optional

from emive_portal.core.database import db

_COUNT_QUERIES: dict[str, tuple[str, tuple[Any, ...]]] = {
    "total_sessoes": ("SELECT COUNT(*) AS total FROM orcamento_sessoes", ()),
    "total_mensagens": ("SELECT COUNT(*) AS total FROM orcamento_mensagens", ()),
    "mensagens_usuario": ("SELECT COUNT(*) AS total FROM orcamento_mensagens WHERE role = %s", ("user",)),
    "mensagens_assistente": (
        "SELECT COUNT(*) AS total FROM orcamento_mensagens WHERE role = %s",
        ("assistant",),
    ),
    "total_midias": ("SELECT COUNT(*) AS total FROM orcamento_midias", ()),
    "midias_imagem": ("SELECT COUNT(*) AS total FROM orcamento_midias WHERE tipo = %s", ("image",)),
    "midias_video": ("SELECT COUNT(*) AS total FROM orcamento_midias WHERE tipo = %s", ("video",)),
    "propostas_geradas": (
        "SELECT COUNT(*) AS total FROM orcamento_sessoes WHERE proposta_gerada IS NOT NULL",
        (),
    ),
    "produtos_ativos": ("SELECT COUNT(*) AS total FROM orcamento_produtos WHERE ativo = 1", ()),
    "kits_ativos": ("SELECT COUNT(*) AS total FROM orcamento_kits WHERE ativo = 1", ()),
    "clientes_carteira": ("SELECT COUNT(*) AS total FROM customer_portfolio", ()),
    "projetos": ("SELECT COUNT(*) AS total FROM projects", ()),
    "regras_preco": ("SELECT COUNT(*) AS total FROM orcamento_regras_precificacao", ()),
}


async def count_all() -> dict[str, int]:
    counts: dict[str, int] = {}
    for name, (query, params) in _COUNT_QUERIES.items():
        row = await db.fetch_one(query, params)
        counts[name] = int(row["total"]) if row else 0
    return counts


async def list_recent_sessions(limit: int = 15) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        """
        SELECT id, nome_cliente, endereco_condominio, vendedor_nome, status,
               proposta_gerada_at, created_at
        FROM orcamento_sessoes
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """,
        (limit,),
    )
    return [dict(row) for row in rows]


async def get_session(session_id: int) -> Optional[dict[str, Any]]:
    row = await db.fetch_one("SELECT * FROM orcamento_sessoes WHERE id = %s", (session_id,))
    return dict(row) if row else None


async def list_session_messages(session_id: int) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        """
        SELECT id, sessao_id, role, content, created_at
        FROM orcamento_mensagens
        WHERE sessao_id = %s
        ORDER BY created_at ASC, id ASC
        """,
        (session_id,),
    )
    return [dict(row) for row in rows]


async def list_recent_messages(limit: int = 30) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        """
        SELECT role, content, created_at, sessao_id
        FROM orcamento_mensagens
        ORDER BY created_at DESC, id DESC
        LIMIT %s
        """,
        (limit,),
    )
    return [dict(row) for row in rows]


async def list_session_media(session_id: int) -> list[dict[str, Any]]:
    rows = await db.fetch_all(
        "SELECT * FROM orcamento_midias WHERE sessao_id = %s ORDER BY created_at ASC, id ASC",
        (session_id,),
    )
    return [dict(row) for row in rows]
