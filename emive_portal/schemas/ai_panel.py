from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class PanelStats(BaseModel):
    total_sessoes: int
    total_mensagens: int
    mensagens_usuario: int
    mensagens_assistente: int
    total_midias: int
    midias_imagem: int
    midias_video: int
    propostas_geradas: int
    produtos_ativos: int
    kits_ativos: int
    clientes_carteira: int
    projetos: int
    regras_preco: int
    custo_por_interacao: float
    custo_estimado: float


class DataSource(BaseModel):
    name: str
    description: str
    count: int
    status: Literal["active", "trained"]


class SessionSummary(BaseModel):
    id: int
    nome_cliente: Optional[str] = None
    endereco_condominio: Optional[str] = None
    vendedor_nome: Optional[str] = None
    status: str
    label: str
    proposta_gerada_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SessionMessage(BaseModel):
    id: int
    role: str
    content: str
    created_at: Optional[datetime] = None


class SessionMedia(BaseModel):
    id: int
    tipo: str
    nome_arquivo: str
    arquivo_url: str
    created_at: Optional[datetime] = None


class SessionTranscript(BaseModel):
    session: SessionSummary
    messages: list[SessionMessage]
    media: list[SessionMedia]


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)


class ChatReply(BaseModel):
    role: Literal["assistant"]
    content: str
    model: str
