from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

TicketType = Literal["PREVENTIVO", "ELETIVO", "CORRETIVO"]
TicketStatus = Literal["AGENDADO", "EM_ANDAMENTO", "CONCLUIDO", "CANCELADO", "REAGENDADO"]
Frequency = Literal[
    "SEMANAL", "QUINZENAL", "MENSAL", "BIMESTRAL", "TRIMESTRAL", "QUADRIMESTRAL", "SEMESTRAL", "ANUAL"
]


class HistoryEntry(BaseModel):
    data: str
    acao: str
    usuario: str


class TicketCreate(BaseModel):
    tipo: Optional[TicketType] = None
    data_agendada: Optional[datetime] = None
    customer_id: Optional[int] = None
    contrato: Optional[str] = Field(default=None, max_length=64)
    razao_social: Optional[str] = Field(default=None, max_length=255)
    praca: Optional[str] = Field(default=None, max_length=50)
    descricao: Optional[str] = None
    equipamentos: Optional[str] = None
    tecnico_responsavel: Optional[str] = None
    data_previsao_conclusao: Optional[datetime] = None
    is_auditoria: bool = False


class TicketReportUpdate(BaseModel):
    laudo_texto: Optional[str] = None
    tecnico_executor: Optional[str] = None
    cliente_acompanhante: Optional[str] = None
    observacoes_conclusao: Optional[str] = None


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class TicketReschedule(BaseModel):
    data_agendada: datetime


class TicketResponse(BaseModel):
    id: int
    customer_id: Optional[int] = None
    contrato: str
    razao_social: str
    praca: Optional[str] = None
    tipo: TicketType
    status: TicketStatus
    descricao: Optional[str] = None
    equipamentos: Optional[str] = None
    tecnico_responsavel: Optional[str] = None
    tecnico_executor: Optional[str] = None
    cliente_acompanhante: Optional[str] = None
    data_agendada: datetime
    data_previsao_conclusao: Optional[datetime] = None
    data_inicio: Optional[datetime] = None
    data_conclusao: Optional[datetime] = None
    laudo_texto: Optional[str] = None
    observacoes_conclusao: Optional[str] = None
    is_auditoria: bool = False
    agenda_id: Optional[int] = None
    historico: list[HistoryEntry] = Field(default_factory=list)
    created_by: Optional[int] = None
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TicketList(BaseModel):
    items: list[TicketResponse]
    metrics: dict[str, int]


class ScheduleCreate(BaseModel):
    customer_id: Optional[int] = None
    frequencia: Optional[Frequency] = None
    proxima_execucao: Optional[date] = None
    equipamentos: Optional[str] = None
    tecnico_responsavel: Optional[str] = None
    supervisor_responsavel_id: Optional[int] = None


class ScheduleUpdate(BaseModel):
    customer_id: Optional[int] = None
    frequencia: Optional[Frequency] = None
    proxima_execucao: Optional[date] = None
    equipamentos: Optional[str] = None
    tecnico_responsavel: Optional[str] = None
    supervisor_responsavel_id: Optional[int] = None


class ScheduleToggle(BaseModel):
    ativo: bool


class ExecutionRequest(BaseModel):
    execution_date: Optional[date] = None
    concluded: bool = False


class ScheduleResponse(BaseModel):
    id: int
    customer_id: int
    contrato: str
    razao_social: str
    praca: Optional[str] = None
    descricao: str
    equipamentos: Optional[str] = None
    frequencia: Frequency
    proxima_execucao: date
    ultima_execucao: Optional[date] = None
    ativo: bool
    tecnico_responsavel: Optional[str] = None
    supervisor_responsavel_id: Optional[int] = None
    supervisor_responsavel_nome: Optional[str] = None
    notificacao_enviada: bool = False
    notificacao_enviada_at: Optional[datetime] = None
    due_soon: bool = False

    class Config:
        from_attributes = True


class ExecutionResponse(BaseModel):
    schedule: ScheduleResponse
    ticket: TicketResponse
