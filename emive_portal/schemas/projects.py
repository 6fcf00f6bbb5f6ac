from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ProjectStatus = Literal[
    "RASCUNHO", "ENVIADO", "EM_ANALISE", "PENDENTE_INFO", "APROVADO_PROJETO", "RECUSADO", "CANCELADO"
]
EngineeringStatus = Literal["EM_RECEBIMENTO", "EM_PRODUCAO", "RETORNAR", "CONCLUIDO"]


class TapFormPayload(BaseModel):
    solicitacao_origem: Optional[str] = None
    email_origem_texto: Optional[str] = None
    modalidade_portaria: Optional[str] = None
    portaria_virtual_atendimento_app: Optional[str] = None
    numero_blocos: Optional[int] = Field(default=None, ge=0)
    numero_unidades: Optional[int] = Field(default=None, ge=0)
    interfonia: Optional[bool] = None
    interfonia_tipo: Optional[str] = None
    interfonia_descricao: Optional[str] = None
    controle_acessos_pedestre_descricao: Optional[str] = None
    controle_acessos_veiculo_descricao: Optional[str] = None
    alarme_descricao: Optional[str] = None
    cftv_dvr_descricao: Optional[str] = None
    cftv_elevador_possui: Optional[str] = None
    observacao_nao_assumir_cameras: Optional[bool] = None
    marcacao_croqui_confirmada: Optional[bool] = None
    marcacao_croqui_itens: Optional[list[str]] = None
    info_custo: Optional[str] = None
    info_cronograma: Optional[str] = None
    info_adicionais: Optional[str] = None


class TapFormResponse(TapFormPayload):
    id: int
    project_id: int

    class Config:
        from_attributes = True


class ProjectBase(BaseModel):
    cliente_condominio_nome: str = Field(..., min_length=1, max_length=255)
    cliente_cidade: Optional[str] = None
    cliente_estado: Optional[str] = Field(default=None, max_length=8)
    endereco_condominio: Optional[str] = None
    prazo_entrega_projeto: Optional[date] = None
    data_assembleia: Optional[date] = None
    numero_unidades: Optional[int] = Field(default=None, ge=0)
    observacoes: Optional[str] = None


class ProjectCreate(ProjectBase):
    tap_form: Optional[TapFormPayload] = None


class ProjectUpdate(BaseModel):
    cliente_condominio_nome: Optional[str] = Field(default=None, min_length=1, max_length=255)
    cliente_cidade: Optional[str] = None
    cliente_estado: Optional[str] = Field(default=None, max_length=8)
    endereco_condominio: Optional[str] = None
    prazo_entrega_projeto: Optional[date] = None
    data_assembleia: Optional[date] = None
    numero_unidades: Optional[int] = Field(default=None, ge=0)
    observacoes: Optional[str] = None
    tap_form: Optional[TapFormPayload] = None


class ProjectResponse(ProjectBase):
    id: int
    numero_projeto: int
    created_by_user_id: int
    vendedor_nome: str
    vendedor_email: str
    status: ProjectStatus
    engineering_status: Optional[EngineeringStatus] = None
    engineering_received_at: Optional[datetime] = None
    engineering_production_at: Optional[datetime] = None
    engineering_completed_at: Optional[datetime] = None
    laudo_projeto: Optional[str] = None
    sale_status: str = "NAO_INICIADO"
    implantacao_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusHistoryEntry(BaseModel):
    from_status: Optional[str] = None
    to_status: str
    reason: Optional[str] = None
    changed_by_user_id: Optional[int] = None
    changed_by_user_name: Optional[str] = None
    changed_at: Optional[datetime] = None


class ProjectDetail(ProjectResponse):
    tap_form: Optional[TapFormResponse] = None
    history: list[StatusHistoryEntry] = Field(default_factory=list)
    changed_fields: list[dict[str, Any]] = Field(default_factory=list)


class StatusChangeRequest(BaseModel):
    status: ProjectStatus
    reason: Optional[str] = Field(default=None, max_length=5000)


class EngineeringStatusRequest(BaseModel):
    status: EngineeringStatus
    laudo_projeto: Optional[str] = None


class SubmitResponse(BaseModel):
    project: ProjectResponse
    changed_fields: list[dict[str, Any]]
    notification: dict[str, Any]


class CommentCreate(BaseModel):
    texto: str = Field(..., min_length=1, max_length=10000)
    is_internal: bool = False


class CommentResponse(BaseModel):
    id: int
    project_id: int
    user_id: int
    user_name: str
    user_role: Optional[str] = None
    texto: str
    is_internal: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
