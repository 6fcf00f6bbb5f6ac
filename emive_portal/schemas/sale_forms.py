from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

Count = Optional[int]


class SaleFormFields(BaseModel):
    nome_condominio: Optional[str] = Field(default=None, max_length=255)
    filial: Optional[str] = Field(default=None, max_length=50)
    produto: Optional[str] = Field(default=None, max_length=100)
    qtd_apartamentos: Count = Field(default=None, ge=0)
    qtd_blocos: Count = Field(default=None, ge=0)
    internet_exclusiva: Optional[str] = None
    acesso_local_central_portaria: Optional[str] = None
    local_central_interfonia_descricao: Optional[str] = None
    obs_central_portaria_qdg: Optional[str] = None
    cabo_metros_qdg_ate_central: Count = Field(default=None, ge=0)
    transbordo_para_apartamentos: Optional[str] = None
    metodo_acionamento_portoes: Optional[str] = None
    qtd_portoes_deslizantes: Count = Field(default=None, ge=0)
    qtd_portoes_pivotantes: Count = Field(default=None, ge=0)
    qtd_portoes_basculantes: Count = Field(default=None, ge=0)
    qtd_portas_pedestre: Count = Field(default=None, ge=0)
    qtd_portas_bloco: Count = Field(default=None, ge=0)
    qtd_saida_autenticada: Count = Field(default=None, ge=0)
    obs_portas: Optional[str] = None
    acessos_tem_camera_int_ext: Optional[bool] = None
    possui_cancela: Optional[bool] = None
    cancela_qtd_sentido_unico: Count = Field(default=None, ge=0)
    cancela_qtd_duplo_sentido: Count = Field(default=None, ge=0)
    cancela_autenticacao: Optional[str] = None
    cancela_aproveitada_detalhes: Optional[str] = None
    possui_catraca: Optional[bool] = None
    catraca_qtd_sentido_unico: Count = Field(default=None, ge=0)
    catraca_qtd_duplo_sentido: Count = Field(default=None, ge=0)
    catraca_autenticacao: Optional[str] = None
    catraca_aproveitada_detalhes: Optional[str] = None
    possui_totem: Optional[bool] = None
    totem_qtd_simples: Count = Field(default=None, ge=0)
    totem_qtd_duplo: Count = Field(default=None, ge=0)
    qtd_cameras_aproveitadas: Count = Field(default=None, ge=0)
    qtd_dvrs_aproveitados: Count = Field(default=None, ge=0)
    marca_modelo_dvr_aproveitado: Optional[str] = None
    qtd_cameras_elevador: Count = Field(default=None, ge=0)
    cftv_novo_qtd_dvr_4ch: Count = Field(default=None, ge=0)
    cftv_novo_qtd_dvr_8ch: Count = Field(default=None, ge=0)
    cftv_novo_qtd_dvr_16ch: Count = Field(default=None, ge=0)
    cftv_novo_qtd_total_cameras: Count = Field(default=None, ge=0)
    alarme_tipo: Optional[str] = None
    cerca_local_central_choque: Optional[str] = None
    cerca_central_alarme_tipo: Optional[str] = None
    cerca_qtd_fios: Count = Field(default=None, ge=0)
    cerca_metragem_linear_total: Count = Field(default=None, ge=0)
    cerca_qtd_cabo_centenax: Count = Field(default=None, ge=0)
    iva_central_alarme_tipo: Optional[str] = None
    iva_qtd_novos: Count = Field(default=None, ge=0)
    iva_qtd_pares_existentes: Count = Field(default=None, ge=0)
    iva_qtd_cabo_blindado: Optional[str] = None
    modificacoes_projeto_final: Optional[str] = None
    resumo_tecnico_noc: Optional[str] = None
    obs_gerais: Optional[str] = None


class SaleFormResponse(SaleFormFields):
    id: int
    project_id: int
    vendedor_nome: Optional[str] = None
    vendedor_email: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SummaryItem(BaseModel):
    field: str
    label: str
    value: str


class SummarySection(BaseModel):
    title: str
    items: list[SummaryItem]
