from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field


class CustomerBase(BaseModel):
    contrato: str = Field(..., min_length=1, max_length=64)
    razao_social: str = Field(..., min_length=1, max_length=255)
    cnpj: Optional[str] = Field(default=None, max_length=32)
    filial: Optional[str] = Field(default=None, max_length=50)
    praca: Optional[str] = Field(default=None, max_length=50)
    endereco: Optional[str] = Field(default=None, max_length=500)
    contato_nome: Optional[str] = None
    contato_telefone: Optional[str] = None
    data_ativacao: Optional[date] = None
    data_termino: Optional[date] = None
    taxa_ativacao: Optional[Decimal] = None
    mensalidade: Optional[Decimal] = None
    portoes: Optional[int] = Field(default=None, ge=0)
    portas: Optional[int] = Field(default=None, ge=0)
    cameras: Optional[int] = Field(default=None, ge=0)
    zonas_perimetro: Optional[int] = Field(default=None, ge=0)
    cancelas: Optional[int] = Field(default=None, ge=0)
    catracas: Optional[int] = Field(default=None, ge=0)
    totem_simples: Optional[int] = Field(default=None, ge=0)
    totem_duplo: Optional[int] = Field(default=None, ge=0)
    faciais_hik: Optional[int] = Field(default=None, ge=0)
    faciais_avicam: Optional[int] = Field(default=None, ge=0)
    faciais_outros: Optional[int] = Field(default=None, ge=0)
    dvr_nvr: Optional[int] = Field(default=None, ge=0)
    unidades: Optional[int] = Field(default=None, ge=0)
    leitores: Optional[str] = None
    quantidade_leitores: Optional[int] = Field(default=None, ge=0)
    tipo: Optional[str] = None
    sistema: Optional[str] = None
    app: Optional[str] = None
    noc: Optional[str] = None
    transbordo: Optional[bool] = None
    gateway: Optional[bool] = None
    alarme_codigo: Optional[str] = None
    status_implantacao: Optional[str] = None
    supervisor_responsavel_id: Optional[int] = None
    project_id: Optional[int] = None


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    contrato: Optional[str] = Field(default=None, min_length=1, max_length=64)
    razao_social: Optional[str] = Field(default=None, min_length=1, max_length=255)
    cnpj: Optional[str] = Field(default=None, max_length=32)
    filial: Optional[str] = Field(default=None, max_length=50)
    praca: Optional[str] = Field(default=None, max_length=50)
    endereco: Optional[str] = Field(default=None, max_length=500)
    contato_nome: Optional[str] = None
    contato_telefone: Optional[str] = None
    data_ativacao: Optional[date] = None
    data_termino: Optional[date] = None
    taxa_ativacao: Optional[Decimal] = None
    mensalidade: Optional[Decimal] = None
    portoes: Optional[int] = Field(default=None, ge=0)
    portas: Optional[int] = Field(default=None, ge=0)
    cameras: Optional[int] = Field(default=None, ge=0)
    zonas_perimetro: Optional[int] = Field(default=None, ge=0)
    cancelas: Optional[int] = Field(default=None, ge=0)
    catracas: Optional[int] = Field(default=None, ge=0)
    totem_simples: Optional[int] = Field(default=None, ge=0)
    totem_duplo: Optional[int] = Field(default=None, ge=0)
    faciais_hik: Optional[int] = Field(default=None, ge=0)
    faciais_avicam: Optional[int] = Field(default=None, ge=0)
    faciais_outros: Optional[int] = Field(default=None, ge=0)
    dvr_nvr: Optional[int] = Field(default=None, ge=0)
    unidades: Optional[int] = Field(default=None, ge=0)
    leitores: Optional[str] = None
    quantidade_leitores: Optional[int] = Field(default=None, ge=0)
    tipo: Optional[str] = None
    sistema: Optional[str] = None
    app: Optional[str] = None
    noc: Optional[str] = None
    transbordo: Optional[bool] = None
    gateway: Optional[bool] = None
    alarme_codigo: Optional[str] = None
    status_implantacao: Optional[str] = None
    supervisor_responsavel_id: Optional[int] = None
    project_id: Optional[int] = None


class CustomerDocumentCreate(BaseModel):
    nome_arquivo: str = Field(..., min_length=1, max_length=255)
    arquivo_url: str = Field(..., min_length=1, max_length=1000)
    tipo_arquivo: Optional[str] = Field(default=None, max_length=100)
    tamanho: Optional[int] = Field(default=None, ge=0)


class CustomerDocumentResponse(CustomerDocumentCreate):
    id: int
    customer_id: int
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerResponse(CustomerBase):
    id: int
    data_termino_calculada: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    documents: Optional[list[CustomerDocumentResponse]] = None

    class Config:
        from_attributes = True


class CustomerPage(BaseModel):
    total: int
    page: int
    page_size: int
    has_more: bool
    items: list[CustomerResponse]


class CustomerListQuery(BaseModel):
    """Filters accepted by the external portfolio API (query string or JSON body)."""

    customer_id: Optional[int] = None
    search: Optional[str] = None
    filial: Optional[str] = None
    contrato: Optional[str] = None
    sistema: Optional[str] = None
    app: Optional[str] = None
    tipo: Optional[str] = None
    noc: Optional[str] = None
    transbordo: Optional[bool] = None
    gateway: Optional[bool] = None
    data_ativacao_inicio: Optional[date] = None
    data_ativacao_fim: Optional[date] = None
    include_documents: bool = False
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class ExternalCustomerCreate(CustomerBase):
    filial: str = Field(..., min_length=1, max_length=50)


class ExternalCustomerUpdate(CustomerUpdate):
    customer_id: int


class ExternalCustomerDelete(BaseModel):
    customer_id: int


class ExternalDocumentCreate(CustomerDocumentCreate):
    customer_id: int


class ExternalDocumentDelete(BaseModel):
    document_id: int


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    hasMore: bool


class ExternalCustomerList(BaseModel):
    success: bool = True
    data: list[dict[str, Any]]
    pagination: Pagination
