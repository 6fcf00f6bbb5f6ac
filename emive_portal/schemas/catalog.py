from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class ProductFields(BaseModel):
    id_produto: Optional[str] = Field(default=None, max_length=64)
    codigo: Optional[str] = Field(default=None, max_length=64)
    categoria: Optional[str] = Field(default=None, max_length=100)
    subgrupo: Optional[str] = Field(default=None, max_length=100)
    unidade: Optional[str] = Field(default=None, max_length=16)
    preco_unitario: Optional[float] = Field(default=None, ge=0)
    valor_minimo: Optional[float] = Field(default=None, ge=0)
    valor_locacao: Optional[float] = Field(default=None, ge=0)
    valor_minimo_locacao: Optional[float] = Field(default=None, ge=0)
    valor_instalacao: Optional[float] = Field(default=None, ge=0)
    descricao: Optional[str] = None
    adicional: Optional[bool] = None
    qtd_max: Optional[int] = Field(default=None, ge=0)


class ProductCreate(ProductFields):
    nome: str = Field(min_length=1, max_length=255)
    preco_unitario: float = Field(default=0, ge=0)
    ativo: bool = True


class ProductUpdate(ProductFields):
    nome: Optional[str] = Field(default=None, max_length=255)


class ActiveToggle(BaseModel):
    ativo: bool


class CatalogProduct(BaseModel):
    id: int
    id_produto: Optional[str] = None
    codigo: Optional[str] = None
    nome: str
    categoria: Optional[str] = None
    subgrupo: Optional[str] = None
    unidade: Optional[str] = None
    preco_unitario: float
    valor_minimo: Optional[float] = None
    valor_locacao: Optional[float] = None
    valor_minimo_locacao: Optional[float] = None
    valor_instalacao: Optional[float] = None
    descricao: Optional[str] = None
    adicional: bool = False
    qtd_max: Optional[int] = None
    ativo: bool
    historico_alteracoes: list[dict[str, Any]] = Field(default_factory=list)
    updated_by_name: Optional[str] = None
    updated_at: Optional[datetime] = None


class KitItemPayload(BaseModel):
    produto_id: Optional[int] = None
    quantidade: int = Field(default=1, ge=1)


class KitFields(BaseModel):
    id_kit: Optional[str] = Field(default=None, max_length=64)
    codigo: Optional[str] = Field(default=None, max_length=64)
    categoria: Optional[str] = Field(default=None, max_length=100)
    descricao: Optional[str] = None
    preco_kit: Optional[float] = Field(default=None, ge=0)
    valor_minimo: Optional[float] = Field(default=None, ge=0)
    valor_locacao: Optional[float] = Field(default=None, ge=0)
    valor_minimo_locacao: Optional[float] = Field(default=None, ge=0)
    valor_instalacao: Optional[float] = Field(default=None, ge=0)


class KitCreate(KitFields):
    nome: str = Field(min_length=1, max_length=255)
    preco_kit: float = Field(default=0, ge=0)
    ativo: bool = True
    itens: list[KitItemPayload] = Field(default_factory=list)


class KitUpdate(KitFields):
    nome: Optional[str] = Field(default=None, max_length=255)
    itens: Optional[list[KitItemPayload]] = None


class KitItem(BaseModel):
    id: int
    kit_id: int
    produto_id: int
    quantidade: int
    produto_nome: Optional[str] = None
    produto_preco_unitario: Optional[float] = None


class CatalogKit(BaseModel):
    id: int
    id_kit: Optional[str] = None
    codigo: Optional[str] = None
    nome: str
    categoria: Optional[str] = None
    descricao: Optional[str] = None
    preco_kit: float
    valor_minimo: Optional[float] = None
    valor_locacao: Optional[float] = None
    valor_minimo_locacao: Optional[float] = None
    valor_instalacao: Optional[float] = None
    ativo: bool
    historico_alteracoes: list[dict[str, Any]] = Field(default_factory=list)
    itens: list[KitItem] = Field(default_factory=list)
    total_componentes: float = 0


class PricingRule(BaseModel):
    id: int
    campo: str
    base_campo: str
    percentual: float
    descricao: Optional[str] = None
    updated_at: Optional[datetime] = None


class PricingRuleUpdate(BaseModel):
    percentual: float


class DerivedPrices(BaseModel):
    valor_minimo: float
    valor_locacao: float
    valor_minimo_locacao: float
    valor_instalacao: float


class PricingPreview(BaseModel):
    base: float
    produtos: DerivedPrices
    servicos: DerivedPrices


class PricingApplyRequest(BaseModel):
    target: Literal["produtos", "servicos"]


class PricingApplyResponse(BaseModel):
    target: str
    updated: int
