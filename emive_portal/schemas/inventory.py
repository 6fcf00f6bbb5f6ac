from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

StockStatus = Literal["OK", "CRITICO", "SEM_BASE"]
LocationType = Literal["INSTALACAO", "MANUTENCAO", "URGENCIA"]


class LocationResponse(BaseModel):
    id: int
    cidade: str
    tipo: LocationType
    nome_local: str

    class Config:
        from_attributes = True


class StockCell(BaseModel):
    local_estoque_id: int
    estoque_minimo: int
    estoque_atual: int
    status: StockStatus


class GroupedItem(BaseModel):
    item_id: int
    codigo: str
    modelo: str
    locais: dict[int, StockCell]
    status: StockStatus


class StockStats(BaseModel):
    total: int
    ok: int
    critico: int
    sem_base: int


class StockOverview(BaseModel):
    locations: list[LocationResponse]
    checked_locations: list[int]
    items: list[GroupedItem]
    critical_count: int
    stats: StockStats
    cidades: list[str]
    tipos: list[str]


class StockValueUpdate(BaseModel):
    item_id: int
    local_estoque_id: int
    value: int = Field(ge=0)


class StockResponse(BaseModel):
    id: int
    item_id: int
    local_estoque_id: int
    estoque_minimo: int
    estoque_atual: int
    updated_at: Optional[datetime] = None


class ProductCreate(BaseModel):
    codigo: str = Field(min_length=1, max_length=64)
    modelo: str = Field(min_length=1, max_length=255)


class ProductResponse(BaseModel):
    id: int
    codigo: str
    modelo: str
    created_at: Optional[datetime] = None


class StockLevelRow(BaseModel):
    codigo: str
    modelo: Optional[str] = None
    localCode: str
    estoque: float = 0


class StockLevelImport(BaseModel):
    stockRows: list[StockLevelRow] = Field(default_factory=list)
    fileName: str = "importacao.xlsx"


class ImportResult(BaseModel):
    items_processed: int
    stock_records: int
    message: str


class ImportHistoryEntry(BaseModel):
    id: int
    arquivo_nome: str
    tipo_importacao: Optional[str] = None
    itens_importados: int
    importado_por: Optional[int] = None
    importado_por_nome: Optional[str] = None
    created_at: Optional[datetime] = None
