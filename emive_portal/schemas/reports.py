from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EngineeringFigures(BaseModel):
    recebidos: int
    abertos: int
    concluidos: int
    tempo_medio_dias: Optional[int] = None


class DesignerFigures(EngineeringFigures):
    id: int
    nome: Optional[str] = None


class EngineeringReport(BaseModel):
    inicio: datetime
    fim: datetime
    totais: EngineeringFigures
    projetistas: list[DesignerFigures]


class MaintenanceReport(BaseModel):
    inicio: datetime
    fim: datetime
    total: int
    por_status: dict[str, int]
    por_tipo: dict[str, int]
    por_praca: dict[str, int]
