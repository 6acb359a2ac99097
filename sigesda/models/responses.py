"""
API Response Models

Envelope models returned by the routers.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import Field

from sigesda.models.cuotas import CamelModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorResponse(CamelModel):
    """Error response model"""
    success: bool = False
    error: str
    tipo: str = "error"
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class SocioGeneracion(CamelModel):
    persona_id: int
    categoria_id: Optional[int] = None
    activo: bool = True


class CuotaExistente(CamelModel):
    persona_id: int
    mes: int
    anio: int


class ValidacionGeneracion(CamelModel):
    puede_generar: bool
    socios_por_generar: int
    cuotas_existentes: int
    socios_sin_categoria: int
    socios_inactivos: int
    warnings: List[str] = Field(default_factory=list)
    personas_a_generar: List[int] = Field(default_factory=list)
