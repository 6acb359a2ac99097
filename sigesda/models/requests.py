"""
API Request Models

Bodies accepted by the routers, camelCase on the wire.
"""

from datetime import date
from typing import Any, List, Optional

from pydantic import Field

from sigesda.models.cuotas import (
    AjusteCuotaSocio,
    CamelModel,
    Cuota,
    EstadoRecibo,
    ExencionCuota,
    ItemCuota,
    RecalculoOptions,
    ReglasCuota,
)
from sigesda.models.responses import CuotaExistente, SocioGeneracion
from sigesda.models.secciones import AsignacionHorario, HorarioInput, ParticipacionSeccion, Seccion


class DesgloseRequest(CamelModel):
    items: List[ItemCuota] = Field(default_factory=list)


class RecalcularRequest(CamelModel):
    cuota: Cuota
    reglas: ReglasCuota = Field(default_factory=ReglasCuota)
    estado_recibo: EstadoRecibo = EstadoRecibo.PENDIENTE
    ajustes: List[AjusteCuotaSocio] = Field(default_factory=list)
    exenciones: List[ExencionCuota] = Field(default_factory=list)
    options: RecalculoOptions = Field(default_factory=RecalculoOptions)
    fecha: Optional[date] = None


class ItemManualRequest(CamelModel):
    # Loosely typed so the ledger reports every field error at once
    tipo_item_codigo: Any = None
    concepto: Any = None
    monto: Any = None
    cantidad: Any = 1
    observaciones: Optional[str] = None


class GeneracionRequest(CamelModel):
    mes: int
    anio: int
    socios: List[SocioGeneracion] = Field(default_factory=list)
    cuotas_existentes: List[CuotaExistente] = Field(default_factory=list)
    categoria_ids: Optional[List[int]] = None
    incluir_inactivos: bool = False


class VerificarConflictosRequest(CamelModel):
    seccion_id: Optional[str] = None
    docente_ids: List[str] = Field(default_factory=list)
    aula_id: Optional[str] = None
    horarios: List[HorarioInput] = Field(default_factory=list)
    asignaciones: List[AsignacionHorario] = Field(default_factory=list)


class ValidarHorariosRequest(CamelModel):
    horarios: List[HorarioInput] = Field(default_factory=list)


class VerificarInscripcionRequest(CamelModel):
    persona_id: str
    seccion: Seccion
    participaciones: List[ParticipacionSeccion] = Field(default_factory=list)


class ProyeccionRequest(CamelModel):
    cupo_actual: int = Field(ge=0)
    cupo_maximo: int = Field(ge=0)
    seleccionadas: int = Field(default=0, ge=0)
