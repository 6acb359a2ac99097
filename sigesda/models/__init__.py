from sigesda.models.cuotas import (
    AjusteCuotaSocio,
    AplicaA,
    CategoriaItemCodigo,
    Cuota,
    EstadoExencion,
    EstadoRecibo,
    ExencionCuota,
    ItemCuota,
    RecalculoResult,
    TipoAjuste,
    TipoExencion,
    TipoItemCuota,
)
from sigesda.models.secciones import (
    AsignacionHorario,
    ConflictoHorario,
    DiaSemana,
    EstadoOcupacion,
    HorarioInput,
    HorarioSeccion,
    Seccion,
)

__all__ = [
    "AjusteCuotaSocio",
    "AplicaA",
    "AsignacionHorario",
    "CategoriaItemCodigo",
    "ConflictoHorario",
    "Cuota",
    "DiaSemana",
    "EstadoExencion",
    "EstadoOcupacion",
    "EstadoRecibo",
    "ExencionCuota",
    "HorarioInput",
    "HorarioSeccion",
    "ItemCuota",
    "RecalculoResult",
    "Seccion",
    "TipoAjuste",
    "TipoExencion",
    "TipoItemCuota",
]
