"""
Applicability Service - which ajustes and which exención apply at a date.

Also holds the exención approval workflow.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional

from sigesda.errors import DataAnomaly, PolicyViolation, ValidationError
from sigesda.models.cuotas import AjusteCuotaSocio, AplicaA, EstadoExencion, ExencionCuota
from sigesda.utils import as_date

logger = logging.getLogger(__name__)


TRANSICIONES_EXENCION: Dict[EstadoExencion, FrozenSet[EstadoExencion]] = {
    EstadoExencion.PENDIENTE_APROBACION: frozenset({EstadoExencion.APROBADA, EstadoExencion.RECHAZADA}),
    EstadoExencion.APROBADA: frozenset({EstadoExencion.VIGENTE, EstadoExencion.REVOCADA}),
    EstadoExencion.VIGENTE: frozenset({EstadoExencion.VENCIDA, EstadoExencion.REVOCADA}),
    EstadoExencion.VENCIDA: frozenset(),
    EstadoExencion.REVOCADA: frozenset(),
    EstadoExencion.RECHAZADA: frozenset(),
}

ESTADOS_FINALES = frozenset(e for e, dest in TRANSICIONES_EXENCION.items() if not dest)


@dataclass
class ResolucionExencion:
    exencion: Optional[ExencionCuota] = None
    anomalias: List[DataAnomaly] = field(default_factory=list)


def _required_date(value, field_name: str) -> date:
    d = as_date(value)
    if d is None:
        raise ValidationError.for_field(field_name, "Fecha inválida")
    return d


def _in_range(inicio: date, fin: Optional[date], at: date) -> bool:
    return inicio <= at and (fin is None or fin >= at)


def find_active_ajustes(ajustes: Iterable[AjusteCuotaSocio], at_date) -> List[AjusteCuotaSocio]:
    """Every ajuste that is active and within its date range; no winner is picked."""
    at = _required_date(at_date, "atDate")
    return [a for a in ajustes if a.activo and _in_range(a.fecha_inicio, a.fecha_fin, at)]


def order_ajustes(ajustes: Iterable[AjusteCuotaSocio]) -> List[AjusteCuotaSocio]:
    """Scoped ajustes first, TOTAL_CUOTA last (they act on the adjusted total)."""
    ajustes = list(ajustes)
    scoped = [a for a in ajustes if a.aplica_a != AplicaA.TOTAL_CUOTA]
    total = [a for a in ajustes if a.aplica_a == AplicaA.TOTAL_CUOTA]
    return scoped + total


def resolve_exencion(exenciones: Iterable[ExencionCuota], at_date) -> ResolucionExencion:
    at = _required_date(at_date, "atDate")
    vigentes = [
        e for e in exenciones
        if e.estado == EstadoExencion.VIGENTE and _in_range(e.fecha_inicio, e.fecha_fin, at)
    ]
    if not vigentes:
        return ResolucionExencion()
    if len(vigentes) == 1:
        return ResolucionExencion(exencion=vigentes[0])

    # Tie-break: latest fecha_inicio, then highest id
    elegida = max(vigentes, key=lambda e: (e.fecha_inicio, e.id if e.id is not None else -1))
    anomalia = DataAnomaly(
        codigo="MULTIPLES_EXENCIONES_VIGENTES",
        mensaje=(
            f"Persona {elegida.persona_id} tiene {len(vigentes)} exenciones vigentes al {at.isoformat()}; "
            f"se aplica la exención {elegida.id}"
        ),
        detalles={
            "personaId": elegida.persona_id,
            "exencionIds": [e.id for e in vigentes],
            "elegida": elegida.id,
        },
    )
    logger.warning(anomalia.mensaje)
    return ResolucionExencion(exencion=elegida, anomalias=[anomalia])


def find_active_exencion(exenciones: Iterable[ExencionCuota], at_date) -> Optional[ExencionCuota]:
    return resolve_exencion(exenciones, at_date).exencion


def can_transition(desde: EstadoExencion, hacia: EstadoExencion) -> bool:
    return hacia in TRANSICIONES_EXENCION.get(desde, frozenset())


def transition_exencion(exencion: ExencionCuota, nuevo_estado: EstadoExencion) -> ExencionCuota:
    nuevo_estado = EstadoExencion(nuevo_estado)
    if exencion.estado in ESTADOS_FINALES:
        raise PolicyViolation(f"La exención está en estado final {exencion.estado.value}")
    if not can_transition(exencion.estado, nuevo_estado):
        raise PolicyViolation(
            f"Transición no permitida: {exencion.estado.value} -> {nuevo_estado.value}"
        )
    return exencion.model_copy(update={"estado": nuevo_estado})


def refresh_exencion_estado(exencion: ExencionCuota, at_date) -> ExencionCuota:
    """Date-driven moves: APROBADA -> VIGENTE once started, VIGENTE -> VENCIDA once ended."""
    at = _required_date(at_date, "atDate")
    actual = exencion
    if actual.estado == EstadoExencion.APROBADA and actual.fecha_inicio <= at:
        actual = transition_exencion(actual, EstadoExencion.VIGENTE)
    if actual.estado == EstadoExencion.VIGENTE and actual.fecha_fin is not None and actual.fecha_fin < at:
        actual = transition_exencion(actual, EstadoExencion.VENCIDA)
    return actual
