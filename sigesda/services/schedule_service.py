"""
Schedule Service - weekly interval overlaps, resource conflicts and occupancy.

Stateless: every call recomputes from the lists it is given, so callers
re-run it on each change to their horario/docente lists.
"""

import logging
import re
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Union

from sigesda.errors import FormatError, PolicyViolation, ValidationError
from sigesda.models.secciones import (
    DIAS_LABEL,
    AsignacionHorario,
    CandidatoHorario,
    ConflictoHorario,
    DetalleConflicto,
    EstadoOcupacion,
    HorarioInput,
    NivelProyeccion,
    Ocupacion,
    ParticipacionSeccion,
    ProyeccionCupo,
    Seccion,
    SolapamientoHorario,
    TipoConflicto,
)
from sigesda.utils import round_half_up

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")

UMBRAL_DISPONIBLE = 50
UMBRAL_PARCIAL = 80

Intervalo = Union[HorarioInput, AsignacionHorario, CandidatoHorario]


def to_minutes(hhmm: str) -> int:
    s = str(hhmm or "")
    if not _HHMM_RE.match(s):
        raise FormatError(f"Hora inválida: {hhmm!r} (formato HH:MM)", {"hora": "Formato HH:MM requerido"})
    hh, mm = s.split(":")
    return int(hh) * 60 + int(mm)


def minutes_to_hhmm(minutos: int) -> str:
    if minutos < 0 or minutos >= 24 * 60:
        raise ValidationError.for_field("minutos", "Fuera del rango de un día")
    return f"{minutos // 60:02d}:{minutos % 60:02d}"


def is_valid_interval(inicio: str, fin: str) -> bool:
    return to_minutes(fin) > to_minutes(inicio)


def duration_hours(inicio: str, fin: str) -> float:
    return (to_minutes(fin) - to_minutes(inicio)) / 60


def format_range(inicio: str, fin: str) -> str:
    return f"{inicio}-{fin}"


def overlaps(a: Intervalo, b: Intervalo) -> bool:
    """Half-open overlap: back-to-back intervals do not collide."""
    return (
        to_minutes(a.hora_inicio) < to_minutes(b.hora_fin)
        and to_minutes(a.hora_fin) > to_minutes(b.hora_inicio)
    )


def validate_horario(horario: Intervalo) -> None:
    if not is_valid_interval(horario.hora_inicio, horario.hora_fin):
        raise ValidationError.for_field("horaFin", "La hora de fin debe ser mayor a la hora de inicio")


def _validate_all(horarios: Iterable[Intervalo]) -> None:
    for horario in horarios:
        validate_horario(horario)


def detect_same_day_overlaps(horarios: Sequence[HorarioInput]) -> List[SolapamientoHorario]:
    """
    Pairs of active horarios overlapping on the same day. Indices refer to
    positions in ``horarios``; inactive entries are validated but never
    reported.
    """
    _validate_all(horarios)
    activos = [(i, h) for i, h in enumerate(horarios) if h.activo]
    conflictos: List[SolapamientoHorario] = []
    for n, (i, a) in enumerate(activos):
        for j, b in activos[n + 1:]:
            if a.dia_semana != b.dia_semana or not overlaps(a, b):
                continue
            conflictos.append(
                SolapamientoHorario(
                    indices=(i, j),
                    dia_semana=a.dia_semana,
                    mensaje=(
                        f"{DIAS_LABEL[a.dia_semana]}: {format_range(a.hora_inicio, a.hora_fin)} "
                        f"se superpone con {format_range(b.hora_inicio, b.hora_fin)}"
                    ),
                )
            )
    return conflictos


def _conflicto(tipo: TipoConflicto, existente: AsignacionHorario) -> ConflictoHorario:
    rango = format_range(existente.hora_inicio, existente.hora_fin)
    dia = DIAS_LABEL[existente.dia_semana]
    if tipo == TipoConflicto.DOCENTE:
        quien = f"docente {existente.docente_nombre or existente.docente_id}"
        mensaje = f"El {quien} ya dicta {existente.seccion_nombre or 'otra sección'} el {dia} {rango}"
    else:
        quien = f"aula {existente.aula_nombre or existente.aula_id}"
        mensaje = f"El {quien} ya está reservada para {existente.seccion_nombre or 'otra sección'} el {dia} {rango}"
    return ConflictoHorario(
        tipo=tipo,
        mensaje=mensaje,
        detalles=DetalleConflicto(
            seccion_id=existente.seccion_id,
            seccion_nombre=existente.seccion_nombre,
            actividad_nombre=existente.actividad_nombre,
            dia_semana=existente.dia_semana,
            hora_inicio=existente.hora_inicio,
            hora_fin=existente.hora_fin,
            docente=existente.docente_nombre if tipo == TipoConflicto.DOCENTE else None,
            aula=existente.aula_nombre if tipo == TipoConflicto.AULA else None,
        ),
    )


def detect_resource_conflicts(
    candidate: CandidatoHorario,
    existing_assignments: Iterable[AsignacionHorario],
) -> List[ConflictoHorario]:
    """
    Conflicts of ``candidate`` against bookings of the same docente and/or
    aula on the same day. Reports only; never blocks.

    Every horario is checked before comparing, so a malformed hour raises
    FormatError even when no booking shares the candidate's day.
    """
    existentes = list(existing_assignments)
    validate_horario(candidate)
    _validate_all(existentes)
    return _resource_conflicts(candidate, existentes)


def _resource_conflicts(
    candidate: CandidatoHorario,
    existing_assignments: Iterable[AsignacionHorario],
) -> List[ConflictoHorario]:
    conflictos: List[ConflictoHorario] = []
    for existente in existing_assignments:
        if not existente.activo or existente.dia_semana != candidate.dia_semana:
            continue
        if candidate.seccion_id is not None and existente.seccion_id == candidate.seccion_id:
            continue
        if not overlaps(candidate, existente):
            continue
        if candidate.docente_id is not None and existente.docente_id == candidate.docente_id:
            conflictos.append(_conflicto(TipoConflicto.DOCENTE, existente))
        if candidate.aula_id is not None and existente.aula_id == candidate.aula_id:
            conflictos.append(_conflicto(TipoConflicto.AULA, existente))
    return conflictos


def detect_assignment_conflicts(
    seccion_id: Optional[str],
    docente_ids: Iterable[str],
    horarios: Iterable[HorarioInput],
    existing_assignments: Iterable[AsignacionHorario],
    aula_id: Optional[str] = None,
) -> List[ConflictoHorario]:
    """Every docente x horario pair of a section (and its aula), checked in one pass."""
    horarios = list(horarios)
    existentes = list(existing_assignments)
    _validate_all(horarios)
    _validate_all(existentes)
    activos = [h for h in horarios if h.activo]
    candidatos = [(docente_id, None) for docente_id in docente_ids]
    if aula_id is not None:
        candidatos.append((None, aula_id))
    conflictos: List[ConflictoHorario] = []
    for docente_id, aula in candidatos:
        for horario in activos:
            candidato = CandidatoHorario(
                seccion_id=seccion_id,
                dia_semana=horario.dia_semana,
                hora_inicio=horario.hora_inicio,
                hora_fin=horario.hora_fin,
                docente_id=docente_id,
                aula_id=aula,
            )
            conflictos.extend(_resource_conflicts(candidato, existentes))
    if conflictos:
        logger.info(f"Sección {seccion_id}: {len(conflictos)} conflictos de horario detectados")
    return conflictos


def compute_occupancy(participant_count: int, capacidad_maxima: Optional[int]) -> Ocupacion:
    if participant_count < 0:
        raise ValidationError.for_field("participantes", "No puede ser negativo")
    if capacidad_maxima is None:
        return Ocupacion(participantes=participant_count, estado=EstadoOcupacion.DISPONIBLE)
    if capacidad_maxima < 1:
        raise ValidationError.for_field("capacidadMaxima", "Debe ser mayor a 0")

    porcentaje = round_half_up(Decimal(participant_count) * 100 / Decimal(capacidad_maxima))
    if participant_count >= capacidad_maxima:
        estado = EstadoOcupacion.LLENA
    elif porcentaje < UMBRAL_DISPONIBLE:
        estado = EstadoOcupacion.DISPONIBLE
    elif porcentaje <= UMBRAL_PARCIAL:
        estado = EstadoOcupacion.PARCIAL
    else:
        estado = EstadoOcupacion.CASI_LLENA
    return Ocupacion(
        participantes=participant_count,
        capacidad_maxima=capacidad_maxima,
        porcentaje=porcentaje,
        estado=estado,
        disponibles=max(capacidad_maxima - participant_count, 0),
    )


def project_occupancy(cupo_actual: int, cupo_maximo: int, seleccionadas: int) -> ProyeccionCupo:
    """Occupancy before and after enrolling ``seleccionadas`` more people."""
    proyectado = cupo_actual + seleccionadas
    if cupo_maximo > 0:
        pct_actual = (Decimal(cupo_actual) * 100 / cupo_maximo).quantize(Decimal("0.1"))
        pct_proyectado = (Decimal(proyectado) * 100 / cupo_maximo).quantize(Decimal("0.1"))
    else:
        pct_actual = pct_proyectado = Decimal("0")

    if pct_proyectado >= 100:
        nivel = NivelProyeccion.CRITICO
    elif pct_proyectado >= 90:
        nivel = NivelProyeccion.ALTO
    elif pct_proyectado >= 70:
        nivel = NivelProyeccion.MEDIO
    else:
        nivel = NivelProyeccion.BAJO

    return ProyeccionCupo(
        cupo_actual=cupo_actual,
        cupo_maximo=cupo_maximo,
        cupo_proyectado=proyectado,
        porcentaje_actual=pct_actual,
        porcentaje_proyectado=pct_proyectado,
        cupos_restantes=cupo_maximo - proyectado,
        excede_capacidad=proyectado > cupo_maximo,
        nivel=nivel,
    )


def check_enrollment(
    persona_id: str,
    seccion: Seccion,
    participaciones: Iterable[ParticipacionSeccion],
) -> Ocupacion:
    """Raise PolicyViolation when the persona cannot be enrolled in ``seccion``."""
    for p in participaciones:
        if p.activa and p.persona_id == persona_id and p.seccion_id == seccion.id:
            raise PolicyViolation(f"La persona {persona_id} ya participa en la sección {seccion.nombre}")
    ocupacion = compute_occupancy(seccion.participaciones, seccion.capacidad_maxima)
    if ocupacion.estado == EstadoOcupacion.LLENA:
        raise PolicyViolation(f"La sección {seccion.nombre} no tiene cupo disponible")
    return ocupacion
