"""
Secciones Router - schedule validation, conflict detection and occupancy
"""
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Request

from sigesda.errors import ValidationError
from sigesda.models.requests import (
    ProyeccionRequest,
    ValidarHorariosRequest,
    VerificarConflictosRequest,
    VerificarInscripcionRequest,
)
from sigesda.models.secciones import VerificarConflictosResponse
from sigesda.routers.common import dump, parse_model, read_json
from sigesda.services.schedule_service import (
    check_enrollment,
    compute_occupancy,
    detect_assignment_conflicts,
    detect_same_day_overlaps,
    duration_hours,
    is_valid_interval,
    project_occupancy,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/api/secciones/verificar-conflictos")
async def api_secciones_verificar_conflictos(request: Request):
    """Docente/aula conflicts of a section's horarios against existing bookings"""
    body = parse_model(VerificarConflictosRequest, await read_json(request))
    conflictos = detect_assignment_conflicts(
        body.seccion_id,
        body.docente_ids,
        body.horarios,
        body.asignaciones,
        aula_id=body.aula_id,
    )
    return dump(VerificarConflictosResponse(tiene_conflictos=bool(conflictos), conflictos=conflictos))


@router.post("/api/secciones/horarios/validar")
async def api_secciones_horarios_validar(request: Request):
    body = parse_model(ValidarHorariosRequest, await read_json(request))
    errors: Dict[str, str] = {}
    for i, horario in enumerate(body.horarios):
        if not is_valid_interval(horario.hora_inicio, horario.hora_fin):
            errors[f"horarios.{i}.horaFin"] = "La hora de fin debe ser mayor a la hora de inicio"
    if errors:
        raise ValidationError("Horarios inválidos", errors)
    solapamientos = detect_same_day_overlaps(body.horarios)
    return {
        "valido": not solapamientos,
        "solapamientos": [dump(s) for s in solapamientos],
        "horasSemanales": sum(duration_hours(h.hora_inicio, h.hora_fin) for h in body.horarios if h.activo),
    }


@router.get("/api/secciones/ocupacion")
async def api_secciones_ocupacion(participantes: int, capacidad: Optional[int] = None):
    return dump(compute_occupancy(participantes, capacidad))


@router.post("/api/secciones/proyeccion-cupo")
async def api_secciones_proyeccion_cupo(request: Request):
    body = parse_model(ProyeccionRequest, await read_json(request))
    return dump(project_occupancy(body.cupo_actual, body.cupo_maximo, body.seleccionadas))


@router.post("/api/secciones/inscripcion/verificar")
async def api_secciones_inscripcion_verificar(request: Request):
    """409 when the persona already participates or the section is full"""
    body = parse_model(VerificarInscripcionRequest, await read_json(request))
    ocupacion = check_enrollment(body.persona_id, body.seccion, body.participaciones)
    return {"puedeInscribir": True, "ocupacion": dump(ocupacion)}
