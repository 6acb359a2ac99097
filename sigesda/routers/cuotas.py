"""
Cuotas Router - item breakdown, recalculation, manual items and mass generation checks
"""
import logging

from fastapi import APIRouter, Depends, Request

from sigesda.config import Settings
from sigesda.dependencies import get_cuotas_service, get_settings
from sigesda.models.requests import (
    DesgloseRequest,
    GeneracionRequest,
    ItemManualRequest,
    RecalcularRequest,
)
from sigesda.routers.common import dump, parse_model, read_json, resultado_error
from sigesda.services.cuotas_service import CuotasService
from sigesda.services.generation_service import validate_generation
from sigesda.services.ledger_service import build_desglose, group_into_blocks

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/cuotas/flags")
async def api_cuotas_flags(settings: Settings = Depends(get_settings)):
    """Effective feature flags (dependencies on cuotas V2 applied)"""
    flags = settings.flags
    return {name: flags.is_enabled(name) for name in flags.as_dict()}


@router.post("/api/cuotas/desglose")
async def api_cuotas_desglose(request: Request):
    """Breakdown of a list of items by category, with display blocks"""
    body = parse_model(DesgloseRequest, await read_json(request), "Ítems inválidos")
    desglose = build_desglose(body.items)
    bloques = group_into_blocks(body.items)
    out = dump(desglose)
    out["bloques"] = [{"codigo": codigo, **dump(bloque)} for codigo, bloque in bloques.items()]
    return out


@router.post("/api/cuotas/recalcular")
async def api_cuotas_recalcular(
    request: Request,
    service: CuotasService = Depends(get_cuotas_service),
):
    body = parse_model(RecalcularRequest, await read_json(request), "Solicitud de recálculo inválida")
    resultado = await service.recalcular(
        body.cuota,
        body.reglas,
        estado_recibo=body.estado_recibo,
        ajustes=body.ajustes,
        exenciones=body.exenciones,
        options=body.options,
        at_date=body.fecha,
    )
    if not resultado.ok:
        return resultado_error(resultado)
    return dump(resultado.valor)


@router.post("/api/cuotas/{cuota_id}/items")
async def api_cuotas_agregar_item(
    cuota_id: int,
    request: Request,
    service: CuotasService = Depends(get_cuotas_service),
):
    body = parse_model(ItemManualRequest, await read_json(request))
    resultado = await service.agregar_item_manual(
        cuota_id,
        body.tipo_item_codigo,
        body.concepto,
        body.monto,
        body.cantidad,
        body.observaciones,
    )
    if not resultado.ok:
        return resultado_error(resultado)
    return {"success": True, "item": dump(resultado.valor)}


@router.post("/api/cuotas/generacion/validar")
async def api_cuotas_generacion_validar(request: Request):
    """Pre-flight check before generating a period's cuotas"""
    body = parse_model(GeneracionRequest, await read_json(request), "Parámetros de generación inválidos")
    validacion = validate_generation(
        body.socios,
        body.cuotas_existentes,
        body.mes,
        body.anio,
        categoria_ids=body.categoria_ids,
        incluir_inactivos=body.incluir_inactivos,
    )
    return dump(validacion)
