"""
Generation Service - pre-flight check for mass cuota generation.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from sigesda.errors import ValidationError
from sigesda.models.responses import CuotaExistente, SocioGeneracion, ValidacionGeneracion

logger = logging.getLogger(__name__)


def validate_generation(
    socios: Iterable[SocioGeneracion],
    cuotas_existentes: Iterable[CuotaExistente],
    mes: int,
    anio: int,
    categoria_ids: Optional[Sequence[int]] = None,
    incluir_inactivos: bool = False,
) -> ValidacionGeneracion:
    """Which socios would get a cuota for (mes, anio); existing ones are skipped."""
    if not isinstance(mes, int) or not 1 <= mes <= 12:
        raise ValidationError.for_field("mes", "Mes debe estar entre 1 y 12")
    if not isinstance(anio, int) or anio < 1900:
        raise ValidationError.for_field("anio", "Año inválido")

    ya_generadas = {c.persona_id for c in cuotas_existentes if c.mes == mes and c.anio == anio}
    categorias = set(categoria_ids) if categoria_ids else None

    a_generar: List[int] = []
    existentes = sin_categoria = inactivos = 0
    vistos = set()
    for socio in socios:
        if socio.persona_id in vistos:
            continue
        vistos.add(socio.persona_id)
        if socio.categoria_id is None:
            sin_categoria += 1
            continue
        if categorias is not None and socio.categoria_id not in categorias:
            continue
        if not socio.activo and not incluir_inactivos:
            inactivos += 1
            continue
        if socio.persona_id in ya_generadas:
            existentes += 1
            continue
        a_generar.append(socio.persona_id)

    warnings: List[str] = []
    if sin_categoria:
        warnings.append(f"{sin_categoria} socios sin categoría asignada serán omitidos")
    if existentes:
        warnings.append(f"{existentes} socios ya tienen cuota para {mes:02d}/{anio}")
    if inactivos:
        warnings.append(f"{inactivos} socios inactivos no se incluyen")

    for w in warnings:
        logger.warning(w)

    return ValidacionGeneracion(
        puede_generar=bool(a_generar),
        socios_por_generar=len(a_generar),
        cuotas_existentes=existentes,
        socios_sin_categoria=sin_categoria,
        socios_inactivos=inactivos,
        warnings=warnings,
        personas_a_generar=a_generar,
    )
