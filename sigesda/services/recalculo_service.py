"""
Recalculo Service - re-derive the automatic items of a cuota.

Automatic items are tagged with ``metadata["reglaOrigen"]``; the fresh set
computed from the current rules is diffed against the stored one by that key.
Manual items (``es_automatico=False``) are carried over untouched.

Application order:
    BASE -> ACTIVIDAD -> automatic discount rules
    -> ajustes scoped to BASE / ACTIVIDADES / ITEMS_ESPECIFICOS
    -> exención (over the base)
    -> ajustes scoped to TOTAL_CUOTA (running total, manual items included)
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Union

from sigesda.config import FeatureFlags, Settings, today_local
from sigesda.errors import PolicyViolation, ValidationError
from sigesda.models.cuotas import (
    AjusteCuotaSocio,
    AplicaA,
    CambioValor,
    CambiosRecalculo,
    Cuota,
    EstadoRecibo,
    ExencionCuota,
    ItemCuota,
    PORCENTAJE_TIPOS,
    RecalculoOptions,
    RecalculoResult,
    ReglasCuota,
    TipoAjuste,
)
from sigesda.services.applicability_service import find_active_ajustes, order_ajustes, resolve_exencion
from sigesda.services.ledger_service import compute_category_subtotal, compute_grand_total
from sigesda.utils import as_date, money

logger = logging.getLogger(__name__)

ESTADOS_RECIBO_CERRADOS = frozenset({EstadoRecibo.PAGADO, EstadoRecibo.ANULADO})

CERO = Decimal("0")
CIEN = Decimal("100")


def _pct(target: Decimal, porcentaje: Decimal) -> Decimal:
    return money(max(target, CERO) * porcentaje / CIEN)


def ajuste_importe(ajuste: AjusteCuotaSocio, target: Decimal) -> Decimal:
    """Signed amount an ajuste adds to its scope, given the scope's current amount."""
    valor = Decimal(ajuste.valor)
    tipo = ajuste.tipo_ajuste
    if tipo == TipoAjuste.DESCUENTO_PORCENTAJE:
        return -_pct(target, valor)
    if tipo == TipoAjuste.DESCUENTO_FIJO:
        return -min(money(valor), money(max(target, CERO)))
    if tipo == TipoAjuste.RECARGO_PORCENTAJE:
        return _pct(target, valor)
    if tipo == TipoAjuste.RECARGO_FIJO:
        return money(valor)
    return money(valor - target)


class _LedgerBuilder:
    """Accumulates fresh automatic items, reusing ids of previous items by key."""

    def __init__(self, cuota: Cuota):
        self.cuota = cuota
        self.previos: Dict[str, ItemCuota] = {}
        self.sin_regla: List[ItemCuota] = []
        for item in cuota.items:
            if not item.es_automatico:
                continue
            key = item.regla_origen
            if key and key not in self.previos:
                self.previos[key] = item
            else:
                self.sin_regla.append(item)
        self.manuales = [i for i in cuota.items if not i.es_automatico]
        self.automaticos: List[ItemCuota] = []
        self.agregados: List[str] = []
        self.actualizados: List[str] = []
        self.emitidos: Set[str] = set()

    def emit(
        self,
        key: str,
        tipo_item_codigo: str,
        categoria: str,
        concepto: str,
        monto: Decimal,
        cantidad: int = 1,
        porcentaje: Optional[Decimal] = None,
    ) -> ItemCuota:
        if key in self.emitidos:
            raise ValidationError.for_field("reglaOrigen", f"Regla duplicada en el recálculo: {key}")
        self.emitidos.add(key)
        previo = self.previos.get(key)
        item = ItemCuota(
            id=previo.id if previo else None,
            cuota_id=self.cuota.id,
            tipo_item_codigo=tipo_item_codigo,
            categoria_codigo=categoria,
            concepto=concepto,
            monto=money(monto),
            cantidad=cantidad,
            porcentaje=porcentaje,
            es_automatico=True,
            es_editable=False,
            metadata={"reglaOrigen": key},
        )
        if previo is None:
            self.agregados.append(key)
        elif (previo.monto, previo.cantidad, previo.categoria_codigo, previo.concepto) != (
            item.monto, item.cantidad, item.categoria_codigo, item.concepto
        ):
            self.actualizados.append(key)
        self.automaticos.append(item)
        return item

    def ledger(self) -> List[ItemCuota]:
        return self.automaticos + self.manuales

    def total(self) -> Decimal:
        return compute_grand_total(self.ledger())

    def eliminados(self) -> List[str]:
        out = [k for k in self.previos if k not in self.emitidos]
        out.extend(f"SIN_REGLA:{i.id}" for i in self.sin_regla)
        return out


def _subtotal_categoria(items: Iterable[ItemCuota], categoria: str) -> Decimal:
    return compute_category_subtotal(i for i in items if i.categoria_codigo == categoria)


def _fecha_recalculo(at_date, settings: Optional[Settings]) -> date:
    if at_date is None:
        return today_local(settings)
    at = as_date(at_date)
    if at is None:
        raise ValidationError.for_field("atDate", "Fecha inválida")
    return at


def _regla_key(prefijo: str, id_regla) -> str:
    # Stable across recalculations only when the source has an id
    if id_regla is None:
        raise ValidationError.for_field("id", f"{prefijo.capitalize()} sin id: no puede aplicarse en el recálculo")
    return f"{prefijo}:{id_regla}"


def _emit_ajuste(builder: _LedgerBuilder, ajuste: AjusteCuotaSocio, target: Decimal) -> Decimal:
    importe = ajuste_importe(ajuste, target)
    if importe == 0:
        return CERO
    builder.emit(
        key=_regla_key("AJUSTE", ajuste.id),
        tipo_item_codigo=f"AJUSTE_{ajuste.tipo_ajuste.value}",
        categoria="DESCUENTO" if importe < 0 else "RECARGO",
        concepto=ajuste.concepto or ajuste.tipo_ajuste.value.replace("_", " ").capitalize(),
        monto=importe,
        porcentaje=Decimal(ajuste.valor) if ajuste.tipo_ajuste in PORCENTAJE_TIPOS else None,
    )
    return importe


def recalculate(
    cuota: Cuota,
    reglas: ReglasCuota,
    *,
    estado_recibo: EstadoRecibo = EstadoRecibo.PENDIENTE,
    ajustes: Iterable[AjusteCuotaSocio] = (),
    exenciones: Iterable[ExencionCuota] = (),
    options: Optional[RecalculoOptions] = None,
    flags: Optional[FeatureFlags] = None,
    at_date: Optional[Union[date, str]] = None,
    settings: Optional[Settings] = None,
) -> RecalculoResult:
    """
    Re-derive automatic items of ``cuota`` from ``reglas`` and the persona's
    ajustes/exenciones. The input cuota is never modified.

    Raises ValidationError for an unparseable ``at_date``, an ajuste or
    exención without id, or two rules yielding the same key. Raises
    PolicyViolation when the recibo is closed or recalculation is
    disabled.
    """
    flags = flags or (settings.flags if settings else FeatureFlags())
    options = options or RecalculoOptions()
    if not flags.is_enabled("recalculo_cuotas"):
        raise PolicyViolation("El recálculo de cuotas está deshabilitado")
    estado_recibo = EstadoRecibo(estado_recibo)
    if estado_recibo in ESTADOS_RECIBO_CERRADOS:
        raise PolicyViolation(f"No se puede recalcular una cuota con recibo {estado_recibo.value}")

    at = _fecha_recalculo(at_date, settings)
    original = cuota.model_copy(deep=True)
    builder = _LedgerBuilder(original)

    # Base and activities
    base_neto = CERO
    if reglas.monto_base > 0:
        base_neto = builder.emit("BASE", "CUOTA_BASE", "BASE", reglas.concepto_base, reglas.monto_base).importe

    act_neto = CERO
    for cargo in reglas.actividades:
        item = builder.emit(
            f"ACTIVIDAD:{cargo.referencia}", cargo.tipo_item_codigo, "ACTIVIDAD",
            cargo.concepto, cargo.precio, cantidad=cargo.cantidad,
        )
        act_neto += item.importe

    # Automatic discount rules
    if options.aplicar_descuentos and flags.is_enabled("motor_descuentos"):
        for regla in reglas.descuentos:
            if regla.aplica_a == AplicaA.BASE:
                target = base_neto
            elif regla.aplica_a == AplicaA.ACTIVIDADES:
                target = act_neto
            elif regla.aplica_a == AplicaA.TOTAL_CUOTA:
                target = builder.total()
            else:
                logger.warning(f"Regla de descuento {regla.codigo} con alcance no soportado: {regla.aplica_a.value}")
                continue
            importe = -_pct(target, regla.porcentaje)
            if importe == 0:
                continue
            builder.emit(
                f"DESCUENTO:{regla.codigo}", f"DESCUENTO_{regla.codigo}", "DESCUENTO",
                regla.concepto, importe, porcentaje=regla.porcentaje,
            )
            if regla.aplica_a == AplicaA.BASE:
                base_neto += importe
            elif regla.aplica_a == AplicaA.ACTIVIDADES:
                act_neto += importe

    persona_id = original.persona_id

    def _de_persona(values):
        return [v for v in values if persona_id is None or v.persona_id == persona_id]

    ajustes_aplicados: List[AjusteCuotaSocio] = []
    ajustes_total: List[AjusteCuotaSocio] = []
    if options.aplicar_ajustes and flags.is_enabled("ajustes_manuales"):
        for ajuste in order_ajustes(find_active_ajustes(_de_persona(ajustes), at)):
            if ajuste.aplica_a == AplicaA.TOTAL_CUOTA:
                ajustes_total.append(ajuste)
            elif ajuste.aplica_a == AplicaA.BASE:
                importe = _emit_ajuste(builder, ajuste, base_neto)
                base_neto += importe
                ajustes_aplicados.append(ajuste)
            elif ajuste.aplica_a == AplicaA.ACTIVIDADES:
                importe = _emit_ajuste(builder, ajuste, act_neto)
                act_neto += importe
                ajustes_aplicados.append(ajuste)
            else:
                ids = set(ajuste.items_afectados or [])
                afectados = [i for i in builder.ledger() if i.id is not None and i.id in ids]
                if not afectados:
                    logger.warning(f"Ajuste {ajuste.id} sin ítems afectados en la cuota {original.id}; se omite")
                    continue
                _emit_ajuste(builder, ajuste, compute_category_subtotal(afectados))
                ajustes_aplicados.append(ajuste)

    exenciones_aplicadas: List[ExencionCuota] = []
    if options.aplicar_exenciones and flags.is_enabled("exenciones"):
        exencion = resolve_exencion(_de_persona(exenciones), at).exencion
        if exencion is not None:
            importe = -_pct(base_neto, Decimal(exencion.porcentaje))
            if importe != 0:
                builder.emit(
                    _regla_key("EXENCION", exencion.id), "EXENCION", "DESCUENTO",
                    f"Exención {exencion.tipo_exencion.value.lower()} ({exencion.motivo_exencion.value})",
                    importe, porcentaje=Decimal(exencion.porcentaje),
                )
                base_neto += importe
            exenciones_aplicadas.append(exencion)

    for ajuste in ajustes_total:
        _emit_ajuste(builder, ajuste, builder.total())
        ajustes_aplicados.append(ajuste)

    items = builder.ledger()
    monto_base = _subtotal_categoria(items, "BASE")
    monto_actividades = _subtotal_categoria(items, "ACTIVIDAD")
    monto_total = compute_grand_total(items)

    recalculada = original.model_copy(
        deep=True,
        update={
            "items": items,
            "monto_total": monto_total,
            "monto_base": monto_base,
            "monto_actividades": monto_actividades,
        },
    )

    if original.items:
        base_antes = _subtotal_categoria(original.items, "BASE")
        act_antes = _subtotal_categoria(original.items, "ACTIVIDAD")
        total_antes = compute_grand_total(original.items)
    else:
        base_antes = original.monto_base or CERO
        act_antes = original.monto_actividades or CERO
        total_antes = original.monto_total

    def _cambio(antes: Decimal, despues: Decimal) -> CambioValor:
        return CambioValor(antes=antes, despues=despues, diferencia=despues - antes)

    cambios = CambiosRecalculo(
        monto_base=_cambio(base_antes, monto_base),
        monto_actividades=_cambio(act_antes, monto_actividades),
        monto_total=_cambio(total_antes, monto_total),
        ajustes_aplicados=ajustes_aplicados,
        exenciones_aplicadas=exenciones_aplicadas,
        agregados=builder.agregados,
        actualizados=builder.actualizados,
        eliminados=builder.eliminados(),
    )
    logger.info(
        f"Cuota {original.id} recalculada: total {total_antes} -> {monto_total} "
        f"(+{len(cambios.agregados)} ~{len(cambios.actualizados)} -{len(cambios.eliminados)})"
    )
    return RecalculoResult(cuota_original=original, cuota_recalculada=recalculada, cambios=cambios)
