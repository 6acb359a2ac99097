"""
Ledger Service - Cuota item breakdown

Pure computations over ItemCuota collections: sign classification
(DEBE/HABER), subtotals, grand total, the desglose response, display blocks
and manual item validation/insertion.
"""

import inspect
import logging
from collections import OrderedDict
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sigesda.config import FeatureFlags
from sigesda.errors import PolicyViolation, RemoteError, SigesdaError, ValidationError
from sigesda.models.cuotas import (
    BloqueDesglose,
    CategoriaItem,
    CategoriaItemCodigo,
    Cuota,
    DesgloseCuota,
    ItemCuota,
    TipoItemCuota,
    TotalesDesglose,
)
from sigesda.utils import money

logger = logging.getLogger(__name__)


class Signo(str, Enum):
    POSITIVE = "POSITIVE"  # DEBE
    NEGATIVE = "NEGATIVE"  # HABER


# Anything outside this set reduces the total, including codes added later.
CATEGORIAS_DEBE = frozenset({
    CategoriaItemCodigo.BASE.value,
    CategoriaItemCodigo.ACTIVIDAD.value,
    CategoriaItemCodigo.RECARGO.value,
    CategoriaItemCodigo.ADICIONAL.value,
})

BLOQUE_AJUSTES = "AJUSTES"
_CATEGORIAS_AJUSTES = ("DESCUENTO", "RECARGO", "OTRO")

CONCEPTO_MIN = 3
CONCEPTO_MAX = 200
OBSERVACIONES_MAX = 500
MENSAJE_ERROR_REMOTO = "Error al agregar el ítem"


def classify_sign(categoria_codigo: str) -> Signo:
    codigo = str(categoria_codigo or "").strip().upper()
    return Signo.POSITIVE if codigo in CATEGORIAS_DEBE else Signo.NEGATIVE


def compute_category_subtotal(items: Iterable[ItemCuota]) -> Decimal:
    return sum((item.monto * item.cantidad for item in items), Decimal("0"))


def compute_grand_total(all_items: Iterable[ItemCuota]) -> Decimal:
    return compute_category_subtotal(all_items)


def group_by_categoria(items: Iterable[ItemCuota]) -> "OrderedDict[str, List[ItemCuota]]":
    grupos: "OrderedDict[str, List[ItemCuota]]" = OrderedDict()
    for item in items:
        grupos.setdefault(item.categoria_codigo, []).append(item)
    return grupos


def cuota_total(cuota: Cuota, flags: Optional[FeatureFlags] = None) -> Decimal:
    """Total of a cuota: item-based in V2, legacy base + actividades otherwise."""
    flags = flags or FeatureFlags()
    if flags.is_enabled("cuotas_v2"):
        return compute_grand_total(cuota.items)
    return (cuota.monto_base or Decimal("0")) + (cuota.monto_actividades or Decimal("0"))


def verify_integrity(cuota: Cuota, tolerance: Decimal = Decimal("0.01")) -> bool:
    """True when the stored total matches its items, within one cent."""
    return abs(compute_grand_total(cuota.items) - cuota.monto_total) < tolerance


def debe_haber(item: ItemCuota) -> Tuple[Decimal, Decimal]:
    importe = abs(item.importe)
    if classify_sign(item.categoria_codigo) is Signo.POSITIVE:
        return importe, Decimal("0")
    return Decimal("0"), importe


def build_desglose(items: Iterable[ItemCuota]) -> DesgloseCuota:
    items = list(items)
    grupos = group_by_categoria(items)
    desglose = {
        codigo: BloqueDesglose(items=grupo, subtotal=compute_category_subtotal(grupo))
        for codigo, grupo in grupos.items()
    }

    def _sub(codigo: str) -> Decimal:
        bloque = desglose.get(codigo)
        return bloque.subtotal if bloque else Decimal("0")

    totales = TotalesDesglose(
        base=_sub("BASE"),
        actividades=_sub("ACTIVIDAD"),
        descuentos=abs(_sub("DESCUENTO")),
        recargos=_sub("RECARGO"),
        total=compute_grand_total(items),
    )
    return DesgloseCuota(desglose=desglose, totales=totales)


def group_into_blocks(items: Iterable[ItemCuota]) -> "OrderedDict[str, BloqueDesglose]":
    """
    Display blocks: BASE, ACTIVIDAD, AJUSTES (descuentos, recargos and otros
    merged), then any other category in first-seen order. Empty fixed blocks
    are omitted.
    """
    bloques: "OrderedDict[str, List[ItemCuota]]" = OrderedDict(
        (k, []) for k in ("BASE", "ACTIVIDAD", BLOQUE_AJUSTES)
    )
    for item in items:
        codigo = item.categoria_codigo
        key = BLOQUE_AJUSTES if codigo in _CATEGORIAS_AJUSTES else codigo
        bloques.setdefault(key, []).append(item)
    return OrderedDict(
        (k, BloqueDesglose(items=v, subtotal=compute_category_subtotal(v)))
        for k, v in bloques.items()
        if v
    )


class CatalogoItems:
    """Catalog of item types, resolved by codigo."""

    def __init__(self, tipos: Iterable[TipoItemCuota]):
        self._tipos: Dict[str, TipoItemCuota] = {}
        for tipo in tipos:
            self._tipos[str(tipo.codigo).strip().upper()] = tipo

    def __contains__(self, codigo: str) -> bool:
        return self.get(codigo) is not None

    def get(self, codigo: str) -> Optional[TipoItemCuota]:
        tipo = self._tipos.get(str(codigo or "").strip().upper())
        if tipo is None or not tipo.activo:
            return None
        return tipo

    def resolve(self, codigo: str) -> TipoItemCuota:
        tipo = self.get(codigo)
        if tipo is None:
            raise PolicyViolation(f"Tipo de ítem desconocido: {codigo}")
        return tipo

    def classify(self, codigo: str) -> Signo:
        return classify_sign(self.resolve(codigo).categoria_item.codigo)


def validate_manual_item(
    tipo_item_codigo: Any,
    concepto: Any,
    monto: Any,
    cantidad: Any,
    observaciones: Any = None,
) -> Dict[str, str]:
    """Field errors for a manual item, empty when valid."""
    errors: Dict[str, str] = {}

    if not str(tipo_item_codigo or "").strip():
        errors["tipoItemCodigo"] = "Tipo de ítem requerido"

    concepto_s = str(concepto or "").strip()
    if len(concepto_s) < CONCEPTO_MIN:
        errors["concepto"] = f"Concepto debe tener al menos {CONCEPTO_MIN} caracteres"
    elif len(concepto_s) > CONCEPTO_MAX:
        errors["concepto"] = f"Concepto no puede exceder {CONCEPTO_MAX} caracteres"

    try:
        monto_d = Decimal(str(monto))
        if not monto_d.is_finite() or monto_d <= 0:
            errors["monto"] = "Monto debe ser mayor a 0"
    except Exception:
        errors["monto"] = "Monto debe ser un número"

    if isinstance(cantidad, bool) or not isinstance(cantidad, int) or cantidad < 1:
        errors["cantidad"] = "Cantidad debe ser un entero mayor a 0"

    if observaciones is not None and len(str(observaciones)) > OBSERVACIONES_MAX:
        errors["observaciones"] = f"Observaciones no puede exceder {OBSERVACIONES_MAX} caracteres"

    return errors


def build_manual_item(
    catalogo: CatalogoItems,
    cuota_id: Optional[int],
    tipo_item_codigo: str,
    concepto: str,
    monto: Any,
    cantidad: int,
    observaciones: Optional[str] = None,
) -> ItemCuota:
    errors = validate_manual_item(tipo_item_codigo, concepto, monto, cantidad, observaciones)
    if errors:
        raise ValidationError("El ítem tiene datos inválidos", errors)

    tipo = catalogo.resolve(tipo_item_codigo)
    categoria = tipo.categoria_item.codigo
    magnitud = money(monto)
    signed = magnitud if classify_sign(categoria) is Signo.POSITIVE else -magnitud

    return ItemCuota(
        cuota_id=cuota_id,
        tipo_item_codigo=tipo.codigo,
        categoria_codigo=categoria,
        concepto=str(concepto).strip(),
        monto=signed,
        cantidad=int(cantidad),
        porcentaje=None,
        es_automatico=False,
        es_editable=True,
        metadata={"observaciones": observaciones} if observaciones else None,
    )


def _remote_message(exc: Exception) -> str:
    for attr in ("detail", "message"):
        value = getattr(exc, attr, None)
        if isinstance(value, dict):
            value = value.get("message") or value.get("error")
        if value:
            return str(value)
    return str(exc) or MENSAJE_ERROR_REMOTO


async def add_manual_item(
    catalogo: CatalogoItems,
    cuota_id: Optional[int],
    tipo_item_codigo: str,
    concepto: str,
    monto: Any,
    cantidad: int,
    observaciones: Optional[str] = None,
    persist: Optional[Callable[[ItemCuota], Any]] = None,
) -> ItemCuota:
    """
    Validate and build a manual item, then hand it to ``persist``.

    ``persist`` may be sync or async and returns the stored item. Any failure
    there surfaces as RemoteError carrying the server message when one is
    available; SigesdaError raised by ``persist`` propagates unchanged.
    """
    item = build_manual_item(catalogo, cuota_id, tipo_item_codigo, concepto, monto, cantidad, observaciones)
    if persist is None:
        return item
    try:
        saved = persist(item)
        if inspect.isawaitable(saved):
            saved = await saved
    except SigesdaError:
        raise
    except Exception as e:
        logger.error(f"Error persisting manual item for cuota {cuota_id}: {e}")
        raise RemoteError(_remote_message(e), getattr(e, "status_code", None)) from e
    return saved if isinstance(saved, ItemCuota) else item


# Item types known out of the box; deployments may load their own catalog.
TIPOS_ITEM_DEFAULT = (
    ("CUOTA_BASE", "Cuota base", "BASE"),
    ("ACTIVIDAD", "Actividad", "ACTIVIDAD"),
    ("AJUSTE_MANUAL_DESCUENTO", "Ajuste Manual (Descuento)", "DESCUENTO"),
    ("AJUSTE_MANUAL_RECARGO", "Ajuste Manual (Recargo)", "RECARGO"),
    ("ADICIONAL", "Cargo adicional", "ADICIONAL"),
)


def default_catalogo() -> CatalogoItems:
    return CatalogoItems(
        TipoItemCuota(
            id=i,
            codigo=codigo,
            nombre=nombre,
            categoria_item=CategoriaItem(codigo=categoria, nombre=categoria.capitalize()),
        )
        for i, (codigo, nombre, categoria) in enumerate(TIPOS_ITEM_DEFAULT, start=1)
    )
