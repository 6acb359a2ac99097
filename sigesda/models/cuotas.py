"""
Cuota Models

Pydantic models for the dues ledger: item catalog, ledger items, cuotas,
recurring ajustes and exenciones. Field names are snake_case in Python and
camelCase on the wire (``ItemCuota(tipoItemCodigo=...)`` and
``ItemCuota(tipo_item_codigo=...)`` are both accepted).
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoriaItemCodigo(str, Enum):
    BASE = "BASE"
    ACTIVIDAD = "ACTIVIDAD"
    DESCUENTO = "DESCUENTO"
    RECARGO = "RECARGO"
    ADICIONAL = "ADICIONAL"


class EstadoRecibo(str, Enum):
    PENDIENTE = "PENDIENTE"
    PAGADO = "PAGADO"
    VENCIDO = "VENCIDO"
    ANULADO = "ANULADO"


class TipoAjuste(str, Enum):
    DESCUENTO_FIJO = "DESCUENTO_FIJO"
    DESCUENTO_PORCENTAJE = "DESCUENTO_PORCENTAJE"
    RECARGO_FIJO = "RECARGO_FIJO"
    RECARGO_PORCENTAJE = "RECARGO_PORCENTAJE"
    MONTO_FIJO_TOTAL = "MONTO_FIJO_TOTAL"


class AplicaA(str, Enum):
    TOTAL_CUOTA = "TOTAL_CUOTA"
    BASE = "BASE"
    ACTIVIDADES = "ACTIVIDADES"
    ITEMS_ESPECIFICOS = "ITEMS_ESPECIFICOS"


class TipoExencion(str, Enum):
    TOTAL = "TOTAL"
    PARCIAL = "PARCIAL"


class EstadoExencion(str, Enum):
    PENDIENTE_APROBACION = "PENDIENTE_APROBACION"
    APROBADA = "APROBADA"
    VIGENTE = "VIGENTE"
    VENCIDA = "VENCIDA"
    REVOCADA = "REVOCADA"
    RECHAZADA = "RECHAZADA"


class MotivoExencion(str, Enum):
    BECA = "BECA"
    SOCIO_FUNDADOR = "SOCIO_FUNDADOR"
    SOCIO_HONORARIO = "SOCIO_HONORARIO"
    SITUACION_ECONOMICA = "SITUACION_ECONOMICA"
    MERITO_ACADEMICO = "MERITO_ACADEMICO"
    COLABORACION_INSTITUCIONAL = "COLABORACION_INSTITUCIONAL"
    EMERGENCIA_FAMILIAR = "EMERGENCIA_FAMILIAR"
    OTRO = "OTRO"


PORCENTAJE_TIPOS = (TipoAjuste.DESCUENTO_PORCENTAJE, TipoAjuste.RECARGO_PORCENTAJE)

# Maximum span of an exención, in days
MAX_DIAS_EXENCION = 730


class CategoriaItem(CamelModel):
    codigo: str = Field(min_length=1, max_length=50)
    nombre: str = Field(default="", max_length=100)


class TipoItemCuota(CamelModel):
    id: Optional[int] = None
    codigo: str = Field(min_length=1, max_length=100)
    nombre: str = Field(default="", max_length=200)
    categoria_item: CategoriaItem
    activo: bool = True


class ItemCuota(CamelModel):
    id: Optional[int] = None
    cuota_id: Optional[int] = None
    tipo_item_codigo: str
    categoria_codigo: str
    concepto: str = ""
    monto: Decimal
    cantidad: int = Field(default=1, ge=1)
    porcentaje: Optional[Decimal] = Field(default=None, ge=0, le=100)
    es_automatico: bool = True
    es_editable: bool = False
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("categoria_codigo", "tipo_item_codigo")
    @classmethod
    def _v_codigo(cls, v: str) -> str:
        return str(v or "").strip().upper()

    @property
    def importe(self) -> Decimal:
        """Signed contribution of the item to the cuota total."""
        return self.monto * self.cantidad

    @property
    def regla_origen(self) -> Optional[str]:
        if not self.metadata:
            return None
        value = self.metadata.get("reglaOrigen")
        return str(value) if value else None


class Cuota(CamelModel):
    id: Optional[int] = None
    recibo_id: Optional[int] = None
    persona_id: Optional[int] = None
    mes: int = Field(ge=1, le=12)
    anio: int = Field(ge=1900)
    categoria_id: Optional[int] = None
    items: List[ItemCuota] = Field(default_factory=list)
    monto_total: Decimal = Decimal("0")
    # Legacy (V1) totals, superseded by items
    monto_base: Optional[Decimal] = None
    monto_actividades: Optional[Decimal] = None


class AjusteCuotaSocio(CamelModel):
    id: Optional[int] = None
    persona_id: int
    tipo_ajuste: TipoAjuste
    valor: Decimal = Field(gt=0)
    concepto: str = ""
    motivo: Optional[str] = Field(default=None, max_length=500)
    aplica_a: AplicaA = AplicaA.TOTAL_CUOTA
    items_afectados: List[int] = Field(default_factory=list)
    fecha_inicio: date
    fecha_fin: Optional[date] = None
    activo: bool = True

    @model_validator(mode="after")
    def _v_rangos(self):
        if self.tipo_ajuste in PORCENTAJE_TIPOS and self.valor > 100:
            raise ValueError("El porcentaje debe estar entre 0 y 100")
        if self.fecha_fin is not None and self.fecha_fin < self.fecha_inicio:
            raise ValueError("Fecha de fin debe ser posterior a fecha de inicio")
        return self


class ExencionCuota(CamelModel):
    id: Optional[int] = None
    persona_id: int
    tipo_exencion: TipoExencion
    porcentaje: Decimal = Field(ge=1, le=100)
    motivo_exencion: MotivoExencion = MotivoExencion.OTRO
    justificacion: str = ""
    fecha_inicio: date
    fecha_fin: Optional[date] = None
    estado: EstadoExencion = EstadoExencion.PENDIENTE_APROBACION

    @model_validator(mode="after")
    def _v_exencion(self):
        es_total = self.tipo_exencion == TipoExencion.TOTAL
        if es_total != (self.porcentaje == 100):
            raise ValueError("Exención total debe tener porcentaje de 100% (y solo ella)")
        if self.fecha_fin is not None:
            if self.fecha_fin < self.fecha_inicio:
                raise ValueError("Fecha de fin debe ser posterior a fecha de inicio")
            if (self.fecha_fin - self.fecha_inicio).days > MAX_DIAS_EXENCION:
                raise ValueError("El período de exención no puede exceder 2 años")
        return self


class CargoActividad(CamelModel):
    """An activity the persona is enrolled in, priced for this period."""
    referencia: str
    concepto: str
    precio: Decimal = Field(ge=0)
    cantidad: int = Field(default=1, ge=1)
    tipo_item_codigo: str = "ACTIVIDAD"


class ReglaDescuento(CamelModel):
    """Automatic discount rule (e.g. family discount) over a scope."""
    codigo: str
    concepto: str
    porcentaje: Decimal = Field(gt=0, le=100)
    aplica_a: AplicaA = AplicaA.BASE


class ReglasCuota(CamelModel):
    """What the automatic items of a cuota should be, per current rules."""
    monto_base: Decimal = Field(default=Decimal("0"), ge=0)
    concepto_base: str = "Cuota base socio"
    actividades: List[CargoActividad] = Field(default_factory=list)
    descuentos: List[ReglaDescuento] = Field(default_factory=list)


class RecalculoOptions(CamelModel):
    aplicar_ajustes: bool = True
    aplicar_descuentos: bool = True
    aplicar_exenciones: bool = True


class CambioValor(CamelModel):
    antes: Decimal
    despues: Decimal
    diferencia: Decimal


class CambiosRecalculo(CamelModel):
    monto_base: CambioValor
    monto_actividades: CambioValor
    monto_total: CambioValor
    ajustes_aplicados: List[AjusteCuotaSocio] = Field(default_factory=list)
    exenciones_aplicadas: List[ExencionCuota] = Field(default_factory=list)
    agregados: List[str] = Field(default_factory=list)
    actualizados: List[str] = Field(default_factory=list)
    eliminados: List[str] = Field(default_factory=list)


class RecalculoResult(CamelModel):
    cuota_original: Cuota
    cuota_recalculada: Cuota
    cambios: CambiosRecalculo


class BloqueDesglose(CamelModel):
    items: List[ItemCuota] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")


class TotalesDesglose(CamelModel):
    base: Decimal = Decimal("0")
    actividades: Decimal = Decimal("0")
    descuentos: Decimal = Decimal("0")
    recargos: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class DesgloseCuota(CamelModel):
    desglose: Dict[str, BloqueDesglose] = Field(default_factory=dict)
    totales: TotalesDesglose = Field(default_factory=TotalesDesglose)
