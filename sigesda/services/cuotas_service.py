"""
Cuotas Service - async boundary over the ledger and recalculation core.

Callers get a Resultado instead of exceptions; the item gateway (persistence)
is injected and may be sync or async.
"""

import inspect
from datetime import date
from typing import Any, Callable, Iterable, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from sigesda.config import FeatureFlags, Settings
from sigesda.errors import PolicyViolation, SigesdaError, from_pydantic
from sigesda.models.cuotas import (
    AjusteCuotaSocio,
    Cuota,
    EstadoRecibo,
    ExencionCuota,
    ItemCuota,
    RecalculoOptions,
    RecalculoResult,
    ReglasCuota,
)
from sigesda.services.base import BaseService, Resultado
from sigesda.services.ledger_service import CatalogoItems, add_manual_item
from sigesda.services.recalculo_service import recalculate


class CuotasService(BaseService):
    """Manual items and recalculation for cuotas."""

    def __init__(
        self,
        catalogo: CatalogoItems,
        crear_item: Optional[Callable[[ItemCuota], Any]] = None,
        settings: Optional[Settings] = None,
        flags: Optional[FeatureFlags] = None,
    ):
        super().__init__(settings, flags)
        self.catalogo = catalogo
        self._crear_item = crear_item
        self._recalculos_en_curso: Set[Any] = set()

    async def agregar_item_manual(
        self,
        cuota_id: Optional[int],
        tipo_item_codigo: str,
        concepto: str,
        monto: Any,
        cantidad: int = 1,
        observaciones: Optional[str] = None,
    ) -> Resultado[ItemCuota]:
        try:
            if not self._require("cuotas_v2"):
                raise PolicyViolation("La gestión de ítems requiere cuotas V2")
            item = await add_manual_item(
                self.catalogo, cuota_id, tipo_item_codigo, concepto, monto, cantidad,
                observaciones, persist=self._crear_item,
            )
            return Resultado.exito(item)
        except SigesdaError as e:
            self.logger.warning(f"No se pudo agregar ítem a cuota {cuota_id}: {e.message}")
            return Resultado.fallo(e)

    async def recalcular(
        self,
        cuota: Cuota,
        reglas: ReglasCuota,
        estado_recibo: EstadoRecibo = EstadoRecibo.PENDIENTE,
        ajustes: Iterable[AjusteCuotaSocio] = (),
        exenciones: Iterable[ExencionCuota] = (),
        options: Optional[RecalculoOptions] = None,
        at_date: Optional[Union[date, str]] = None,
        cargar_reglas: Optional[Callable[[Cuota], Any]] = None,
    ) -> Resultado[RecalculoResult]:
        """
        Recalculate ``cuota``. ``cargar_reglas`` (sync or async) may refresh the
        rules first. A second call for the same cuota while one is pending is
        rejected; on any failure the caller keeps its previous cuota.
        """
        key = cuota.id if cuota.id is not None else id(cuota)
        if key in self._recalculos_en_curso:
            return Resultado.fallo(PolicyViolation(f"Ya hay un recálculo en curso para la cuota {cuota.id}"))
        self._recalculos_en_curso.add(key)
        try:
            if cargar_reglas is not None:
                loaded = cargar_reglas(cuota)
                if inspect.isawaitable(loaded):
                    loaded = await loaded
                if loaded is not None:
                    reglas = loaded if isinstance(loaded, ReglasCuota) else ReglasCuota.model_validate(loaded)
            result = recalculate(
                cuota, reglas,
                estado_recibo=estado_recibo,
                ajustes=ajustes,
                exenciones=exenciones,
                options=options,
                flags=self.flags,
                at_date=at_date,
                settings=self.settings,
            )
            return Resultado.exito(result)
        except PydanticValidationError as e:
            return Resultado.fallo(from_pydantic(e, "Reglas de cuota inválidas"))
        except SigesdaError as e:
            self.logger.warning(f"Recálculo rechazado para cuota {cuota.id}: {e.message}")
            return Resultado.fallo(e)
        finally:
            self._recalculos_en_curso.discard(key)
