"""
Tests for ajuste/exención applicability and the exención workflow
"""

import logging
from datetime import date
from decimal import Decimal

import pydantic
import pytest

from sigesda.errors import PolicyViolation, ValidationError
from sigesda.models.cuotas import (
    AjusteCuotaSocio,
    AplicaA,
    EstadoExencion,
    ExencionCuota,
    TipoAjuste,
    TipoExencion,
)
from sigesda.services.applicability_service import (
    can_transition,
    find_active_ajustes,
    find_active_exencion,
    order_ajustes,
    refresh_exencion_estado,
    resolve_exencion,
    transition_exencion,
)

pytestmark = pytest.mark.unit


def _ajuste(**kwargs):
    data = dict(
        id=1,
        persona_id=7,
        tipo_ajuste=TipoAjuste.DESCUENTO_PORCENTAJE,
        valor=Decimal("10"),
        fecha_inicio=date(2025, 1, 1),
        fecha_fin=date(2025, 6, 30),
    )
    data.update(kwargs)
    return AjusteCuotaSocio(**data)


def _exencion(**kwargs):
    data = dict(
        id=1,
        persona_id=7,
        tipo_exencion=TipoExencion.PARCIAL,
        porcentaje=Decimal("50"),
        fecha_inicio=date(2025, 1, 1),
        estado=EstadoExencion.VIGENTE,
    )
    data.update(kwargs)
    return ExencionCuota(**data)


class TestAjustes:
    def test_applicable_within_range(self):
        ajuste = _ajuste()
        assert find_active_ajustes([ajuste], "2025-03-15") == [ajuste]
        assert find_active_ajustes([ajuste], "2025-07-01") == []

    def test_range_bounds_are_inclusive(self):
        ajuste = _ajuste()
        assert find_active_ajustes([ajuste], date(2025, 1, 1)) == [ajuste]
        assert find_active_ajustes([ajuste], date(2025, 6, 30)) == [ajuste]
        assert find_active_ajustes([ajuste], date(2024, 12, 31)) == []

    def test_open_ended_and_inactive(self):
        abierto = _ajuste(id=2, fecha_fin=None)
        inactivo = _ajuste(id=3, activo=False)
        assert find_active_ajustes([abierto, inactivo], date(2030, 1, 1)) == [abierto]

    def test_no_winner_is_picked(self):
        descuento = _ajuste(id=1)
        recargo = _ajuste(id=2, tipo_ajuste=TipoAjuste.RECARGO_FIJO, valor=Decimal("300"))
        assert len(find_active_ajustes([descuento, recargo], date(2025, 3, 15))) == 2

    def test_invalid_date(self):
        with pytest.raises(ValidationError):
            find_active_ajustes([_ajuste()], "no-es-fecha")

    def test_total_cuota_goes_last(self):
        total = _ajuste(id=1, aplica_a=AplicaA.TOTAL_CUOTA)
        base = _ajuste(id=2, aplica_a=AplicaA.BASE)
        actividades = _ajuste(id=3, aplica_a=AplicaA.ACTIVIDADES)
        assert [a.id for a in order_ajustes([total, base, actividades])] == [2, 3, 1]

    def test_model_rejects_bad_ranges(self):
        with pytest.raises(pydantic.ValidationError):
            _ajuste(valor=Decimal("120"))
        with pytest.raises(pydantic.ValidationError):
            _ajuste(fecha_fin=date(2024, 12, 1))
        # Fixed amounts above 100 are fine
        assert _ajuste(tipo_ajuste=TipoAjuste.DESCUENTO_FIJO, valor=Decimal("1500")).valor == Decimal("1500")


class TestExenciones:
    def test_only_vigente_in_range(self):
        vigente = _exencion(id=1)
        aprobada = _exencion(id=2, estado=EstadoExencion.APROBADA)
        vencida = _exencion(id=3, fecha_fin=date(2025, 2, 28))
        assert find_active_exencion([vigente, aprobada, vencida], date(2025, 3, 15)) == vigente
        assert find_active_exencion([aprobada], date(2025, 3, 15)) is None

    def test_tie_break_latest_start_reports_anomaly(self, caplog):
        vieja = _exencion(id=8, fecha_inicio=date(2025, 1, 1))
        nueva = _exencion(id=2, fecha_inicio=date(2025, 2, 1))
        with caplog.at_level(logging.WARNING, logger="sigesda.services.applicability_service"):
            resolucion = resolve_exencion([vieja, nueva], date(2025, 3, 15))
        assert resolucion.exencion.id == 2
        assert len(resolucion.anomalias) == 1
        anomalia = resolucion.anomalias[0]
        assert anomalia.codigo == "MULTIPLES_EXENCIONES_VIGENTES"
        assert anomalia.detalles["exencionIds"] == [8, 2]
        assert any("exenciones vigentes" in r.message for r in caplog.records)

    def test_tie_break_same_start_highest_id(self):
        a = _exencion(id=3)
        b = _exencion(id=5)
        assert find_active_exencion([b, a], date(2025, 3, 15)).id == 5
        assert find_active_exencion([a, b], date(2025, 3, 15)).id == 5

    def test_total_requires_full_percentage(self):
        with pytest.raises(pydantic.ValidationError):
            _exencion(tipo_exencion=TipoExencion.TOTAL, porcentaje=Decimal("50"))
        with pytest.raises(pydantic.ValidationError):
            _exencion(tipo_exencion=TipoExencion.PARCIAL, porcentaje=Decimal("100"))
        assert _exencion(tipo_exencion=TipoExencion.TOTAL, porcentaje=Decimal("100")).porcentaje == 100

    def test_period_limited_to_two_years(self):
        with pytest.raises(pydantic.ValidationError):
            _exencion(fecha_inicio=date(2025, 1, 1), fecha_fin=date(2027, 1, 5))
        assert _exencion(fecha_inicio=date(2025, 1, 1), fecha_fin=date(2026, 12, 31)).fecha_fin

    def test_new_exencion_starts_pending(self):
        exencion = ExencionCuota(
            persona_id=7,
            tipo_exencion=TipoExencion.TOTAL,
            porcentaje=Decimal("100"),
            fecha_inicio=date(2025, 1, 1),
        )
        assert exencion.estado == EstadoExencion.PENDIENTE_APROBACION


class TestWorkflow:
    def test_allowed_transitions(self):
        assert can_transition(EstadoExencion.PENDIENTE_APROBACION, EstadoExencion.APROBADA)
        assert can_transition(EstadoExencion.APROBADA, EstadoExencion.REVOCADA)
        assert can_transition(EstadoExencion.VIGENTE, EstadoExencion.REVOCADA)
        assert not can_transition(EstadoExencion.PENDIENTE_APROBACION, EstadoExencion.VIGENTE)

    def test_transition_returns_copy(self):
        pendiente = _exencion(estado=EstadoExencion.PENDIENTE_APROBACION)
        aprobada = transition_exencion(pendiente, "APROBADA")
        assert aprobada.estado == EstadoExencion.APROBADA
        assert pendiente.estado == EstadoExencion.PENDIENTE_APROBACION

    def test_disallowed_transition(self):
        with pytest.raises(PolicyViolation):
            transition_exencion(_exencion(estado=EstadoExencion.PENDIENTE_APROBACION), EstadoExencion.VIGENTE)

    @pytest.mark.parametrize("estado", [EstadoExencion.REVOCADA, EstadoExencion.RECHAZADA, EstadoExencion.VENCIDA])
    def test_final_states_cannot_move(self, estado):
        with pytest.raises(PolicyViolation):
            transition_exencion(_exencion(estado=estado), EstadoExencion.VIGENTE)

    def test_refresh_by_date(self):
        aprobada = _exencion(estado=EstadoExencion.APROBADA, fecha_fin=date(2025, 12, 31))
        assert refresh_exencion_estado(aprobada, date(2024, 12, 1)).estado == EstadoExencion.APROBADA
        assert refresh_exencion_estado(aprobada, date(2025, 3, 1)).estado == EstadoExencion.VIGENTE
        assert refresh_exencion_estado(aprobada, date(2026, 1, 1)).estado == EstadoExencion.VENCIDA
