"""
Tests for the cuota ledger: signs, totals, desglose and manual items
"""

import asyncio
from decimal import Decimal
from unittest.mock import Mock

import pytest

from sigesda.config import FeatureFlags
from sigesda.errors import PolicyViolation, RemoteError, ValidationError
from sigesda.services.ledger_service import (
    MENSAJE_ERROR_REMOTO,
    Signo,
    add_manual_item,
    build_desglose,
    build_manual_item,
    classify_sign,
    compute_category_subtotal,
    compute_grand_total,
    cuota_total,
    debe_haber,
    default_catalogo,
    group_by_categoria,
    group_into_blocks,
    validate_manual_item,
    verify_integrity,
)

pytestmark = pytest.mark.unit


class TestClassifySign:
    @pytest.mark.parametrize("codigo", ["BASE", "ACTIVIDAD", "RECARGO", "ADICIONAL", " base "])
    def test_debe_categories_are_positive(self, codigo):
        assert classify_sign(codigo) is Signo.POSITIVE

    @pytest.mark.parametrize("codigo", ["DESCUENTO", "OTRO", "UNKNOWN_FUTURE_CODE", "", None])
    def test_everything_else_is_negative(self, codigo):
        assert classify_sign(codigo) is Signo.NEGATIVE


class TestTotals:
    def test_empty_subtotal_is_zero(self):
        assert compute_category_subtotal([]) == Decimal("0")

    def test_escenario_a(self, items_escenario_a):
        assert compute_grand_total(items_escenario_a) == Decimal("6650")

    def test_grand_total_equals_sum_of_category_subtotals(self, item_factory):
        items = [
            item_factory("BASE", "4800"),
            item_factory("ACTIVIDAD", "950.50", 3),
            item_factory("DESCUENTO", "-480"),
            item_factory("RECARGO", "120.25"),
            item_factory("BECA", "-1000"),
            item_factory("ACTIVIDAD", "700"),
        ]
        subtotales = [compute_category_subtotal(g) for g in group_by_categoria(items).values()]
        assert compute_grand_total(items) == sum(subtotales, Decimal("0"))

    def test_group_by_categoria_keeps_first_seen_order(self, item_factory):
        items = [item_factory("ACTIVIDAD", 1), item_factory("BASE", 1), item_factory("ACTIVIDAD", 2)]
        grupos = group_by_categoria(items)
        assert list(grupos) == ["ACTIVIDAD", "BASE"]
        assert len(grupos["ACTIVIDAD"]) == 2

    def test_cuota_total_v2_uses_items(self, cuota_factory, items_escenario_a):
        cuota = cuota_factory(items_escenario_a, monto_base=Decimal("1"), monto_actividades=Decimal("1"))
        assert cuota_total(cuota, FeatureFlags()) == Decimal("6650")

    def test_cuota_total_legacy(self, cuota_factory, items_escenario_a):
        cuota = cuota_factory(items_escenario_a, monto_base=Decimal("5000"), monto_actividades=Decimal("1800"))
        assert cuota_total(cuota, FeatureFlags(cuotas_v2=False)) == Decimal("6800")

    def test_verify_integrity_tolerates_less_than_a_cent(self, cuota_factory, items_escenario_a):
        assert verify_integrity(cuota_factory(items_escenario_a, monto_total=Decimal("6650.005")))
        assert not verify_integrity(cuota_factory(items_escenario_a, monto_total=Decimal("6650.02")))


class TestDesglose:
    def test_debe_haber_split(self, item_factory):
        assert debe_haber(item_factory("ACTIVIDAD", "1200", 2)) == (Decimal("2400"), Decimal("0"))
        assert debe_haber(item_factory("DESCUENTO", "-750")) == (Decimal("0"), Decimal("750"))

    def test_build_desglose(self, items_escenario_a):
        desglose = build_desglose(items_escenario_a)
        assert list(desglose.desglose) == ["BASE", "ACTIVIDAD", "DESCUENTO"]
        assert desglose.desglose["ACTIVIDAD"].subtotal == Decimal("2400")
        assert desglose.totales.base == Decimal("5000")
        assert desglose.totales.descuentos == Decimal("750")
        assert desglose.totales.recargos == Decimal("0")
        assert desglose.totales.total == Decimal("6650")

    def test_group_into_blocks_merges_adjustments(self, item_factory):
        items = [
            item_factory("BECA", "-300"),
            item_factory("RECARGO", "200"),
            item_factory("BASE", "5000"),
            item_factory("DESCUENTO", "-750"),
        ]
        bloques = group_into_blocks(items)
        assert list(bloques) == ["BASE", "AJUSTES", "BECA"]
        assert bloques["AJUSTES"].subtotal == Decimal("-550")
        assert len(bloques["AJUSTES"].items) == 2


class TestCatalogo:
    def test_resolve_is_case_insensitive(self, catalogo):
        assert catalogo.resolve("material").categoria_item.codigo == "ADICIONAL"
        assert "ajuste_manual_recargo" in catalogo

    def test_unknown_or_inactive_type_is_a_policy_violation(self, catalogo):
        with pytest.raises(PolicyViolation):
            catalogo.resolve("NO_EXISTE")
        with pytest.raises(PolicyViolation):
            catalogo.resolve("BONIFICACION_VIEJA")

    def test_classify_through_catalog(self, catalogo):
        assert catalogo.classify("AJUSTE_MANUAL_DESCUENTO") is Signo.NEGATIVE
        assert catalogo.classify("CUOTA_BASE") is Signo.POSITIVE

    def test_default_catalog_has_manual_adjustments(self):
        catalogo = default_catalogo()
        assert catalogo.classify("AJUSTE_MANUAL_DESCUENTO") is Signo.NEGATIVE
        assert catalogo.classify("AJUSTE_MANUAL_RECARGO") is Signo.POSITIVE


class TestManualItems:
    def test_valid_input_has_no_errors(self):
        assert validate_manual_item("AJUSTE_MANUAL_RECARGO", "Mora marzo", "150", 1) == {}

    def test_collects_every_field_error(self):
        errors = validate_manual_item("", "ab", "0", 0, "x" * 501)
        assert set(errors) == {"tipoItemCodigo", "concepto", "monto", "cantidad", "observaciones"}

    @pytest.mark.parametrize("monto", ["abc", "NaN", "-5", None])
    def test_rejects_bad_amounts(self, monto):
        assert "monto" in validate_manual_item("X", "Concepto", monto, 1)

    @pytest.mark.parametrize("cantidad", [True, 1.5, "2", -1])
    def test_rejects_non_integer_quantities(self, cantidad):
        assert "cantidad" in validate_manual_item("X", "Concepto", 10, cantidad)

    def test_concepto_too_long(self):
        errors = validate_manual_item("X", "c" * 201, 10, 1)
        assert "200" in errors["concepto"]

    def test_escenario_b_short_concepto(self, catalogo):
        with pytest.raises(ValidationError) as exc:
            asyncio.run(add_manual_item(catalogo, 10, "AJUSTE_MANUAL_RECARGO", "ab", 100, 1))
        assert "concepto" in exc.value.errors

    def test_empty_code_is_validation_but_unknown_code_is_policy(self, catalogo):
        with pytest.raises(ValidationError) as exc:
            build_manual_item(catalogo, 10, "  ", "Concepto", 100, 1)
        assert "tipoItemCodigo" in exc.value.errors
        with pytest.raises(PolicyViolation):
            build_manual_item(catalogo, 10, "NO_EXISTE", "Concepto", 100, 1)

    def test_sign_follows_category(self, catalogo):
        descuento = build_manual_item(catalogo, 10, "AJUSTE_MANUAL_DESCUENTO", " Beca parcial ", "100.005", 2, "aprobado")
        assert descuento.monto == Decimal("-100.01")
        assert descuento.importe == Decimal("-200.02")
        assert descuento.concepto == "Beca parcial"
        assert descuento.es_automatico is False
        assert descuento.es_editable is True
        assert descuento.metadata == {"observaciones": "aprobado"}

        recargo = build_manual_item(catalogo, 10, "ajuste_manual_recargo", "Mora", 50, 1)
        assert recargo.monto == Decimal("50.00")
        assert recargo.tipo_item_codigo == "AJUSTE_MANUAL_RECARGO"
        assert recargo.categoria_codigo == "RECARGO"

    def test_persist_result_is_returned(self, catalogo):
        persist = Mock(side_effect=lambda item: item.model_copy(update={"id": 99}))
        item = asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        persist.assert_called_once()
        assert item.id == 99
        assert item.cuota_id == 10

    def test_async_persist(self, catalogo):
        async def persist(item):
            return item.model_copy(update={"id": 5})

        item = asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        assert item.id == 5

    def test_remote_error_carries_server_message(self, catalogo):
        class HttpError(Exception):
            def __init__(self):
                super().__init__("400")
                self.detail = {"message": "La cuota ya fue pagada"}
                self.status_code = 400

        def persist(item):
            raise HttpError()

        with pytest.raises(RemoteError) as exc:
            asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        assert exc.value.message == "La cuota ya fue pagada"
        assert exc.value.status_code == 400

    def test_remote_error_generic_message(self, catalogo):
        persist = Mock(side_effect=ConnectionError())
        with pytest.raises(RemoteError) as exc:
            asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        assert exc.value.message == MENSAJE_ERROR_REMOTO

    def test_remote_error_uses_exception_text(self, catalogo):
        persist = Mock(side_effect=RuntimeError("db down"))
        with pytest.raises(RemoteError) as exc:
            asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        assert exc.value.message == "db down"
        assert exc.value.status_code is None

    def test_domain_errors_from_gateway_propagate(self, catalogo):
        async def persist(item):
            raise PolicyViolation("La cuota ya tiene recibo emitido")

        with pytest.raises(PolicyViolation) as exc:
            asyncio.run(add_manual_item(catalogo, 10, "MATERIAL", "Kit de danza", 800, 1, persist=persist))
        assert exc.value.message == "La cuota ya tiene recibo emitido"
        assert not isinstance(exc.value, RemoteError)
