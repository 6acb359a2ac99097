"""
Pytest Configuration
Markers and shared fixtures for the SIGESDA test suite
"""

import os
from datetime import date
from decimal import Decimal

import pytest

from sigesda.config import FeatureFlags, Settings
from sigesda.models.cuotas import CategoriaItem, Cuota, ItemCuota, TipoItemCuota
from sigesda.services.ledger_service import CatalogoItems


# Test markers
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "unit: Unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests"
    )
    config.addinivalue_line(
        "markers", "api: API tests"
    )
    config.addinivalue_line(
        "markers", "slow: Slow running tests"
    )


# Test collection
collect_ignore_glob = [
    "*/venv/*",
    "*/env/*",
    "*/__pycache__/*"
]


# Fixtures
@pytest.fixture
def flags():
    return FeatureFlags()


@pytest.fixture
def settings(flags):
    return Settings(log_level="DEBUG", app_timezone="America/Argentina/Buenos_Aires", flags=flags)


@pytest.fixture
def fecha():
    return date(2025, 3, 15)


@pytest.fixture
def catalogo():
    """Catalog with one active type per category plus an inactive one"""
    def tipo(i, codigo, categoria, activo=True):
        return TipoItemCuota(
            id=i,
            codigo=codigo,
            nombre=codigo.replace("_", " ").title(),
            categoria_item=CategoriaItem(codigo=categoria),
            activo=activo,
        )

    return CatalogoItems([
        tipo(1, "CUOTA_BASE", "BASE"),
        tipo(2, "ACTIVIDAD", "ACTIVIDAD"),
        tipo(3, "AJUSTE_MANUAL_DESCUENTO", "DESCUENTO"),
        tipo(4, "AJUSTE_MANUAL_RECARGO", "RECARGO"),
        tipo(5, "MATERIAL", "ADICIONAL"),
        tipo(6, "BONIFICACION_VIEJA", "DESCUENTO", activo=False),
    ])


def make_item(categoria, monto, cantidad=1, **kwargs):
    """Ledger item with sensible defaults"""
    kwargs.setdefault("tipo_item_codigo", categoria)
    kwargs.setdefault("concepto", categoria.title())
    return ItemCuota(categoria_codigo=categoria, monto=Decimal(str(monto)), cantidad=cantidad, **kwargs)


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def items_escenario_a():
    """Base 5000, an activity 1200 x 2 and a 750 discount"""
    return [
        make_item("BASE", "5000"),
        make_item("ACTIVIDAD", "1200", 2),
        make_item("DESCUENTO", "-750"),
    ]


@pytest.fixture
def cuota_factory():
    def _make(items=(), **kwargs):
        kwargs.setdefault("id", 10)
        kwargs.setdefault("persona_id", 7)
        kwargs.setdefault("mes", 3)
        kwargs.setdefault("anio", 2025)
        items = list(items)
        kwargs.setdefault("monto_total", sum((i.importe for i in items), Decimal("0")))
        return Cuota(items=items, **kwargs)
    return _make


# Environment setup
@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Setup test environment"""
    os.environ["TESTING"] = "true"
    os.environ["LOG_LEVEL"] = "DEBUG"

    yield

    # Cleanup
    os.environ.pop("TESTING", None)
    os.environ.pop("LOG_LEVEL", None)
