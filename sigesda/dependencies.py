"""
Sigesda API Dependencies
FastAPI dependency injection for settings, the item catalog and services
"""

from fastapi import Request

from sigesda.config import Settings
from sigesda.services.cuotas_service import CuotasService
from sigesda.services.ledger_service import CatalogoItems, default_catalogo


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else Settings()


def get_catalogo(request: Request) -> CatalogoItems:
    catalogo = getattr(request.app.state, "catalogo", None)
    return catalogo if catalogo is not None else default_catalogo()


def get_cuotas_service(request: Request) -> CuotasService:
    """One service per app so the concurrent-recalculation guard is shared."""
    service = getattr(request.app.state, "cuotas_service", None)
    if service is None:
        service = CuotasService(
            get_catalogo(request),
            crear_item=getattr(request.app.state, "crear_item", None),
            settings=get_settings(request),
        )
        request.app.state.cuotas_service = service
    return service
