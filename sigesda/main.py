"""
SIGESDA API
FastAPI app exposing the dues ledger and the section schedule checks
"""

import logging
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from sigesda import __version__
from sigesda.config import Settings
from sigesda.errors import SigesdaError
from sigesda.routers import cuotas, secciones
from sigesda.routers.common import sigesda_error_handler
from sigesda.services.ledger_service import CatalogoItems, default_catalogo

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    catalogo: Optional[CatalogoItems] = None,
    crear_item: Optional[Callable[..., Any]] = None,
) -> FastAPI:
    """
    Build the API. ``crear_item`` is the persistence hook for manual items
    (sync or async); without it items are validated and echoed back.
    """
    if settings is None:
        load_dotenv()
        settings = Settings.from_env()

    logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

    app = FastAPI(
        title="SIGESDA API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = settings
    app.state.catalogo = catalogo or default_catalogo()
    app.state.crear_item = crear_item
    app.state.cuotas_service = None

    app.add_exception_handler(SigesdaError, sigesda_error_handler)

    app.include_router(cuotas.router, tags=["Cuotas"])
    app.include_router(secciones.router, tags=["Secciones"])

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    logger.info(f"SIGESDA API lista (flags: {settings.flags.as_dict()})")
    return app
