import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, Optional, TypeVar

from sigesda.config import FeatureFlags, Settings
from sigesda.errors import SigesdaError

T = TypeVar("T")


@dataclass(frozen=True)
class Resultado(Generic[T]):
    """Outcome of an async boundary call: a value or a typed error."""
    ok: bool
    valor: Optional[T] = None
    tipo_error: Optional[str] = None
    mensaje: Optional[str] = None
    errores: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def exito(cls, valor: T) -> "Resultado[T]":
        return cls(ok=True, valor=valor)

    @classmethod
    def fallo(cls, error: SigesdaError) -> "Resultado[T]":
        return cls(
            ok=False,
            tipo_error=error.tipo,
            mensaje=error.message,
            errores=dict(getattr(error, "errors", {}) or {}),
        )


class BaseService:
    """Holds the injected settings shared by the boundary services."""

    def __init__(self, settings: Optional[Settings] = None, flags: Optional[FeatureFlags] = None):
        self.settings = settings or Settings()
        self.flags = flags or self.settings.flags
        self.logger = logging.getLogger(type(self).__module__)

    def _require(self, flag: str) -> bool:
        return self.flags.is_enabled(flag)
