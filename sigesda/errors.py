"""
Error taxonomy shared by the services and routers.

ValidationError  -> field-level, recoverable by re-prompting
PolicyViolation  -> forbidden by business state
RemoteError      -> collaborator (network/server) failure
DataAnomaly      -> soft, reported alongside a result, never raised
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


class SigesdaError(Exception):
    """Base class for every error raised by the core."""

    tipo = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SigesdaError):
    tipo = "validation"

    def __init__(self, message: str = "Datos inválidos", errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors: Dict[str, str] = dict(errors or {})

    @classmethod
    def for_field(cls, field_name: str, message: str) -> "ValidationError":
        return cls(message, {field_name: message})


class FormatError(ValidationError):
    tipo = "format"


class PolicyViolation(SigesdaError):
    tipo = "policy"


class RemoteError(SigesdaError):
    tipo = "remote"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class DataAnomaly:
    codigo: str
    mensaje: str
    detalles: Dict[str, Any] = field(default_factory=dict)


def from_pydantic(exc: Any, message: str = "Datos inválidos") -> ValidationError:
    """Convert a pydantic ValidationError into ours, one message per field."""
    errors: Dict[str, str] = {}
    try:
        for err in exc.errors():
            loc = ".".join(str(p) for p in (err.get("loc") or ()) if p != "__root__")
            key = loc or "__all__"
            if key not in errors:
                errors[key] = str(err.get("msg") or "")
    except Exception:
        errors["__all__"] = str(exc)
    return ValidationError(message, errors)
