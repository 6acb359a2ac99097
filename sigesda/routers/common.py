import logging
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from sigesda.errors import (
    FormatError,
    PolicyViolation,
    RemoteError,
    SigesdaError,
    ValidationError,
    from_pydantic,
)
from sigesda.models.responses import ErrorResponse
from sigesda.services.base import Resultado

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

STATUS_POR_TIPO: Dict[str, int] = {
    ValidationError.tipo: 422,
    FormatError.tipo: 422,
    PolicyViolation.tipo: 409,
    RemoteError.tipo: 502,
}


def error_response(status_code: int, message: str, tipo: str = "error", details: Optional[Dict[str, Any]] = None) -> JSONResponse:
    body = ErrorResponse(error=message, tipo=tipo, details=details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


def resultado_error(resultado: Resultado) -> JSONResponse:
    status = STATUS_POR_TIPO.get(resultado.tipo_error or "", 500)
    return error_response(status, resultado.mensaje or "Error", resultado.tipo_error or "error", resultado.errores)


async def sigesda_error_handler(request: Request, exc: SigesdaError) -> JSONResponse:
    status = STATUS_POR_TIPO.get(exc.tipo, 500)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} -> {status}: {exc.message}")
    return error_response(status, exc.message, exc.tipo, getattr(exc, "errors", None))


async def read_json(request: Request) -> Any:
    try:
        return await request.json()
    except Exception:
        raise ValidationError("El cuerpo de la solicitud no es JSON válido") from None


def parse_model(model: Type[M], data: Any, message: str = "Datos inválidos") -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e, message) from e


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
