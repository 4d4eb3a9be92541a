from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from imobconnect.context import get_correlation_id
from imobconnect.core.schemas import ErrorItem, ValidationErrorBody


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlationId: str | None


def _request_correlation_id(request: Request) -> str | None:
    return get_correlation_id() or getattr(request.state, "correlation_id", None)


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlationId=_request_correlation_id(request),
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload.__dict__))


def http_error(request: Request, exc: HTTPException, code: str) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=str(exc.detail),
        details=exc.detail,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    body = ValidationErrorBody(
        errors=[
            ErrorItem(
                path=".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                message=error.get("msg", ""),
                type=error.get("type", ""),
            )
            for error in exc.errors()
        ]
    )
    return JSONResponse(
        status_code=400,
        content={**body.model_dump(), "correlationId": _request_correlation_id(request)},
    )
