"""
Error Handlers

Maps exceptions that escape the routes onto the common error envelope:
{"error": {"code", "message", "details"}}.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ...domain.errors import DomainError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def _error_response(status_code: int, code: str, message: str, details: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": jsonable_encoder(details)}},
        headers={"X-Correlation-Id": get_correlation_id() or ""}
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Raised for rejected workflow actions: unknown documents or runs,
    decisions by non-assignees, stale steps and lost write races.
    """
    logger.warning(
        f"Domain error: {exc.error_code} - {exc.message}",
        extra={
            "action": f"{request.method} {request.url.path}",
            "status": exc.http_status,
            "run_id": exc.details.get("run_id"),
            "document_id": exc.details.get("document_id"),
        }
    )
    return _error_response(exc.http_status, exc.error_code, exc.message, exc.details)


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies, e.g. an unknown decision value, answer 400"""
    logger.warning(
        f"Request validation failed on {request.method} {request.url.path}: {exc.errors()}",
        extra={"action": f"{request.method} {request.url.path}"}
    )
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": exc.errors()}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An unexpected error occurred",
        {"hint": "Check server logs for details"}
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
