"""FastAPI exception handlers mapping the error taxonomy to JSON responses."""

from __future__ import annotations

import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from xiaoyue import errors
from xiaoyue.log import get_logger

logger = get_logger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    """Standard error body: ``{"error": "<description>"}``."""
    return JSONResponse(status_code=status_code, content={"error": message})


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid payload"


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, _describe_validation(exc))


async def handle_validation(request: Request, exc: errors.ValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


async def handle_not_found(request: Request, exc: errors.SessionNotFound) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "Session not found")


async def handle_gate_blocked(request: Request, exc: errors.GateBlocked) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"requireWallet": True, "message": exc.message},
    )


async def handle_invalid_mint(request: Request, exc: errors.InvalidMintOrRpcFailure) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid token mint or RPC failure")


async def handle_completion_unavailable(
    request: Request, exc: errors.CompletionUnavailable
) -> JSONResponse:
    logger.error("completion_unavailable", path=request.url.path, error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Language model unavailable")


async def handle_storage_unavailable(
    request: Request, exc: errors.StorageUnavailable
) -> JSONResponse:
    logger.error("storage_unavailable", path=request.url.path, error=str(exc))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage unavailable")


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return error_response(exc.status_code, "Not found")
    return error_response(exc.status_code, str(exc.detail))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure with an error id; the client only sees a generic message."""
    error_id = uuid.uuid4().hex
    logger.exception(
        "unhandled_error",
        method=request.method,
        path=request.url.path,
        error_id=error_id,
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(errors.ValidationError, handle_validation)
    app.add_exception_handler(errors.SessionNotFound, handle_not_found)
    app.add_exception_handler(errors.GateBlocked, handle_gate_blocked)
    app.add_exception_handler(errors.InvalidMintOrRpcFailure, handle_invalid_mint)
    app.add_exception_handler(errors.CompletionUnavailable, handle_completion_unavailable)
    app.add_exception_handler(errors.StorageUnavailable, handle_storage_unavailable)
    app.add_exception_handler(Exception, handle_unexpected_error)
