import logging
import traceback
from typing import Any, Dict

from fastapi import Request
from fastapi.responses import JSONResponse

from profileapi.core.identity import attach_identity

logger = logging.getLogger("profileapi")


def _request_context(request: Request) -> Dict[str, Any]:
    client = request.client.host if request.client else "-"
    return {
        "method": request.method,
        "url": str(request.url),
        "client": client,
    }


def error_body(message: str, status_code: int, code: str) -> Dict[str, Any]:
    return {"error": message, "status": status_code, "code": code}


def _with_identity(request: Request, response: JSONResponse) -> JSONResponse:
    # An id resolved (or minted) before the failure still reaches the client
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        attach_identity(response, identity, request.app.container.config.config())
    return response


async def handle_base_api_exception(request, exc):
    ctx = _request_context(request)
    if getattr(exc, "status_code", 500) >= 500:
        logger.error(
            f"[BaseAPIException] {ctx['method']} {ctx['url']} from {ctx['client']} -> {exc.status_code}: {exc.message}"
        )
    else:
        logger.warning(
            f"[BaseAPIException] {ctx['method']} {ctx['url']} from {ctx['client']} -> {exc.status_code}: {exc.message}"
        )
    response = JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,  # type: ignore[arg-type]
        headers=exc.headers,
    )
    return _with_identity(request, response)


async def handle_http_exception(request, exc):
    ctx = _request_context(request)
    logger.warning(
        f"[HTTPException] {ctx['method']} {ctx['url']} from {ctx['client']} -> {exc.status_code}: {exc.detail}"
    )
    content = error_body(str(exc.detail), exc.status_code, "HTTP_ERROR")
    response = JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )
    return _with_identity(request, response)


async def handle_validation_error(request, exc):
    """Request body/query validation failures are client errors (400)."""
    ctx = _request_context(request)
    errors = exc.errors()
    logger.warning(
        f"[ValidationError] {ctx['method']} {ctx['url']} from {ctx['client']} -> 400: {errors}"
    )
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    response = JSONResponse(status_code=400, content=error_body(message, 400, "VALIDATION_001"))
    return _with_identity(request, response)


async def handle_unexpected_error(request, exc):
    ctx = _request_context(request)

    tb_str = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {ctx['method']} {ctx['url']} from {ctx['client']}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {str(exc)}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )

    # Raw message in the body
    response = JSONResponse(
        status_code=500,
        content=error_body(str(exc) or type(exc).__name__, 500, "INTERNAL_001"),
    )
    return _with_identity(request, response)
