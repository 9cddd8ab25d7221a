"""
Central error handling.

Catalogued ``AppError``s and unhandled exceptions end up here. Each one is
tracked (reference id, structured log, alert when CRITICAL); CRITICAL errors
additionally open an ``api`` incident on the status page. Clients receive
``{error, code, reference}``; development builds add ``origin`` and
``solution``.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from utils.error_codes import AppError, ErrorInfo, get_error_by_code
from utils.error_monitor import error_monitor, parse_origin
from utils.logging import get_logger

logger = get_logger("error-handler")

UNHANDLED_ERROR_CODE = "SER_100"


def request_context(request: Request) -> Dict[str, Any]:
    return {
        "route": request.url.path,
        "method": request.method,
        "user_id": getattr(request.state, "admin_id", None),
    }


def build_error_body(info: ErrorInfo, message: str, error_id: str, error: BaseException) -> Dict[str, Any]:
    body = {"error": message, "code": info.code, "reference": error_id}
    if settings.is_development:
        body["origin"] = parse_origin(error)
        body["solution"] = info.solution
    return body


async def _log_critical_incident(info: ErrorInfo, message: str, error_id: str, context: Dict[str, Any]):
    from services.status_monitor import status_monitor

    await status_monitor.log_incident(
        {"code": info.code, "message": info.message, "severity": info.severity},
        {"service": "api", "error": f"{message} (ref {error_id})", "route": context.get("route")},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    context = {**request_context(request), **exc.metadata}
    error_id = await error_monitor.track(exc, context)
    info = exc.info

    if info.severity == "CRITICAL":
        await _log_critical_incident(info, exc.message, error_id, context)

    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_body(info, exc.message, error_id, exc),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    info = get_error_by_code(UNHANDLED_ERROR_CODE)
    context = request_context(request)
    error_id = await error_monitor.track(exc, context, code=UNHANDLED_ERROR_CODE)

    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"data": {"error_id": error_id, "exception_type": type(exc).__name__, **context}}
    )

    return JSONResponse(
        status_code=500,
        content=build_error_body(info, info.message, error_id, exc),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
