"""
Structured logging configuration for the back-office.
Implements consistent JSON logging with request correlation.
"""

import logging
import logging.handlers
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import orjson
import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


def _orjson_dumps(obj: Any, **kwargs: Any) -> str:
    """Serializer for structlog's JSONRenderer (orjson returns bytes)."""
    return orjson.dumps(obj, default=kwargs.get("default", str)).decode("utf-8")


def configure_logging(
    service_name: str = "odin-backoffice",
    log_level: str = "INFO",
    enable_json: bool = True,
    enable_file_logging: bool = False,
    log_file_path: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """
    Configure structured logging for the back-office.

    Args:
        service_name: Name of the service for log identification
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_json: Whether to use JSON output (True) or console output (False)
        enable_file_logging: Also write logs to a size-rotated file
        log_file_path: Log file path (defaults to ./logs/{service_name}.log)
        max_file_size: Rotation threshold in bytes
        backup_count: Number of rotated files to keep
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if enable_file_logging:
        path = Path(log_file_path or f"logs/{service_name}.log")
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
            )
        )

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    shared_processors = [
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        # Request ID, service name, etc.
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if enable_json:
        final_processor = structlog.processors.JSONRenderer(serializer=_orjson_dumps)
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Quiet chatty libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    structlog.contextvars.bind_contextvars(service=service_name)


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Optional logger name. If None, uses the calling module's name.

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware that adds request correlation IDs and logs HTTP requests.
    """

    def __init__(self, app, service_name: str = "odin-backoffice"):
        super().__init__(app)
        self.service_name = service_name
        self.logger = get_logger("request")

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            service=self.service_name,
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("User-Agent", "unknown"),
        )

        started = time.perf_counter()
        self.logger.info(
            "Request started",
            extra={
                "data": {
                    "method": request.method,
                    "path": request.url.path,
                    "query_params": str(request.query_params),
                }
            }
        )

        try:
            response = await call_next(request)

            self.logger.info(
                "Request completed",
                extra={
                    "data": {
                        "status_code": response.status_code,
                        "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
                    }
                }
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            self.logger.error(
                "Request failed",
                exc_info=True,
                extra={
                    "data": {
                        "exception_type": type(exc).__name__,
                        "exception_message": str(exc),
                    }
                }
            )
            raise


def log_role_change(
    operation: str,
    role_name: str,
    details: Dict[str, Any],
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """Audit record of a custom admin role being created or changed."""
    if logger is None:
        logger = get_logger("roles")

    logger.info(
        f"Admin role {operation}: {role_name}",
        extra={"data": {"role": role_name, "operation": operation, **details}}
    )


def log_alert_delivery(
    channel: str,
    status_code: Optional[int],
    started: float,
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    """Record one outbound alert call and its latency; ``started`` is a perf_counter() value."""
    if logger is None:
        logger = get_logger("alerts")

    logger.debug(
        f"Alert sent via {channel}",
        extra={
            "data": {
                "channel": channel,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            }
        }
    )


def log_service_status_change(
    service: str,
    previous: str,
    current: str,
    logger: Optional[structlog.stdlib.BoundLogger] = None
) -> None:
    if logger is None:
        logger = get_logger("status")

    # Leaving operational is worth a warning
    log = logger.info if current == "operational" else logger.warning
    log(
        f"Service {service} is now {current}",
        extra={"data": {"service": service, "previous_status": previous, "status": current}}
    )
