"""
Error tracking.

Every error that reaches the central handler is tracked here: it gets a
reference id, a structured log record, and an operator alert when its
catalog severity is CRITICAL.
"""

import time
import traceback
from typing import Any, Dict, Optional

from utils.error_codes import get_error_by_code
from utils.logging import get_logger

logger = get_logger("error-monitor")


def new_error_id() -> str:
    return f"ERR-{int(time.time() * 1000)}"


def parse_origin(error: BaseException) -> str:
    """Innermost traceback frame outside site-packages, as ``file:line in func``."""
    frames = traceback.extract_tb(error.__traceback__) if error.__traceback__ else []
    relevant = [f for f in frames if "site-packages" not in f.filename]
    frame = (relevant or frames or [None])[-1]
    if frame is None:
        return "unknown-origin"
    return f"{frame.filename}:{frame.lineno} in {frame.name}"


class ErrorMonitor:
    """Assigns error references and escalates critical codes."""

    def __init__(self, alert_manager=None):
        self._alert_manager = alert_manager

    @property
    def alert_manager(self):
        if self._alert_manager is None:
            from services.alert_manager import alert_manager
            self._alert_manager = alert_manager
        return self._alert_manager

    async def track(
        self,
        error: BaseException,
        context: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
    ) -> str:
        """Record ``error`` and return its reference id.

        ``code`` defaults to the error's own ``code`` attribute.
        """
        context = context or {}
        error_id = new_error_id()
        code = code or getattr(error, "code", None) or "UNKNOWN"
        info = get_error_by_code(code)
        origin = parse_origin(error)

        if info.log:
            logger.error(
                "Error tracked",
                extra={
                    "data": {
                        "error_id": error_id,
                        "code": code,
                        "severity": info.severity,
                        "message": str(error),
                        "origin": origin,
                        "context": context,
                    }
                }
            )

        if info.severity == "CRITICAL":
            await self.alert_manager.trigger(code, {"error_id": error_id, "origin": origin, **context})

        return error_id


# Global error monitor instance
error_monitor = ErrorMonitor()
