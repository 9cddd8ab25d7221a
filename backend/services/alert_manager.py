"""
Alert Manager

Pushes error alerts to operators: a Discord webhook embed for every alert
and an SMS through the Twilio REST API for CRITICAL codes. Delivery failures
are logged, never raised.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import aiohttp

from config import settings
from utils.error_codes import get_error_by_code
from utils.logging import get_logger, log_alert_delivery

logger = get_logger("alert-manager")

SEVERITY_COLORS = {
    "CRITICAL": 0xFF0000,
    "HIGH": 0xFFA500,
    "MEDIUM": 0xFFFF00,
}
DEFAULT_COLOR = 0x808080

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def color_for(severity: Optional[str]) -> int:
    return SEVERITY_COLORS.get(severity or "", DEFAULT_COLOR)


def build_discord_payload(code: str, context: Dict[str, Any]) -> Dict[str, Any]:
    """Discord webhook body with a single embed describing the error."""
    info = get_error_by_code(code)
    description = (
        f"**Path**: {context.get('route') or 'Unknown'}\n"
        f"**User**: {context.get('user_id') or 'Guest'}\n"
        f"**Reference**: {context.get('error_id') or 'n/a'}\n"
        f"**Solution**: {info.solution}"
    )
    return {
        "embeds": [
            {
                "title": f"{info.code}: {info.severity}",
                "description": description,
                "color": color_for(info.severity),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ]
    }


class AlertManager:
    """Sends operator alerts over Discord and SMS."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def trigger(self, code: str, context: Optional[Dict[str, Any]] = None) -> Dict[str, bool]:
        """Alert on ``code``. Returns which channels delivered."""
        context = context or {}
        info = get_error_by_code(code)
        results = {"discord": False, "sms": False}

        if settings.DISCORD_WEBHOOK:
            results["discord"] = await self.send_discord(build_discord_payload(code, context))

        if info.severity == "CRITICAL" and settings.TWILIO_SID:
            results["sms"] = await self.send_sms(
                settings.ADMIN_PHONE,
                f"[{info.code}] {info.message}\nRef: {context.get('error_id', 'n/a')}",
            )

        logger.info(
            "Alert triggered",
            extra={"data": {"code": info.code, "severity": info.severity, **results}}
        )
        return results

    async def send_discord(self, payload: Dict[str, Any]) -> bool:
        started = time.perf_counter()
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(settings.DISCORD_WEBHOOK, json=payload) as response:
                    log_alert_delivery("discord", response.status, started, logger=logger)
                    if response.status >= 400:
                        logger.error(
                            "Discord webhook rejected alert",
                            extra={"data": {"status_code": response.status}}
                        )
                        return False
                    return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to send Discord alert", extra={"data": {"error": str(e)}})
            return False

    async def send_sms(self, to: Optional[str], body: str) -> bool:
        if not settings.TWILIO_SID or not settings.TWILIO_AUTH_TOKEN or not to:
            logger.error("Twilio credentials or recipient missing, SMS alert skipped")
            return False

        url = TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_SID)
        auth = aiohttp.BasicAuth(settings.TWILIO_SID, settings.TWILIO_AUTH_TOKEN.get_secret_value())
        form = {"To": to, "From": settings.TWILIO_PHONE or "", "Body": body}

        started = time.perf_counter()
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, data=form, auth=auth) as response:
                    log_alert_delivery("twilio", response.status, started, logger=logger)
                    if response.status >= 400:
                        logger.error(
                            "Twilio rejected SMS alert",
                            extra={"data": {"status_code": response.status, "body": (await response.text())[:200]}}
                        )
                        return False
                    return True
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Failed to send SMS alert", extra={"data": {"error": str(e)}})
            return False


# Global alert manager instance
alert_manager = AlertManager()
