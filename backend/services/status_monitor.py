"""
Status Monitor Service

Background service behind the public status page. Each worker process runs
its own copy with two loops:

- health loop (every HEALTH_CHECK_INTERVAL, default 5 minutes): checks every
  monitored service, records the result, opens a HEALTH_<SERVICE>_FAIL
  incident on failure and resolves it on recovery
- maintenance loop (every MAINTENANCE_CHECK_INTERVAL, default 1 minute):
  moves maintenance windows through scheduled -> in_progress -> completed,
  flips the affected services to/from ``maintenance`` and sends the
  upcoming-maintenance notice once

Status changes are published as StatusEvents for the SSE stream.
"""

import asyncio
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import aiohttp
from sqlalchemy import desc, select

from config import settings
from database.database import db_manager
from models.events import (
    StatusEvent, create_health_check_event, create_incident_event, create_maintenance_event,
    create_status_change_event
)
from models.status import ServiceState
from models.system_health import (
    MONITORED_SERVICES, Incident, IncidentStatus, Maintenance, MaintenanceStatus,
    ServiceHealthCheck, ServiceStatus, Severity, UptimeRecord
)
from services.incident_service import add_incident_update, create_incident, find_open_incident
from services.notification_service import notify_players
from utils.datetime_utils import as_utc, utcnow
from utils.error_codes import get_error_by_code
from utils.event_broker import publish_status_event
from utils.logging import get_logger, log_service_status_change

logger = get_logger("status-monitor")

HealthResult = Tuple[bool, Optional[int], Optional[str], Dict[str, Any]]


def health_incident_code(service: str) -> str:
    return f"HEALTH_{service.upper()}_FAIL"


def maintenance_payload(maintenance: Maintenance) -> Dict[str, Any]:
    return {
        "id": str(maintenance.id),
        "title": maintenance.title,
        "description": maintenance.description,
        "components": list(maintenance.components or []),
        "start_time": as_utc(maintenance.start_time).isoformat(),
        "end_time": as_utc(maintenance.end_time).isoformat(),
    }


def incident_payload(incident: Incident, message: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": str(incident.id),
        "title": incident.title,
        "code": incident.code,
        "components": list(incident.components or []),
        "message": message or "",
    }


class StatusMonitorService:
    """Per-worker service status tracker with health and maintenance loops."""

    def __init__(self):
        self.services: Dict[str, Dict[str, Any]] = {
            key: {
                "name": name,
                "status": ServiceStatus.OPERATIONAL,
                "uptime": 100.0,
                "last_checked": None,
            }
            for key, name in MONITORED_SERVICES.items()
        }
        self.is_running = False
        self.health_task: Optional[asyncio.Task] = None
        self.maintenance_task: Optional[asyncio.Task] = None
        self._session: Optional[aiohttp.ClientSession] = None

    # Lifecycle

    async def start(self):
        """Start the background loops."""
        if self.is_running:
            logger.warning("Status monitor already running")
            return

        self.is_running = True
        self._session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.HEALTH_CHECK_TIMEOUT)
        )
        await self.load_latest_uptime()

        self.health_task = asyncio.create_task(self._health_loop())
        self.maintenance_task = asyncio.create_task(self._maintenance_loop())
        logger.info(
            "Status monitor started",
            extra={
                "data": {
                    "health_interval": settings.HEALTH_CHECK_INTERVAL,
                    "maintenance_interval": settings.MAINTENANCE_CHECK_INTERVAL,
                }
            }
        )

    async def stop(self):
        """Stop the background loops."""
        self.is_running = False

        for task in (self.health_task, self.maintenance_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self.health_task = None
        self.maintenance_task = None

        if self._session:
            await self._session.close()
            self._session = None

        logger.info("Status monitor stopped")

    async def _health_loop(self):
        while self.is_running:
            try:
                await self.check_all_services()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in health check loop: {e}", exc_info=True)
            await asyncio.sleep(settings.HEALTH_CHECK_INTERVAL)

    async def _maintenance_loop(self):
        while self.is_running:
            try:
                await self.check_scheduled_maintenance()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in maintenance check loop: {e}", exc_info=True)
            await asyncio.sleep(settings.MAINTENANCE_CHECK_INTERVAL)

    # Status bookkeeping

    def overall_status(self) -> str:
        statuses = {info["status"] for info in self.services.values()}
        if ServiceStatus.MAJOR_OUTAGE in statuses:
            return "major_outage"
        if ServiceStatus.DEGRADED in statuses or ServiceStatus.PARTIAL_OUTAGE in statuses:
            return "degraded"
        if ServiceStatus.MAINTENANCE in statuses:
            return "maintenance"
        return "operational"

    def snapshot(self) -> List[ServiceState]:
        return [
            ServiceState(
                key=key,
                name=info["name"],
                status=info["status"],
                uptime=info["uptime"],
                last_checked=info["last_checked"],
            )
            for key, info in self.services.items()
        ]

    def set_service_status(self, service: str, status: ServiceStatus) -> Optional[StatusEvent]:
        """Update the in-memory status. Returns a status_change event if it changed."""
        if service not in self.services:
            return None
        previous = self.services[service]["status"]
        if previous == status:
            return None

        self.services[service]["status"] = status
        log_service_status_change(service, previous.value, status.value, logger=logger)
        return create_status_change_event(service, previous.value, status.value, self.overall_status())

    def apply_remote_event(self, event: StatusEvent):
        """Mirror a status change published by another worker."""
        if event.type != "status_change":
            return
        service = event.data.get("service")
        try:
            status = ServiceStatus(event.data.get("status"))
        except ValueError:
            return
        if service in self.services:
            self.services[service]["status"] = status

    def apply_maintenance_status(self, maintenance: Maintenance, keep: Iterable[str] = ()) -> List[StatusEvent]:
        """Align the affected services with a maintenance window's status.

        Components in ``keep`` are still covered by another in-progress window
        and stay in maintenance when this one ends.
        """
        keep = set(keep)
        events = []
        for component in maintenance.components or []:
            if component not in self.services:
                continue
            if maintenance.status != MaintenanceStatus.IN_PROGRESS and component in keep:
                continue
            if maintenance.status == MaintenanceStatus.IN_PROGRESS:
                event = self.set_service_status(component, ServiceStatus.MAINTENANCE)
            elif self.services[component]["status"] == ServiceStatus.MAINTENANCE:
                event = self.set_service_status(component, ServiceStatus.OPERATIONAL)
            else:
                event = None
            if event:
                events.append(event)
        return events

    async def emit_update(self, event: StatusEvent):
        """Publish an event to every SSE client (all workers when Redis is up)."""
        await publish_status_event(event)

    async def emit_all(self, events: List[StatusEvent]):
        for event in events:
            await self.emit_update(event)

    async def load_latest_uptime(self):
        """Seed the in-memory uptime figures from the latest daily records."""
        async with db_manager.get_session() as session:
            for service in self.services:
                result = await session.execute(
                    select(UptimeRecord)
                    .where(UptimeRecord.service == service)
                    .order_by(desc(UptimeRecord.day))
                    .limit(1)
                )
                record = result.scalar_one_or_none()
                if record:
                    self.services[service]["uptime"] = record.uptime_percentage

    # Health checks

    async def check_all_services(self) -> Dict[str, bool]:
        """Run every health check concurrently."""
        services = list(self.services)
        results = await asyncio.gather(
            *(self.perform_health_check(service) for service in services),
            return_exceptions=True
        )

        outcome = {}
        for service, result in zip(services, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Health check errored for {service}",
                    extra={"data": {"service": service, "error": str(result)}}
                )
                outcome[service] = False
            else:
                outcome[service] = result

        logger.info(
            f"Health checks completed: {sum(outcome.values())}/{len(outcome)} healthy",
            extra={"data": {"results": outcome}}
        )
        return outcome

    async def perform_health_check(self, service: str) -> bool:
        """Check one service, record the result and open/resolve its health incident."""
        healthy, response_time_ms, error_message, details = await self.check_service(service)
        await self._record_health_check(service, healthy, response_time_ms, error_message, details)
        self.services[service]["last_checked"] = utcnow()

        events = []
        in_maintenance = self.services[service]["status"] == ServiceStatus.MAINTENANCE
        if healthy:
            if not in_maintenance:
                event = self.set_service_status(service, ServiceStatus.OPERATIONAL)
                if event:
                    events.append(event)
            await self.resolve_health_incident(service)
        else:
            if not in_maintenance:
                event = self.set_service_status(service, ServiceStatus.MAJOR_OUTAGE)
                if event:
                    events.append(event)
            await self.log_incident(
                {
                    "code": health_incident_code(service),
                    "message": f"{service} service is not responding",
                    "severity": "HIGH",
                },
                {"service": service, "error": error_message},
            )

        events.append(create_health_check_event(service, healthy, response_time_ms, error_message))
        await self.emit_all(events)
        return healthy

    async def check_service(self, service: str) -> HealthResult:
        if service == "database":
            return await self._check_database()
        urls = {
            "api": settings.API_URL,
            "auth": settings.AUTH_URL,
            "payment": settings.PAYMENT_HEALTH_URL,
        }
        url = urls.get(service)
        if not url:
            # No endpoint configured for this service
            return True, None, None, {"skipped": True}
        return await self._check_http(f"{url.rstrip('/')}/health")

    async def _check_http(self, endpoint: str) -> HealthResult:
        start_time = time.time()
        own_session = self._session is None
        session = self._session or aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=settings.HEALTH_CHECK_TIMEOUT)
        )
        try:
            async with session.get(endpoint) as response:
                response_time_ms = int((time.time() - start_time) * 1000)
                details = {"endpoint": endpoint, "status_code": response.status}
                if response.status == 200:
                    return True, response_time_ms, None, details
                return False, response_time_ms, f"HTTP {response.status}", details
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            return False, response_time_ms, str(e) or type(e).__name__, {"endpoint": endpoint}
        finally:
            if own_session:
                await session.close()

    async def _check_database(self) -> HealthResult:
        start_time = time.time()
        try:
            await db_manager.ping()
        except Exception as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            return False, response_time_ms, str(e), {"type": "internal"}
        return True, int((time.time() - start_time) * 1000), None, {"type": "internal"}

    async def _record_health_check(
        self,
        service: str,
        healthy: bool,
        response_time_ms: Optional[int],
        error_message: Optional[str],
        details: Dict[str, Any],
    ):
        try:
            async with db_manager.get_session() as session:
                session.add(ServiceHealthCheck(
                    service_name=service,
                    status="healthy" if healthy else "unhealthy",
                    response_time_ms=response_time_ms,
                    error_message=error_message,
                    details=details,
                    checked_at=utcnow(),
                ))
        except Exception as e:
            # The database itself may be the failing service
            logger.error(f"Failed to record health check for {service}: {e}")

    # Incidents

    async def log_incident(self, error_info: Dict[str, Any], context: Optional[Dict[str, Any]] = None) -> Optional[Incident]:
        """
        Open an incident for ``error_info`` unless one with the same code is still open.

        Args:
            error_info: ``code``, optional ``message`` and ``severity``
            context: ``service`` (or ``components``) affected, plus free-form details

        Returns:
            The new incident, or the already open one with the same code
        """
        context = context or {}
        code = error_info["code"]
        try:
            severity = Severity(error_info.get("severity") or get_error_by_code(code).severity)
        except ValueError:
            severity = Severity.HIGH
        components = context.get("components") or [context.get("service", "api")]
        title = error_info.get("message") or get_error_by_code(code).message

        try:
            async with db_manager.get_session() as session:
                existing = await find_open_incident(session, code)
                if existing:
                    logger.debug(
                        f"Incident {code} already open",
                        extra={"data": {"incident_id": str(existing.id), "code": code}}
                    )
                    return existing

                incident = await create_incident(
                    session,
                    code=code,
                    title=title,
                    components=components,
                    severity=severity,
                    message=context.get("error") or title,
                )
                await notify_players(session, "incident", incident_payload(incident))
        except Exception as e:
            logger.error(
                f"Failed to log incident {code}",
                exc_info=True,
                extra={"data": {"code": code, "error": str(e)}}
            )
            return None

        logger.warning(
            f"Incident logged: {code}",
            extra={"data": {"incident_id": str(incident.id), "code": code, "components": components}}
        )
        await self.emit_update(create_incident_event(incident, "incident_created"))
        return incident

    async def resolve_health_incident(self, service: str) -> Optional[Incident]:
        """Resolve the open health incident of ``service`` after a passing check."""
        async with db_manager.get_session() as session:
            incident = await find_open_incident(session, health_incident_code(service))
            if incident is None:
                return None
            message = f"{MONITORED_SERVICES[service]} is responding again"
            await add_incident_update(session, incident, IncidentStatus.RESOLVED, message)
            await notify_players(session, "resolution", incident_payload(incident, message))

        await self.emit_update(create_incident_event(incident, "incident_update", message))
        return incident

    # Maintenance

    async def check_scheduled_maintenance(self, now: Optional[datetime] = None) -> Dict[str, List[str]]:
        """
        One tick of the maintenance scanner.

        - windows with start <= now <= end (not completed) go in_progress and
          their services switch to ``maintenance``
        - in-progress windows whose end has passed complete and their services
          return to ``operational`` unless another active window covers them
        - scheduled windows starting within MAINTENANCE_NOTICE_MINUTES notify
          subscribed players once

        Returns the ids of started, completed and notified windows.
        """
        now = now or utcnow()
        notice_until = now + timedelta(minutes=settings.MAINTENANCE_NOTICE_MINUTES)
        summary: Dict[str, List[str]] = {"started": [], "completed": [], "notified": []}
        events: List[StatusEvent] = []

        async with db_manager.get_session() as session:
            active = (await session.execute(
                select(Maintenance).where(
                    Maintenance.start_time <= now,
                    Maintenance.end_time >= now,
                    Maintenance.status != MaintenanceStatus.COMPLETED,
                )
            )).scalars().all()

            active_components = set()
            for maintenance in active:
                active_components.update(maintenance.components or [])
                if maintenance.status != MaintenanceStatus.IN_PROGRESS:
                    maintenance.status = MaintenanceStatus.IN_PROGRESS
                    summary["started"].append(str(maintenance.id))
                    events.append(create_maintenance_event(maintenance, "maintenance"))
                events.extend(self.apply_maintenance_status(maintenance))

            expired = (await session.execute(
                select(Maintenance).where(
                    Maintenance.end_time < now,
                    Maintenance.status != MaintenanceStatus.COMPLETED,
                )
            )).scalars().all()

            for maintenance in expired:
                maintenance.status = MaintenanceStatus.COMPLETED
                summary["completed"].append(str(maintenance.id))
                events.append(create_maintenance_event(maintenance, "maintenance"))
                events.extend(self.apply_maintenance_status(maintenance, keep=active_components))

            upcoming = (await session.execute(
                select(Maintenance).where(
                    Maintenance.start_time > now,
                    Maintenance.start_time <= notice_until,
                    Maintenance.status == MaintenanceStatus.SCHEDULED,
                    Maintenance.notified_at.is_(None),
                )
            )).scalars().all()

            for maintenance in upcoming:
                await notify_players(session, "maintenance", maintenance_payload(maintenance))
                maintenance.notified_at = now
                summary["notified"].append(str(maintenance.id))

        await self.emit_all(events)

        logger.debug("Scheduled maintenance check completed", extra={"data": summary})
        return summary


# Global status monitor instance
status_monitor = StatusMonitorService()
