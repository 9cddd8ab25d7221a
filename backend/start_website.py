"""
Odin Back-office Server

REST API for the back-office frontend and the public status page:
operators and roles, players and balances, the game catalog, player
notifications, incidents, maintenance, uptime and the SSE status stream.
"""

from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv

# Load environment variables FIRST before importing config
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.admin_endpoints import router as admin_router
from api.auth_endpoints import router as auth_router
from api.game_endpoints import router as game_router
from api.maintenance_endpoints import router as maintenance_router
from api.notification_endpoints import router as notification_router
from api.player_endpoints import router as player_router
from api.role_endpoints import router as role_router
from api.status_endpoints import router as status_router
from config import settings
from database.database import db_manager
from services.email_service import is_configured as smtp_configured, verify_connection as verify_smtp
from services.status_monitor import status_monitor
from utils.error_handlers import register_exception_handlers
from utils.event_broker import event_broker
from utils.logging import RequestLoggingMiddleware, configure_logging
from utils.service_manager import ServiceManager, create_status_event_handler

SERVICE_NAME = "odin-backoffice"
VERSION = "1.0.0"

# Configure logging based on settings (after environment is loaded)
configure_logging(
    service_name=SERVICE_NAME,
    log_level=settings.LOG_LEVEL,
    enable_json=settings.LOG_JSON,
    enable_file_logging=settings.LOG_FILE_ENABLED,
    log_file_path=settings.LOG_FILE_PATH,
    max_file_size=settings.LOG_FILE_MAX_SIZE_MB * 1024 * 1024,  # Convert MB to bytes
    backup_count=settings.LOG_FILE_BACKUP_COUNT
)

service_manager = ServiceManager(SERVICE_NAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events (run once per worker process)."""
    service_manager.logger.info("Starting Odin back-office server...")

    try:
        await service_manager.ensure_database_initialized()

        if smtp_configured() and not await verify_smtp():
            service_manager.logger.warning("SMTP connection check failed, player emails will not be delivered")

        await service_manager.start_redis_bridge(app, create_status_event_handler(event_broker, status_monitor))

        if settings.STATUS_MONITOR_ENABLED:
            await status_monitor.start()

        service_manager.logger.info("Odin back-office server started successfully")

    except Exception as e:
        service_manager.logger.error(f"Failed to start server: {e}")
        raise

    yield

    # Shutdown
    service_manager.logger.info("Shutting down Odin back-office server...")

    await status_monitor.stop()
    await service_manager.stop_redis_bridge(app)

    # Cleanup resources
    await service_manager.cleanup_redis()
    await service_manager.cleanup_database()

    service_manager.logger.info("Odin back-office server shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Odin Back-office API",
    description="Back-office and status page API for the Odin gaming platform",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

register_exception_handlers(app)

# Include routers
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(role_router)
app.include_router(player_router)
app.include_router(game_router)
app.include_router(status_router)
app.include_router(maintenance_router)
app.include_router(notification_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": SERVICE_NAME,
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "status": "/api/status/status",
    }


@app.get("/health")
async def health_check():
    """Liveness with database reachability and the number of SSE clients on this worker."""
    try:
        await db_manager.ping()
        database = "connected"
    except Exception as e:
        service_manager.logger.error(f"Health check failed: {e}")
        database = "error"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "service": SERVICE_NAME,
        "version": VERSION,
        "database": database,
        "overall_status": status_monitor.overall_status(),
        "sse_clients": event_broker.subscriber_count,
    }


if __name__ == "__main__":
    service_manager.logger.info(
        "Starting uvicorn server",
        extra={"data": {"host": settings.HOST, "port": settings.PORT, "workers": settings.worker_count}}
    )
    uvicorn.run(
        "start_website:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=settings.worker_count,
        log_config=None  # Use our custom logging
    )
