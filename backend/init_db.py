#!/usr/bin/env python3
"""
Database initialization script for the Odin back-office.

Creates all tables and, when OWNER_BOOTSTRAP_TOKEN is set and no owner
account exists yet, the owner operator that can create everyone else.
"""

import asyncio
from typing import Optional

from sqlalchemy import select

from config import settings
from database.database import db_manager
from models.models import Admin
from utils.auth import hash_token
from utils.logging import get_logger
from utils.roles import SUPERADMIN

logger = get_logger("init-db")


async def bootstrap_owner() -> Optional[Admin]:
    """Create the owner operator from OWNER_BOOTSTRAP_TOKEN if none exists."""
    if settings.OWNER_BOOTSTRAP_TOKEN is None:
        logger.info("OWNER_BOOTSTRAP_TOKEN not set, skipping owner bootstrap")
        return None

    async with db_manager.get_session() as session:
        existing = await session.scalar(select(Admin).where(Admin.is_owner.is_(True)).limit(1))
        if existing:
            logger.debug("Owner account already exists", extra={"data": {"admin_id": str(existing.id)}})
            return None

        owner = Admin(
            admin_name=settings.OWNER_ADMIN_NAME,
            email=settings.OWNER_EMAIL.lower(),
            role=SUPERADMIN,
            permissions={},
            is_owner=True,
            is_active=True,
            api_token_hash=hash_token(settings.OWNER_BOOTSTRAP_TOKEN.get_secret_value()),
        )
        session.add(owner)
        await session.flush()

    logger.info("Owner account created", extra={"data": {"admin_id": str(owner.id), "admin_name": owner.admin_name}})
    return owner


async def init_database():
    """Create tables and bootstrap the owner account."""
    logger.info("Creating database tables...")
    await db_manager.create_tables()
    await bootstrap_owner()
    logger.info("Database initialization completed successfully")


async def main():
    try:
        await init_database()
    finally:
        await db_manager.close()


if __name__ == "__main__":
    from utils.logging import configure_logging

    configure_logging(service_name="init-db", log_level=settings.LOG_LEVEL, enable_json=settings.LOG_JSON)
    asyncio.run(main())
