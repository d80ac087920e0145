"""Process bootstrap for hosts that embed the progression engine"""
import asyncio
import logging
from pathlib import Path

from progression.config import validate_config
from progression.db.connection import db
from progression.db.postgres_store import PostgresProgressionStore
from progression.gamification.notifications import Notifier
from progression.logging_config import setup_logging
from progression.monitoring import init_sentry
from progression.services import ProgressionService, init_service

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "db" / "schema.sql"


async def startup(notifier: Notifier = None) -> ProgressionService:
    """
    Validate config, start monitoring, open the pool and register the service

    Call once at process start; pair with shutdown().
    """
    setup_logging()

    logger.info("Validating configuration...")
    validate_config()

    init_sentry()

    logger.info("Initializing database connection pool...")
    await db.init_pool()

    return init_service(ProgressionService(PostgresProgressionStore(), notifier=notifier))


async def shutdown() -> None:
    logger.info("Closing database connection...")
    await db.close_pool()
    logger.info("Shutdown complete")


async def apply_schema() -> None:
    """Create the progression tables if they do not exist"""
    async with db.connection() as conn:
        await conn.execute(SCHEMA_PATH.read_text())
        await conn.commit()
    logger.info(f"Applied schema from {SCHEMA_PATH.name}")


async def main() -> None:
    """Set up the database schema and exit"""
    try:
        await startup()
        await apply_schema()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        await shutdown()


if __name__ == "__main__":
    asyncio.run(main())
