"""Pre-listen startup checks run by ``talko.main:run``."""

import importlib.util

import structlog

from talko.core.config import get_settings
from talko.db.base import build_engine, ping_database

logger = structlog.get_logger(__name__)

REQUIRED_MODULES = ("fastapi", "sqlalchemy", "redis", "openai", "pymupdf")


async def check_database(url: str | None = None) -> None:
    """Open a throwaway engine and run SELECT 1."""
    engine = build_engine(url or get_settings().database_url)
    try:
        await ping_database(engine)
    finally:
        await engine.dispose()


def check_dependencies(modules: tuple[str, ...] = REQUIRED_MODULES) -> None:
    missing = [name for name in modules if importlib.util.find_spec(name) is None]
    if missing:
        raise RuntimeError(f"Missing required modules: {missing}")


async def perform_health_check(url: str | None = None) -> bool:
    """Return True when the database answers and required modules are importable."""
    logger.info("health_check_begin")
    try:
        await check_database(url)
        check_dependencies()
    except Exception as e:
        logger.error("health_check_failed", error=str(e), error_type=type(e).__name__)
        return False
    logger.info("health_check_passed")
    return True
