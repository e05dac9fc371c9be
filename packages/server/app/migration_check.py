"""Apply pending Alembic migrations at startup."""
import os
import subprocess
import sys
from pathlib import Path

from app.logging_config import get_logger

logger = get_logger(__name__)

MIGRATION_TIMEOUT_SECONDS = 60


def get_alembic_dir() -> Path:
    """Directory holding alembic.ini (packages/server)."""
    return Path(__file__).parent.parent


def ensure_migrations() -> None:
    """
    Run `alembic upgrade head` in a subprocess.

    A subprocess keeps Alembic's own asyncio.run() out of the running
    FastAPI event loop. Set AUTO_MIGRATE=false to skip entirely, or
    REQUIRE_MIGRATIONS=false to keep serving after a failed upgrade.
    """
    if os.getenv("AUTO_MIGRATE", "true").lower() == "false":
        logger.info("AUTO_MIGRATE=false, skipping migration check")
        return

    logger.info("Running database migrations...")

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=get_alembic_dir(),
            capture_output=True,
            text=True,
            timeout=MIGRATION_TIMEOUT_SECONDS,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"Migration timed out after {MIGRATION_TIMEOUT_SECONDS}s")
        sys.exit(1)
    except FileNotFoundError:
        logger.warning("alembic not found - skipping migrations")
        return

    if result.returncode != 0:
        logger.error(f"Migration failed: {result.stderr}")
        if os.getenv("REQUIRE_MIGRATIONS", "true").lower() == "true":
            sys.exit(1)
        return

    for line in result.stdout.splitlines():
        if line.strip():
            logger.info(f"  {line}")
    logger.info("Migrations complete")
