#!/usr/bin/env python3
"""
Database bootstrap script for Landscape Forms.

Runs before the application starts:
1. Run database migrations (alembic upgrade head)
2. Verify the configured pool can reach the database

Usage:
    python -m scripts.init_db

Exit codes:
    0 - Success
    1 - Migration failure
    2 - Connectivity check failure
"""

import asyncio
import logging
import subprocess
import sys
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from landscape_forms.core.database import close_db, init_db

# Configure logging first
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [init] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("init_db")


def run_migrations() -> bool:
    """
    Run alembic migrations.

    Returns:
        True if migrations succeeded, False otherwise
    """
    logger.info("Running database migrations...")

    # Project root holds alembic.ini
    project_dir = Path(__file__).parent.parent

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=project_dir,
            capture_output=True,
            text=True,
            check=True,
            timeout=300,
        )

        # Alembic logs to stderr
        for stream in (result.stdout, result.stderr):
            for line in (stream or "").strip().split("\n"):
                if line.strip():
                    logger.info(f"alembic: {line}")

        logger.info("Database migrations completed successfully")
        return True

    except subprocess.TimeoutExpired:
        logger.error("Migration timed out after 5 minutes")
        return False

    except subprocess.CalledProcessError as e:
        logger.error(f"Migration failed with exit code {e.returncode}")
        if e.stderr:
            for line in e.stderr.strip().split("\n"):
                logger.error(f"alembic: {line}")
        return False

    except FileNotFoundError:
        logger.error("alembic command not found - ensure it's installed")
        return False


async def verify_connectivity() -> bool:
    """
    Open a pooled connection and run a trivial query.

    Returns:
        True if the database answered, False otherwise
    """
    logger.info("Verifying database connectivity...")
    try:
        await init_db()
        return True
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.error(f"Database connectivity check failed: {e}")
        return False
    finally:
        await close_db()


async def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logger.info("=" * 60)
    logger.info("Landscape Forms Database Init Starting")
    logger.info("=" * 60)

    logger.info("")
    logger.info("Step 1/2: Database Migrations")
    logger.info("-" * 40)

    if not run_migrations():
        logger.error("FAILED: Database migrations failed - aborting startup")
        return 1

    logger.info("")
    logger.info("Step 2/2: Connectivity Check")
    logger.info("-" * 40)

    if not await verify_connectivity():
        logger.error("FAILED: Database unreachable after migrations")
        return 2

    logger.info("")
    logger.info("=" * 60)
    logger.info("Database Init Completed Successfully")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
