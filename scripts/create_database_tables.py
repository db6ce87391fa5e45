"""
Create Database Tables Using SQLAlchemy

This script creates the vibes tables directly using SQLAlchemy's create_all()
method. This bypasses Alembic migrations and is useful for local development.

Usage:
    python scripts/create_database_tables.py [--drop]
"""
import sys
from pathlib import Path

# Add parent directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio

from dotenv import load_dotenv

from config.settings import get_settings
from src.homematch.db.base import Base
from src.homematch.db.session import create_all_tables, create_engine_from_url, drop_all_tables
from src.homematch.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


async def create_tables(drop: bool = False) -> None:
    """Create all vibes tables, optionally dropping them first."""
    settings = get_settings()
    engine = create_engine_from_url(settings.database_url, echo=settings.database_echo)

    try:
        if drop:
            logger.warning("dropping_existing_tables", database=settings.database_host)
            await drop_all_tables(engine)

        await create_all_tables(engine)

        logger.info("tables_verified", tables=sorted(Base.metadata.tables.keys()))
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description="Create the vibes database tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    load_dotenv(".env.local", override=True)
    load_dotenv(".env")
    settings = get_settings()
    setup_logging(level=settings.log_level, log_format=settings.log_format, environment=settings.environment)

    asyncio.run(create_tables(drop=args.drop))
    print("\n✓ Database setup complete!\n")


if __name__ == "__main__":
    main()
