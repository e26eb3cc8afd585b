#!/usr/bin/env python3
"""Create all billing tables (development shortcut for `alembic upgrade head`)."""

import argparse
import asyncio

from orgbilling.database import configure_engine, dispose_engine
from orgbilling.models import Base


async def init_db(database_url: str | None = None):
    """Create all tables."""
    print("Creating database tables...")

    engine = configure_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Tables created")

    await dispose_engine()
    print("Database initialization complete!")


def main():
    parser = argparse.ArgumentParser(description="Create all billing tables")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (defaults to DATABASE_URL)",
    )
    args = parser.parse_args()

    asyncio.run(init_db(args.database_url))


if __name__ == "__main__":
    main()
