#!/usr/bin/env python3
"""
Database Migration — Create the notification tables from SQLAlchemy models.

Usage:
    # Local (DATABASE_URL from .env):
    python scripts/migrate_db.py

    # Check status only (no changes):
    python scripts/migrate_db.py --check
"""
import asyncio
import os
import sys
import argparse

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv
from sqlalchemy import inspect


async def _existing_tables(engine) -> list[str]:
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


async def _queue_columns(engine) -> list[str]:
    async with engine.connect() as conn:
        return await conn.run_sync(
            lambda sync_conn: [c["name"] for c in inspect(sync_conn).get_columns("notification_queue")]
        )


async def run_migration(check_only: bool = False) -> int:
    from config.settings import ConfigurationError, database_label, load_settings, require_database_url
    settings = load_settings()
    try:
        url = require_database_url(settings)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    from database.session import close_db, ensure_claim_column, get_engine, init_db
    from database.models import Base

    engine = get_engine()
    defined = list(Base.metadata.tables.keys())
    print(f"Database: {engine.dialect.name} ({database_label(url)})")

    try:
        if check_only:
            existing = await _existing_tables(engine)
            print(f"Tables defined: {', '.join(defined)}")
            print(f"Tables existing: {', '.join(existing) or '(none)'}")

            missing = set(defined) - set(existing)
            if missing:
                print(f"Tables MISSING: {', '.join(sorted(missing))}")
                print("Run without --check to create them.")
                return 1
            if "claimedAt" not in await _queue_columns(engine):
                print("Column MISSING: notification_queue.\"claimedAt\"")
                print("Run without --check to add it.")
                return 1
            print("All tables exist. ✓")
            return 0

        print("Running database migration...")
        await init_db()
        if await ensure_claim_column():
            print("Added column: notification_queue.\"claimedAt\"")
        existing = await _existing_tables(engine)
        print(f"Tables created/verified: {', '.join(t for t in existing if t in defined)}")
        print("Migration complete. ✓")
        return 0
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Database migration")
    parser.add_argument("--check", action="store_true", help="Check status only")
    args = parser.parse_args()

    load_dotenv()
    sys.exit(asyncio.run(run_migration(check_only=args.check)))


if __name__ == "__main__":
    main()
