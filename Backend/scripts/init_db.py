#!/usr/bin/env python3
"""
Create the EventFlow schema from the SQLAlchemy models.

Safe to run multiple times (create_all skips existing tables).

Usage:
    export DATABASE_URL="postgresql+asyncpg://localhost:5432/eventflow"
    python3 Backend/scripts/init_db.py
"""
import asyncio
import sys

from eventflow.core.config import get_settings
from eventflow.core.db import Database


async def init_db() -> None:
    settings = get_settings()
    print("🔧 Initializing database schema...")
    print(f"   Database: {settings.database_url.split('@')[-1]}")

    database = Database.from_settings(settings)
    try:
        await database.create_all()
        print("✅ Schema ready: users, events, guests, menu_items, tables, ushers, vendors")
    except Exception as e:
        print(f"❌ Failed to initialize schema: {e}")
        sys.exit(1)
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
