#!/usr/bin/env python
"""
Apply SQL migrations from backend/migrations in filename order.

Usage:
    python -m scripts.migrate             # Apply pending migrations
    python -m scripts.migrate --status    # Show applied/pending migrations
    python -m scripts.migrate --dry-run   # List what would be applied
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import asyncpg
from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment before settings are read
load_dotenv(".env.local")
load_dotenv(".env")

from tournament_sync.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent / "migrations"

_MIGRATIONS_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS _migrations (
        name TEXT PRIMARY KEY,
        applied_at TIMESTAMPTZ DEFAULT NOW()
    )
"""


async def connect() -> asyncpg.Connection:
    """Open a single connection using DATABASE_URL."""
    db_url = get_settings().db_connection_string
    if not db_url:
        raise ValueError("DATABASE_URL is not set")
    return await asyncpg.connect(db_url)


async def applied_migrations(conn: asyncpg.Connection) -> set[str]:
    """Names of migrations already recorded in _migrations."""
    await conn.execute(_MIGRATIONS_TABLE_SQL)
    rows = await conn.fetch("SELECT name FROM _migrations ORDER BY name")
    return {row["name"] for row in rows}


def pending_migrations(applied: set[str], migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    """Migration files not yet applied, in filename order."""
    return [m for m in sorted(migrations_dir.glob("*.sql")) if m.name not in applied]


async def apply_migration(conn: asyncpg.Connection, migration_file: Path) -> None:
    """Run one migration and record it, atomically."""
    async with conn.transaction():
        await conn.execute(migration_file.read_text())
        await conn.execute("INSERT INTO _migrations (name) VALUES ($1)", migration_file.name)


async def run(conn: asyncpg.Connection, dry_run: bool = False) -> int:
    """Apply pending migrations. Returns how many were (or would be) applied."""
    pending = pending_migrations(await applied_migrations(conn))
    if not pending:
        logger.info("No pending migrations")
        return 0

    for migration_file in pending:
        if dry_run:
            logger.info(f"Would apply {migration_file.name}")
            continue
        logger.info(f"Applying {migration_file.name}")
        await apply_migration(conn, migration_file)

    logger.info(f"{'Found' if dry_run else 'Applied'} {len(pending)} migration(s)")
    return len(pending)


async def show_status(conn: asyncpg.Connection) -> None:
    """Print applied/pending state of every migration file."""
    applied = await applied_migrations(conn)
    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        state = "applied" if migration_file.name in applied else "pending"
        print(f"  {state:<8} {migration_file.name}")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Database migration runner")
    parser.add_argument("--status", action="store_true", help="Show migration status")
    parser.add_argument("--dry-run", action="store_true", help="List pending migrations only")
    args = parser.parse_args()

    try:
        conn = await connect()
    except (OSError, ValueError, asyncpg.PostgresError) as e:
        logger.error(f"Failed to connect to database: {e}")
        sys.exit(1)

    try:
        if args.status:
            await show_status(conn)
        else:
            await run(conn, dry_run=args.dry_run)
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
