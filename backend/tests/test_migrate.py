"""Tests for the migration runner."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from scripts import migrate


class TestPendingMigrations:
    """Tests for pending_migrations."""

    def test_filters_applied_and_sorts(self, tmp_path: Path):
        for name in ("002_b.sql", "001_a.sql", "003_c.sql", "notes.txt"):
            (tmp_path / name).write_text("SELECT 1;")

        pending = migrate.pending_migrations({"002_b.sql"}, tmp_path)

        assert [p.name for p in pending] == ["001_a.sql", "003_c.sql"]

    def test_bundled_migrations_exist(self):
        pending = migrate.pending_migrations(set())

        assert "001_tournament_results.sql" in [p.name for p in pending]


class TestRun:
    """Tests for run()."""

    async def test_dry_run_applies_nothing(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        count = await migrate.run(conn, dry_run=True)

        assert count >= 1
        conn.transaction.assert_not_called()

    async def test_applies_pending(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.fetch = AsyncMock(return_value=[])

        count = await migrate.run(conn)

        assert conn.transaction.call_count == count
        recorded = [c.args for c in conn.execute.await_args_list if "INSERT INTO _migrations" in c.args[0]]
        assert recorded[0][1] == "001_tournament_results.sql"

    async def test_nothing_pending(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        conn.fetch = AsyncMock(return_value=[{"name": "001_tournament_results.sql"}])

        assert await migrate.run(conn) == 0
