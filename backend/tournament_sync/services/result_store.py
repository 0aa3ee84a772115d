"""Idempotent batched upserts for computed results.

Rows are keyed by their composite identity; re-syncing overwrites every
non-key column and refreshes updated_at. Nothing here deletes rows.
"""

import logging
from dataclasses import astuple, dataclass, fields

import asyncpg

from tournament_sync.config import get_settings
from tournament_sync.db import get_connection
from tournament_sync.errors import PersistenceError

logger = logging.getLogger(__name__)


# =============================================================================
# Row types
# =============================================================================


@dataclass(slots=True)
class LeagueEventResultRow:
    """One row of league_event_results. Key: league_id, league_type, event_id, entry_id."""

    league_id: int
    league_type: str
    event_id: int
    entry_id: int
    entry_name: str
    player_name: str
    overall_points: int
    overall_rank: int
    team_value: int | None
    bank: int | None
    event_points: int
    event_transfers: int
    event_transfers_cost: int
    event_net_points: int
    event_bench_points: int | None
    event_auto_sub_points: int | None
    event_rank: int | None
    event_chip: str | None
    captain_id: int | None
    captain_points: int | None
    captain_blank: bool
    vice_captain_id: int | None
    vice_captain_points: int | None
    vice_captain_blank: bool
    played_captain_id: int | None
    highest_score_element_id: int | None
    highest_score_points: int | None
    highest_score_blank: bool


@dataclass(slots=True)
class EntryEventCupResultRow:
    """One row of entry_event_cup_results. Key: entry_id, event_id."""

    entry_id: int
    event_id: int
    entry_name: str | None
    player_name: str | None
    event_points: int | None
    against_entry_id: int | None
    against_entry_name: str | None
    against_player_name: str | None
    against_event_points: int | None
    result: str  # "win" or "loss"


def _build_upsert_sql(table: str, columns: list[str], key: list[str]) -> str:
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    updates = ",\n            ".join(
        f"{column} = EXCLUDED.{column}" for column in columns if column not in key
    )
    return f"""
        INSERT INTO {table} ({", ".join(columns)}, updated_at)
        VALUES ({placeholders}, NOW())
        ON CONFLICT ({", ".join(key)}) DO UPDATE SET
            {updates},
            updated_at = NOW()
    """


_LEAGUE_COLUMNS = [f.name for f in fields(LeagueEventResultRow)]
_LEAGUE_KEY = ["league_id", "league_type", "event_id", "entry_id"]
_UPSERT_LEAGUE_RESULTS_SQL = _build_upsert_sql(
    "league_event_results", _LEAGUE_COLUMNS, _LEAGUE_KEY
)

_CUP_COLUMNS = [f.name for f in fields(EntryEventCupResultRow)]
_CUP_KEY = ["entry_id", "event_id"]
_UPSERT_CUP_RESULTS_SQL = _build_upsert_sql(
    "entry_event_cup_results", _CUP_COLUMNS, _CUP_KEY
)


class _BatchUpserter:
    """Shared batching: one statement per batch, one transaction per batch."""

    table: str
    sql: str

    def __init__(self, batch_size: int | None = None):
        self.batch_size = batch_size or get_settings().upsert_batch_size

    async def _upsert(self, rows: list) -> int:
        if not rows:
            return 0

        written = 0
        async with get_connection() as conn:
            for start in range(0, len(rows), self.batch_size):
                batch = rows[start : start + self.batch_size]
                try:
                    async with conn.transaction():
                        await conn.executemany(self.sql, [astuple(row) for row in batch])
                except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
                    logger.error(
                        f"Upsert into {self.table} failed at batch starting row {start}: {e}"
                    )
                    raise PersistenceError(self.table, written, str(e)) from e
                written += len(batch)

        logger.info(f"Upserted {written} rows into {self.table}")
        return written


class LeagueEventResultsRepository(_BatchUpserter):
    """Writes league_event_results."""

    table = "league_event_results"
    sql = _UPSERT_LEAGUE_RESULTS_SQL

    async def upsert_batch(self, rows: list[LeagueEventResultRow]) -> int:
        """Upsert rows in batches; returns the number of rows written."""
        return await self._upsert(rows)


class EntryEventCupResultsRepository(_BatchUpserter):
    """Writes entry_event_cup_results."""

    table = "entry_event_cup_results"
    sql = _UPSERT_CUP_RESULTS_SQL

    async def upsert_batch(self, rows: list[EntryEventCupResultRow]) -> int:
        """Upsert rows in batches; returns the number of rows written."""
        return await self._upsert(rows)
