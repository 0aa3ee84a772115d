"""Read-side repositories feeding the result syncs.

Each repository opens its own pooled connection and maps rows to slotted
dataclasses so the services never see asyncpg records.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from tournament_sync.db import get_connection
from tournament_sync.services.fpl_client import (
    AutoSub,
    PickItem,
    parse_auto_subs,
    parse_picks,
)

logger = logging.getLogger(__name__)

# asyncpg has a practical limit on array parameter sizes; keep id lists bounded
ENTRY_ID_CHUNK_SIZE = 1000


# =============================================================================
# SQL Constants
# =============================================================================

_TOURNAMENT_COLUMNS = """
    id, name, league_id, league_type, total_team_num, state
"""

_TOURNAMENT_BY_ID_SQL = f"""
    SELECT {_TOURNAMENT_COLUMNS}
    FROM tournament_infos
    WHERE id = $1
"""

_ACTIVE_TOURNAMENTS_SQL = f"""
    SELECT {_TOURNAMENT_COLUMNS}
    FROM tournament_infos
    WHERE state = 'active'
    ORDER BY id
"""

_TOURNAMENT_ENTRY_IDS_SQL = """
    SELECT entry_id
    FROM tournament_entries
    WHERE tournament_id = $1
    ORDER BY id
"""

_ENTRY_INFOS_SQL = """
    SELECT entry_id, entry_name, player_name
    FROM entry_infos
    WHERE entry_id = ANY($1)
"""

_EVENT_LIVES_SQL = """
    SELECT element_id,
           minutes,
           goals_scored,
           assists,
           clean_sheets,
           bonus,
           penalties_saved,
           saves,
           total_points
    FROM event_lives
    WHERE event_id = $1
    ORDER BY element_id
"""

_PLAYER_TYPES_SQL = """
    SELECT id, element_type
    FROM players
    WHERE id = ANY($1)
"""

_ENTRY_EVENT_RESULTS_SQL = """
    SELECT entry_id,
           event_id,
           event_points,
           event_transfers,
           event_transfers_cost,
           event_net_points,
           event_bench_points,
           event_auto_sub_points,
           event_rank,
           event_chip,
           overall_points,
           overall_rank,
           team_value,
           bank,
           event_picks,
           event_auto_sub
    FROM entry_event_results
    WHERE event_id = $1 AND entry_id = ANY($2)
"""


# =============================================================================
# Records
# =============================================================================


@dataclass(slots=True)
class TournamentInfo:
    """A tournament: a persisted grouping of entries backed by an FPL league."""

    id: int
    name: str
    league_id: int
    league_type: str  # "classic" or "h2h"
    total_team_num: int  # 0 = no cap
    state: str


@dataclass(slots=True)
class EntryInfo:
    """Display metadata for an entry."""

    entry_id: int
    entry_name: str
    player_name: str


@dataclass(slots=True)
class LiveStat:
    """A player's live scoring stats for one gameweek."""

    element: int
    minutes: int = 0
    goals_scored: int = 0
    assists: int = 0
    clean_sheets: int = 0
    bonus: int = 0
    penalties_saved: int = 0
    saves: int = 0
    total_points: int = 0


@dataclass(slots=True)
class PlayerMeta:
    """Player position; element_type 1 GK, 2 DEF, 3 MID, 4 FWD."""

    id: int
    element_type: int


@dataclass(slots=True)
class EntryEventResult:
    """A previously stored, authoritative gameweek result for an entry."""

    entry_id: int
    event_id: int
    event_points: int | None
    event_transfers: int | None
    event_transfers_cost: int | None
    event_net_points: int | None
    event_bench_points: int | None
    event_auto_sub_points: int | None
    event_rank: int | None
    event_chip: str | None
    overall_points: int | None
    overall_rank: int | None
    team_value: int | None
    bank: int | None
    event_picks: list[PickItem]
    event_auto_sub: list[AutoSub]


def _load_json(value: Any) -> Any:
    """JSONB columns arrive as text unless a codec is registered."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


def _unique(values: list[int]) -> list[int]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(values))


def _to_tournament(row: Any) -> TournamentInfo:
    return TournamentInfo(
        id=row["id"],
        name=row["name"] or "",
        league_id=row["league_id"],
        league_type=row["league_type"],
        total_team_num=row["total_team_num"] or 0,
        state=row["state"],
    )


# =============================================================================
# Repositories
# =============================================================================


class TournamentInfoRepository:
    """Tournament lookups."""

    async def find_by_id(self, tournament_id: int) -> TournamentInfo | None:
        async with get_connection() as conn:
            row = await conn.fetchrow(_TOURNAMENT_BY_ID_SQL, tournament_id)
        if not row:
            return None
        return _to_tournament(row)

    async def find_active(self) -> list[TournamentInfo]:
        async with get_connection() as conn:
            rows = await conn.fetch(_ACTIVE_TOURNAMENTS_SQL)
        tournaments = [_to_tournament(row) for row in rows]
        logger.debug(f"Found {len(tournaments)} active tournaments")
        return tournaments


class TournamentEntryRepository:
    """Persisted tournament rosters."""

    async def find_entry_ids_by_tournament_id(self, tournament_id: int) -> list[int]:
        async with get_connection() as conn:
            rows = await conn.fetch(_TOURNAMENT_ENTRY_IDS_SQL, tournament_id)
        return [row["entry_id"] for row in rows]


class EntryInfoRepository:
    """Entry display metadata."""

    async def find_by_ids(self, entry_ids: list[int]) -> list[EntryInfo]:
        if not entry_ids:
            return []

        async with get_connection() as conn:
            rows = await conn.fetch(_ENTRY_INFOS_SQL, _unique(entry_ids))

        return [
            EntryInfo(
                entry_id=row["entry_id"],
                entry_name=row["entry_name"],
                player_name=row["player_name"],
            )
            for row in rows
        ]


class EventLiveRepository:
    """Live player stats per gameweek."""

    async def find_by_event_id(self, event_id: int) -> list[LiveStat]:
        async with get_connection() as conn:
            rows = await conn.fetch(_EVENT_LIVES_SQL, event_id)

        return [
            LiveStat(
                element=row["element_id"],
                minutes=row["minutes"] or 0,
                goals_scored=row["goals_scored"] or 0,
                assists=row["assists"] or 0,
                clean_sheets=row["clean_sheets"] or 0,
                bonus=row["bonus"] or 0,
                penalties_saved=row["penalties_saved"] or 0,
                saves=row["saves"] or 0,
                total_points=row["total_points"] or 0,
            )
            for row in rows
        ]


class PlayerRepository:
    """Player metadata lookups."""

    async def find_by_ids(self, player_ids: list[int]) -> list[PlayerMeta]:
        if not player_ids:
            return []

        async with get_connection() as conn:
            rows = await conn.fetch(_PLAYER_TYPES_SQL, _unique(player_ids))

        return [PlayerMeta(id=row["id"], element_type=row["element_type"]) for row in rows]


class EntryEventResultsRepository:
    """Stored per-entry gameweek results."""

    async def find_by_event_and_entry_ids(
        self, event_id: int, entry_ids: list[int]
    ) -> list[EntryEventResult]:
        if not entry_ids:
            return []

        unique_ids = _unique(entry_ids)
        results: list[EntryEventResult] = []

        async with get_connection() as conn:
            for start in range(0, len(unique_ids), ENTRY_ID_CHUNK_SIZE):
                chunk = unique_ids[start : start + ENTRY_ID_CHUNK_SIZE]
                rows = await conn.fetch(_ENTRY_EVENT_RESULTS_SQL, event_id, chunk)
                for row in rows:
                    results.append(
                        EntryEventResult(
                            entry_id=row["entry_id"],
                            event_id=row["event_id"],
                            event_points=row["event_points"],
                            event_transfers=row["event_transfers"],
                            event_transfers_cost=row["event_transfers_cost"],
                            event_net_points=row["event_net_points"],
                            event_bench_points=row["event_bench_points"],
                            event_auto_sub_points=row["event_auto_sub_points"],
                            event_rank=row["event_rank"],
                            event_chip=row["event_chip"],
                            overall_points=row["overall_points"],
                            overall_rank=row["overall_rank"],
                            team_value=row["team_value"],
                            bank=row["bank"],
                            event_picks=parse_picks(_load_json(row["event_picks"])),
                            event_auto_sub=parse_auto_subs(_load_json(row["event_auto_sub"])),
                        )
                    )

        logger.debug(f"Found {len(results)} stored entry results for GW{event_id}")
        return results
