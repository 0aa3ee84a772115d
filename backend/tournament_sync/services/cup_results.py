"""Cup results sync.

The FPL cup runs from GW17. For each entry in any active tournament, fetch its
cup matches, pick the one for the requested gameweek and record win or loss.
"""

import logging
from dataclasses import dataclass, field

from tournament_sync.config import get_settings
from tournament_sync.errors import FetchError, SkipReason
from tournament_sync.services.concurrency import map_with_concurrency
from tournament_sync.services.entry_resolver import resolve_active_tournament_entries
from tournament_sync.services.fpl_client import CupMatch, FplApiClient
from tournament_sync.services.repositories import (
    TournamentEntryRepository,
    TournamentInfoRepository,
)
from tournament_sync.services.result_store import (
    EntryEventCupResultRow,
    EntryEventCupResultsRepository,
)

logger = logging.getLogger(__name__)

RESULT_WIN = "win"
RESULT_LOSS = "loss"


@dataclass(slots=True)
class CupSyncSummary:
    """Counters returned by a cup results sync."""

    event_id: int
    total_entries: int = 0
    upserted: int = 0
    skipped: int = 0
    errors: int = 0
    failed_tournaments: dict[int, str] = field(default_factory=dict)  # tournament_id -> error


def resolve_cup_match(
    entry_id: int, matches: list[CupMatch], event_id: int
) -> EntryEventCupResultRow | None:
    """Build the entry's cup row for a gameweek, or None if it had no match.

    A non-zero winner decides the result. Without one (None or 0, the match is
    undecided upstream) the entry wins if it scored at least as many points as
    its opponent.
    """
    match = next((m for m in matches if m.event == event_id), None)
    if match is None:
        return None

    if entry_id == match.entry_1_entry:
        side, other = "entry_1", "entry_2"
    elif entry_id == match.entry_2_entry:
        side, other = "entry_2", "entry_1"
    else:
        return None

    event_points = getattr(match, f"{side}_points")
    against_points = getattr(match, f"{other}_points")

    winner = match.winner or 0
    if winner:
        won = winner == entry_id
    else:
        won = (event_points or 0) >= (against_points or 0)

    return EntryEventCupResultRow(
        entry_id=entry_id,
        event_id=event_id,
        entry_name=getattr(match, f"{side}_name"),
        player_name=getattr(match, f"{side}_player_name"),
        event_points=event_points,
        against_entry_id=getattr(match, f"{other}_entry"),
        against_entry_name=getattr(match, f"{other}_name"),
        against_player_name=getattr(match, f"{other}_player_name"),
        against_event_points=against_points,
        result=RESULT_WIN if won else RESULT_LOSS,
    )


class CupResultsService:
    """Computes and stores entry_event_cup_results for a gameweek."""

    def __init__(
        self,
        fpl_client: FplApiClient,
        tournament_repo: TournamentInfoRepository | None = None,
        tournament_entry_repo: TournamentEntryRepository | None = None,
        result_repo: EntryEventCupResultsRepository | None = None,
    ):
        self.fpl_client = fpl_client
        self.tournament_repo = tournament_repo or TournamentInfoRepository()
        self.tournament_entry_repo = tournament_entry_repo or TournamentEntryRepository()
        self.result_repo = result_repo or EntryEventCupResultsRepository()

    def is_cup_event(self, event_id: int) -> bool:
        settings = get_settings()
        return settings.cup_start_event <= event_id <= settings.cup_end_event

    async def sync(self, event_id: int, concurrency: int | None = None) -> CupSyncSummary:
        """
        Sync cup results for every entry of every active tournament.

        Args:
            event_id: Gameweek number; outside the cup phase nothing is done
            concurrency: Upstream fetches in flight, defaults to settings

        Returns:
            CupSyncSummary with entry, upsert, skip and error counts. Tournaments
            whose roster could not be resolved are listed in failed_tournaments;
            the remaining tournaments are still synced.

        Raises:
            PersistenceError: If a batch upsert fails
            ValueError: If concurrency is less than 1
        """
        summary = CupSyncSummary(event_id=event_id)
        if not self.is_cup_event(event_id):
            logger.info(f"Skipping cup results sync: GW{event_id} is outside the cup phase")
            return summary

        if concurrency is None:
            concurrency = get_settings().sync_concurrency
        logger.info(f"Starting cup results sync for GW{event_id}")

        tournaments = await self.tournament_repo.find_active()
        if not tournaments:
            logger.info(f"No active tournaments for cup results GW{event_id}")
            return summary

        entry_ids, summary.failed_tournaments = await resolve_active_tournament_entries(
            tournaments, self.fpl_client, self.tournament_entry_repo
        )
        summary.total_entries = len(entry_ids)
        if not entry_ids:
            logger.info(f"No tournament entries for cup results GW{event_id}")
            return summary

        async def fetch(entry_id: int) -> list[CupMatch]:
            try:
                return await self.fpl_client.get_entry_cup(entry_id)
            except Exception as e:
                raise FetchError(entry_id, event_id, e) from e

        outcomes = await map_with_concurrency(entry_ids, concurrency, fetch)

        rows: list[EntryEventCupResultRow] = []
        for outcome in outcomes:
            entry_id = outcome.item
            if not outcome.ok:
                summary.errors += 1
                logger.warning(f"Failed to fetch cup for entry {entry_id} GW{event_id}: {outcome.error}")
                continue

            row = resolve_cup_match(entry_id, outcome.value or [], event_id)
            if row is None:
                summary.skipped += 1
                logger.info(
                    f"Skipping entry {entry_id} ({SkipReason.NO_CUP_MATCH.value}) GW{event_id}"
                )
                continue
            rows.append(row)

        summary.upserted = await self.result_repo.upsert_batch(rows)

        logger.info(
            f"Cup results sync complete for GW{event_id}: {summary.total_entries} entries, "
            f"{summary.upserted} upserted, {summary.skipped} skipped, {summary.errors} errors, "
            f"{len(summary.failed_tournaments)} tournaments unresolved"
        )
        return summary
