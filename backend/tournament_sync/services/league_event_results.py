"""League event results sync.

For one tournament and gameweek: resolve the entries, reuse stored entry
results where they exist, fetch picks from the FPL API for the rest, compute a
result row per entry and upsert the rows.
"""

import logging
from dataclasses import dataclass, field

from tournament_sync.config import get_settings
from tournament_sync.errors import FetchError, SkipReason, TournamentNotFoundError
from tournament_sync.services.calculations import (
    LeagueEventResultData,
    compute_league_event_result,
)
from tournament_sync.services.concurrency import map_with_concurrency
from tournament_sync.services.entry_resolver import resolve_tournament_entries
from tournament_sync.services.fpl_client import FplApiClient, PicksResponse
from tournament_sync.services.repositories import (
    EntryEventResultsRepository,
    EntryInfoRepository,
    EventLiveRepository,
    PlayerRepository,
    TournamentEntryRepository,
    TournamentInfo,
    TournamentInfoRepository,
)
from tournament_sync.services.result_store import (
    LeagueEventResultRow,
    LeagueEventResultsRepository,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LeagueSyncSummary:
    """Counters returned by a single tournament sync."""

    tournament_id: int
    event_id: int
    total_entries: int = 0
    updated: int = 0
    skipped: int = 0
    fetch_errors: int = 0


@dataclass(slots=True)
class ActiveSyncReport:
    """Outcome of syncing every active tournament for one gameweek."""

    event_id: int
    summaries: list[LeagueSyncSummary] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)  # tournament_id -> error


def _build_row(
    tournament: TournamentInfo,
    event_id: int,
    entry_id: int,
    entry_name: str,
    player_name: str,
    data: LeagueEventResultData,
) -> LeagueEventResultRow:
    return LeagueEventResultRow(
        league_id=tournament.league_id,
        league_type=tournament.league_type,
        event_id=event_id,
        entry_id=entry_id,
        entry_name=entry_name,
        player_name=player_name,
        overall_points=data.overall_points,
        overall_rank=data.overall_rank,
        team_value=data.team_value,
        bank=data.bank,
        event_points=data.event_points,
        event_transfers=data.event_transfers,
        event_transfers_cost=data.event_transfers_cost,
        event_net_points=data.event_net_points,
        event_bench_points=data.event_bench_points,
        event_auto_sub_points=data.event_auto_sub_points,
        event_rank=data.event_rank,
        event_chip=data.event_chip,
        captain_id=data.captain_id,
        captain_points=data.captain_points,
        captain_blank=data.captain_blank,
        vice_captain_id=data.vice_captain_id,
        vice_captain_points=data.vice_captain_points,
        vice_captain_blank=data.vice_captain_blank,
        played_captain_id=data.played_captain_id,
        highest_score_element_id=data.highest_score_element_id,
        highest_score_points=data.highest_score_points,
        highest_score_blank=data.highest_score_blank,
    )


class LeagueEventResultsService:
    """Computes and stores league_event_results for a tournament and gameweek."""

    def __init__(
        self,
        fpl_client: FplApiClient,
        tournament_repo: TournamentInfoRepository | None = None,
        tournament_entry_repo: TournamentEntryRepository | None = None,
        entry_info_repo: EntryInfoRepository | None = None,
        event_live_repo: EventLiveRepository | None = None,
        player_repo: PlayerRepository | None = None,
        entry_result_repo: EntryEventResultsRepository | None = None,
        result_repo: LeagueEventResultsRepository | None = None,
    ):
        self.fpl_client = fpl_client
        self.tournament_repo = tournament_repo or TournamentInfoRepository()
        self.tournament_entry_repo = tournament_entry_repo or TournamentEntryRepository()
        self.entry_info_repo = entry_info_repo or EntryInfoRepository()
        self.event_live_repo = event_live_repo or EventLiveRepository()
        self.player_repo = player_repo or PlayerRepository()
        self.entry_result_repo = entry_result_repo or EntryEventResultsRepository()
        self.result_repo = result_repo or LeagueEventResultsRepository()

    async def _fetch_missing_picks(
        self, entry_ids: list[int], event_id: int, concurrency: int
    ) -> tuple[dict[int, PicksResponse], int]:
        """Fetch picks for entries without a stored result. Returns (picks, errors)."""

        async def fetch(entry_id: int) -> PicksResponse:
            try:
                return await self.fpl_client.get_entry_event_picks(entry_id, event_id)
            except Exception as e:
                raise FetchError(entry_id, event_id, e) from e

        outcomes = await map_with_concurrency(entry_ids, concurrency, fetch)

        picks_by_entry: dict[int, PicksResponse] = {}
        errors = 0
        for outcome in outcomes:
            if outcome.ok:
                picks_by_entry[outcome.item] = outcome.value
            else:
                errors += 1
                logger.warning(
                    f"Failed to fetch picks for entry {outcome.item} GW{event_id}: "
                    f"{outcome.error}"
                )
        return picks_by_entry, errors

    async def sync(
        self,
        tournament_id: int,
        event_id: int,
        concurrency: int | None = None,
    ) -> LeagueSyncSummary:
        """
        Sync league event results for one tournament and gameweek.

        Args:
            tournament_id: Tournament to sync
            event_id: Gameweek number
            concurrency: Upstream fetches in flight, defaults to settings

        Returns:
            LeagueSyncSummary with entry, update and skip counts

        Raises:
            TournamentNotFoundError: If the tournament does not exist
            StandingsPageLimitError: If the league standings exceed the page ceiling
            httpx.HTTPError: If a standings page fetch fails
            PersistenceError: If a batch upsert fails
            ValueError: If concurrency is less than 1
        """
        if concurrency is None:
            concurrency = get_settings().sync_concurrency
        logger.info(f"Starting league event results sync: tournament {tournament_id} GW{event_id}")

        tournament = await self.tournament_repo.find_by_id(tournament_id)
        if tournament is None:
            raise TournamentNotFoundError(tournament_id)

        entry_ids = await resolve_tournament_entries(
            tournament, self.fpl_client, self.tournament_entry_repo
        )
        entry_infos = {
            info.entry_id: info for info in await self.entry_info_repo.find_by_ids(entry_ids)
        }

        live_stats = await self.event_live_repo.find_by_event_id(event_id)
        if not live_stats:
            logger.info(
                f"No live data for GW{event_id}, nothing to compute for tournament {tournament_id}"
            )
            return LeagueSyncSummary(tournament_id=tournament_id, event_id=event_id)

        live_by_element = {stat.element: stat for stat in live_stats}
        players = await self.player_repo.find_by_ids(list(live_by_element))
        element_types = {player.id: player.element_type for player in players}

        stored_results = {
            result.entry_id: result
            for result in await self.entry_result_repo.find_by_event_and_entry_ids(
                event_id, entry_ids
            )
        }

        missing = [entry_id for entry_id in entry_ids if entry_id not in stored_results]
        fetched_picks: dict[int, PicksResponse] = {}
        fetch_errors = 0
        if missing:
            logger.info(f"Fetching picks for {len(missing)}/{len(entry_ids)} entries")
            fetched_picks, fetch_errors = await self._fetch_missing_picks(
                missing, event_id, concurrency
            )

        summary = LeagueSyncSummary(
            tournament_id=tournament_id,
            event_id=event_id,
            total_entries=len(entry_ids),
            fetch_errors=fetch_errors,
        )
        rows: list[LeagueEventResultRow] = []

        for entry_id in entry_ids:
            info = entry_infos.get(entry_id)
            if info is None:
                summary.skipped += 1
                logger.info(
                    f"Skipping entry {entry_id} ({SkipReason.NO_ENTRY_INFO.value}): "
                    f"tournament {tournament_id}, {tournament.league_type} league "
                    f"{tournament.league_id}, GW{event_id}"
                )
                continue

            data = compute_league_event_result(
                stored_results.get(entry_id),
                fetched_picks.get(entry_id),
                live_by_element,
                element_types,
            )
            if isinstance(data, SkipReason):
                summary.skipped += 1
                logger.info(
                    f"Skipping entry {entry_id} ({data.value}): "
                    f"tournament {tournament_id}, {tournament.league_type} league "
                    f"{tournament.league_id}, GW{event_id}"
                )
                continue

            rows.append(
                _build_row(
                    tournament, event_id, entry_id, info.entry_name, info.player_name, data
                )
            )

        summary.updated = await self.result_repo.upsert_batch(rows)

        logger.info(
            f"League event results sync complete: tournament {tournament_id} GW{event_id} "
            f"- {summary.total_entries} entries, {summary.updated} updated, "
            f"{summary.skipped} skipped, {summary.fetch_errors} fetch errors"
        )
        return summary

    async def sync_active(
        self, event_id: int, concurrency: int | None = None
    ) -> ActiveSyncReport:
        """Sync every active tournament; one tournament failing doesn't stop the rest."""
        report = ActiveSyncReport(event_id=event_id)
        tournaments = await self.tournament_repo.find_active()

        for tournament in tournaments:
            try:
                summary = await self.sync(tournament.id, event_id, concurrency)
            except Exception as e:
                logger.error(f"League results sync failed for tournament {tournament.id}: {e}")
                report.failed[tournament.id] = str(e)
                continue
            report.summaries.append(summary)

        return report
