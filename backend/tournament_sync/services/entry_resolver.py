"""Resolve which entries take part in a tournament.

The persisted roster wins when it has rows. Otherwise the backing FPL league's
standings are walked page by page until the API reports no further pages or
the tournament's team cap is reached.
"""

import logging
from collections.abc import AsyncIterator

from tournament_sync.config import get_settings
from tournament_sync.errors import StandingsPageLimitError
from tournament_sync.services.fpl_client import FplApiClient, StandingsPage
from tournament_sync.services.repositories import (
    TournamentEntryRepository,
    TournamentInfo,
)

logger = logging.getLogger(__name__)


def unique_entry_ids(entry_ids: list[int]) -> list[int]:
    """Deduplicate, keep first-seen order and drop non-positive ids."""
    return [entry_id for entry_id in dict.fromkeys(entry_ids) if entry_id > 0]


async def iter_standings_pages(
    fpl_client: FplApiClient,
    league_id: int,
    league_type: str,
    max_pages: int | None = None,
) -> AsyncIterator[list[int]]:
    """Yield the entry ids on each standings page, starting from page 1.

    Stops after the page whose has_next is false. Nothing is cached, so a fresh
    iteration starts from the first page again. Fetch errors propagate, and so
    does StandingsPageLimitError if pages remain after max_pages (default from
    settings): a truncated roster is never returned.
    """
    if max_pages is None:
        max_pages = get_settings().standings_max_pages
    page = 1
    while page <= max_pages:
        if league_type == "h2h":
            result: StandingsPage = await fpl_client.get_league_h2h_standings(league_id, page)
        else:
            result = await fpl_client.get_league_classic_standings(league_id, page)

        yield result.entry_ids

        if not result.has_next:
            return
        page += 1

    logger.error(f"League {league_id} has more than {max_pages} standings pages")
    raise StandingsPageLimitError(league_id, max_pages)


async def fetch_league_entry_ids(
    fpl_client: FplApiClient, tournament: TournamentInfo
) -> list[int]:
    """Collect entry ids from the upstream standings, honouring total_team_num."""
    max_entries = tournament.total_team_num if tournament.total_team_num > 0 else None
    entry_ids: list[int] = []

    async for page_ids in iter_standings_pages(
        fpl_client, tournament.league_id, tournament.league_type
    ):
        entry_ids.extend(page_ids)
        if max_entries and len(entry_ids) >= max_entries:
            break

    entry_ids = unique_entry_ids(entry_ids)
    if max_entries:
        return entry_ids[:max_entries]
    return entry_ids


async def resolve_tournament_entries(
    tournament: TournamentInfo,
    fpl_client: FplApiClient,
    entry_repo: TournamentEntryRepository,
) -> list[int]:
    """
    Resolve a tournament's entries.

    Args:
        tournament: Tournament to resolve
        fpl_client: Used only when no roster is stored
        entry_repo: Persisted roster lookup

    Returns:
        Ordered, deduplicated entry ids
    """
    stored = await entry_repo.find_entry_ids_by_tournament_id(tournament.id)
    if stored:
        return unique_entry_ids(stored)

    logger.info(
        f"No stored roster for tournament {tournament.id}, fetching "
        f"{tournament.league_type} league {tournament.league_id} standings"
    )
    return await fetch_league_entry_ids(fpl_client, tournament)


async def resolve_active_tournament_entries(
    tournaments: list[TournamentInfo],
    fpl_client: FplApiClient,
    entry_repo: TournamentEntryRepository,
) -> tuple[list[int], dict[int, str]]:
    """Union of the entries of several tournaments, first-seen order.

    A tournament whose roster can't be resolved (standings fetch failure, page
    ceiling) is left out and reported in the second element, keyed by
    tournament id; the others still contribute.
    """
    entry_ids: list[int] = []
    failed: dict[int, str] = {}
    for tournament in tournaments:
        try:
            entry_ids.extend(
                await resolve_tournament_entries(tournament, fpl_client, entry_repo)
            )
        except Exception as e:
            logger.error(f"Failed to resolve entries for tournament {tournament.id}: {e}")
            failed[tournament.id] = str(e)
    return unique_entry_ids(entry_ids), failed
