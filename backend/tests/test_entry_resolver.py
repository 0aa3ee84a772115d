"""Tests for tournament entry resolution."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tournament_sync.config import get_settings
from tournament_sync.errors import StandingsPageLimitError
from tournament_sync.services.entry_resolver import (
    fetch_league_entry_ids,
    iter_standings_pages,
    resolve_active_tournament_entries,
    resolve_tournament_entries,
    unique_entry_ids,
)
from tournament_sync.services.fpl_client import StandingsPage
from tests.factories import make_tournament


def _pages(*pages: list[int]) -> list[StandingsPage]:
    """Standings pages where every page but the last has a successor."""
    return [
        StandingsPage(entry_ids=ids, has_next=i < len(pages) - 1)
        for i, ids in enumerate(pages)
    ]


@pytest.fixture
def fpl_client() -> MagicMock:
    client = MagicMock()
    client.get_league_classic_standings = AsyncMock()
    client.get_league_h2h_standings = AsyncMock()
    return client


@pytest.fixture
def entry_repo() -> MagicMock:
    repo = MagicMock()
    repo.find_entry_ids_by_tournament_id = AsyncMock(return_value=[])
    return repo


class TestUniqueEntryIds:
    """Tests for unique_entry_ids."""

    def test_keeps_first_seen_order(self):
        assert unique_entry_ids([3, 1, 3, 2, 1]) == [3, 1, 2]

    def test_drops_non_positive(self):
        assert unique_entry_ids([0, 5, -1, 6]) == [5, 6]


class TestIterStandingsPages:
    """Tests for iter_standings_pages."""

    async def test_walks_until_has_next_false(self, fpl_client: MagicMock):
        fpl_client.get_league_classic_standings.side_effect = _pages([1, 2], [3, 4], [5])

        pages = [ids async for ids in iter_standings_pages(fpl_client, 100, "classic")]

        assert pages == [[1, 2], [3, 4], [5]]
        calls = fpl_client.get_league_classic_standings.await_args_list
        assert [c.args for c in calls] == [(100, 1), (100, 2), (100, 3)]

    async def test_h2h_uses_h2h_endpoint(self, fpl_client: MagicMock):
        fpl_client.get_league_h2h_standings.side_effect = _pages([7])

        pages = [ids async for ids in iter_standings_pages(fpl_client, 200, "h2h")]

        assert pages == [[7]]
        fpl_client.get_league_classic_standings.assert_not_awaited()

    async def test_page_ceiling_raises(self, fpl_client: MagicMock):
        """Pages left after the ceiling fail the walk instead of truncating it."""
        fpl_client.get_league_classic_standings.return_value = StandingsPage(
            entry_ids=[1], has_next=True
        )
        pages: list[list[int]] = []

        with pytest.raises(StandingsPageLimitError, match="exceed 3 pages"):
            async for ids in iter_standings_pages(fpl_client, 100, "classic", max_pages=3):
                pages.append(ids)

        assert len(pages) == 3

    async def test_last_page_at_ceiling_is_complete(self, fpl_client: MagicMock):
        fpl_client.get_league_classic_standings.side_effect = _pages([1], [2], [3])

        pages = [
            ids async for ids in iter_standings_pages(fpl_client, 100, "classic", max_pages=3)
        ]

        assert pages == [[1], [2], [3]]

    async def test_restarts_from_first_page(self, fpl_client: MagicMock):
        """A fresh iteration fetches page 1 again."""
        fpl_client.get_league_classic_standings.return_value = StandingsPage(
            entry_ids=[1], has_next=False
        )

        _ = [ids async for ids in iter_standings_pages(fpl_client, 100, "classic")]
        _ = [ids async for ids in iter_standings_pages(fpl_client, 100, "classic")]

        calls = fpl_client.get_league_classic_standings.await_args_list
        assert [c.args for c in calls] == [(100, 1), (100, 1)]

    async def test_fetch_error_propagates(self, fpl_client: MagicMock):
        fpl_client.get_league_classic_standings.side_effect = httpx.ConnectError("down")

        with pytest.raises(httpx.ConnectError):
            _ = [ids async for ids in iter_standings_pages(fpl_client, 100, "classic")]


class TestFetchLeagueEntryIds:
    """Tests for fetch_league_entry_ids."""

    async def test_collects_all_pages(self, fpl_client: MagicMock):
        fpl_client.get_league_classic_standings.side_effect = _pages([1, 2], [2, 3])

        entry_ids = await fetch_league_entry_ids(fpl_client, make_tournament())

        assert entry_ids == [1, 2, 3]

    async def test_stops_at_team_cap(self, fpl_client: MagicMock):
        """total_team_num caps the result and stops paging early."""
        fpl_client.get_league_classic_standings.side_effect = _pages(
            [1, 2, 3], [4, 5, 6], [7, 8, 9]
        )

        entry_ids = await fetch_league_entry_ids(
            fpl_client, make_tournament(total_team_num=4)
        )

        assert entry_ids == [1, 2, 3, 4]
        assert fpl_client.get_league_classic_standings.await_count == 2


class TestResolveTournamentEntries:
    """Tests for resolve_tournament_entries."""

    async def test_stored_roster_wins(self, fpl_client: MagicMock, entry_repo: MagicMock):
        """Stored roster means no upstream calls at all."""
        entry_repo.find_entry_ids_by_tournament_id.return_value = [11, 12, 11]

        entry_ids = await resolve_tournament_entries(make_tournament(), fpl_client, entry_repo)

        assert entry_ids == [11, 12]
        fpl_client.get_league_classic_standings.assert_not_awaited()

    async def test_falls_back_to_standings(self, fpl_client: MagicMock, entry_repo: MagicMock):
        fpl_client.get_league_classic_standings.side_effect = _pages([21, 22])

        entry_ids = await resolve_tournament_entries(make_tournament(), fpl_client, entry_repo)

        assert entry_ids == [21, 22]
        entry_repo.find_entry_ids_by_tournament_id.assert_awaited_once_with(1)

    async def test_active_union(self, fpl_client: MagicMock, entry_repo: MagicMock):
        """Entries in several tournaments appear once, in first-seen order."""
        entry_repo.find_entry_ids_by_tournament_id.side_effect = [[1, 2], [2, 3]]

        entry_ids, failed = await resolve_active_tournament_entries(
            [make_tournament(1), make_tournament(2)], fpl_client, entry_repo
        )

        assert entry_ids == [1, 2, 3]
        assert failed == {}

    async def test_active_union_isolates_failed_tournament(
        self, fpl_client: MagicMock, entry_repo: MagicMock
    ):
        """A tournament whose standings fail is reported; the others still resolve."""
        entry_repo.find_entry_ids_by_tournament_id.side_effect = [[1, 2], [], [3]]
        fpl_client.get_league_classic_standings.side_effect = httpx.ConnectError("down")

        entry_ids, failed = await resolve_active_tournament_entries(
            [make_tournament(1), make_tournament(2), make_tournament(3)],
            fpl_client,
            entry_repo,
        )

        assert entry_ids == [1, 2, 3]
        assert list(failed) == [2]
        assert "down" in failed[2]


class TestLargeLeagues:
    """Rosters spanning many standings pages."""

    async def test_uncapped_league_of_150_pages_is_complete(
        self, fpl_client: MagicMock, entry_repo: MagicMock
    ):
        """150 pages of 50 entries resolve to all 7500 entries."""
        fpl_client.get_league_classic_standings.side_effect = _pages(
            *[list(range(page * 50 + 1, page * 50 + 51)) for page in range(150)]
        )

        entry_ids = await resolve_tournament_entries(make_tournament(), fpl_client, entry_repo)

        assert len(entry_ids) == 7500
        assert fpl_client.get_league_classic_standings.await_count == 150

    async def test_roster_over_ceiling_fails_resolution(
        self, fpl_client: MagicMock, entry_repo: MagicMock
    ):
        """No team cap and pages beyond the configured ceiling: no partial roster."""
        fpl_client.get_league_classic_standings.return_value = StandingsPage(
            entry_ids=list(range(1, 51)), has_next=True
        )

        with patch.dict(os.environ, {"STANDINGS_MAX_PAGES": "4"}):
            get_settings.cache_clear()
            with pytest.raises(StandingsPageLimitError) as exc_info:
                await resolve_tournament_entries(make_tournament(), fpl_client, entry_repo)

        assert exc_info.value.league_id == 100
        assert fpl_client.get_league_classic_standings.await_count == 4

    async def test_team_cap_reached_before_ceiling(
        self, fpl_client: MagicMock, entry_repo: MagicMock
    ):
        """Hitting total_team_num stops the walk without touching the ceiling."""
        fpl_client.get_league_classic_standings.side_effect = [
            StandingsPage(entry_ids=list(range(p * 50 + 1, p * 50 + 51)), has_next=True)
            for p in range(3)
        ]

        entry_ids = await resolve_tournament_entries(
            make_tournament(total_team_num=120), fpl_client, entry_repo
        )

        assert len(entry_ids) == 120
        assert fpl_client.get_league_classic_standings.await_count == 3
