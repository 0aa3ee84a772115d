"""Tests for cup result resolution and CupResultsService."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tournament_sync.services.cup_results import (
    RESULT_LOSS,
    RESULT_WIN,
    CupResultsService,
    resolve_cup_match,
)
from tests.factories import make_cup_match, make_tournament


class TestResolveCupMatch:
    """Tests for resolve_cup_match."""

    def test_higher_score_wins(self):
        """Entry 1 scores 65 vs 48 with no winner set: a win for entry 1."""
        matches = [make_cup_match(20, 1001, 2002, 65, 48)]

        row = resolve_cup_match(1001, matches, 20)

        assert row.result == RESULT_WIN
        assert row.event_points == 65
        assert row.against_entry_id == 2002
        assert row.against_entry_name == "Team 2002"
        assert row.against_player_name == "Manager 2002"
        assert row.against_event_points == 48

    def test_lower_score_loses(self):
        matches = [make_cup_match(20, 1001, 2002, 65, 48)]

        row = resolve_cup_match(2002, matches, 20)

        assert row.result == RESULT_LOSS
        assert row.entry_name == "Team 2002"
        assert row.player_name == "Manager 2002"
        assert row.event_points == 48
        assert row.against_entry_id == 1001

    def test_explicit_winner_overrides_score(self):
        """Upstream winner decides even if the points say otherwise."""
        matches = [make_cup_match(20, 1001, 2002, 40, 50, winner=1001)]

        assert resolve_cup_match(1001, matches, 20).result == RESULT_WIN
        assert resolve_cup_match(2002, matches, 20).result == RESULT_LOSS

    def test_zero_winner_falls_back_to_points(self):
        matches = [make_cup_match(20, 1001, 2002, 40, 50, winner=0)]

        assert resolve_cup_match(1001, matches, 20).result == RESULT_LOSS
        assert resolve_cup_match(2002, matches, 20).result == RESULT_WIN

    def test_tie_without_winner_counts_as_win(self):
        matches = [make_cup_match(20, 1001, 2002, 50, 50)]

        assert resolve_cup_match(1001, matches, 20).result == RESULT_WIN
        assert resolve_cup_match(2002, matches, 20).result == RESULT_WIN

    def test_missing_points_count_as_zero(self):
        matches = [make_cup_match(20, 1001, 2002, None, 10)]

        row = resolve_cup_match(1001, matches, 20)

        assert row.result == RESULT_LOSS
        assert row.event_points is None

    def test_no_match_for_event(self):
        matches = [make_cup_match(19, 1001, 2002, 60, 50)]

        assert resolve_cup_match(1001, matches, 20) is None

    def test_entry_not_in_match(self):
        matches = [make_cup_match(20, 3003, 4004, 60, 50)]

        assert resolve_cup_match(1001, matches, 20) is None

    def test_picks_match_for_requested_event(self):
        matches = [
            make_cup_match(19, 1001, 5005, 30, 80),
            make_cup_match(20, 1001, 2002, 65, 48),
        ]

        row = resolve_cup_match(1001, matches, 20)

        assert row.against_entry_id == 2002
        assert row.event_id == 20


@pytest.fixture
def fpl_client() -> MagicMock:
    client = MagicMock()
    client.get_entry_cup = AsyncMock(return_value=[])
    client.get_league_classic_standings = AsyncMock()
    return client


@pytest.fixture
def repos() -> dict[str, MagicMock]:
    tournament_repo = MagicMock()
    tournament_repo.find_active = AsyncMock(return_value=[make_tournament(1)])

    tournament_entry_repo = MagicMock()
    tournament_entry_repo.find_entry_ids_by_tournament_id = AsyncMock(
        return_value=[1001, 2002]
    )

    result_repo = MagicMock()
    result_repo.upsert_batch = AsyncMock(side_effect=lambda rows: len(rows))

    return {
        "tournament_repo": tournament_repo,
        "tournament_entry_repo": tournament_entry_repo,
        "result_repo": result_repo,
    }


@pytest.fixture
def service(fpl_client: MagicMock, repos: dict[str, MagicMock]) -> CupResultsService:
    return CupResultsService(fpl_client, **repos)


class TestCupResultsServiceSync:
    """Tests for CupResultsService.sync."""

    async def test_before_cup_phase_is_noop(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        """GW16 is before the cup starts: nothing is read, fetched or written."""
        summary = await service.sync(16)

        assert summary.total_entries == 0
        assert summary.upserted == 0
        repos["tournament_repo"].find_active.assert_not_awaited()
        fpl_client.get_entry_cup.assert_not_awaited()
        repos["result_repo"].upsert_batch.assert_not_awaited()

    @patch.dict(os.environ, {"CUP_START_EVENT": "30"})
    def test_cup_start_configurable(self, service: CupResultsService):
        assert service.is_cup_event(29) is False
        assert service.is_cup_event(30) is True

    async def test_writes_both_sides(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        match = make_cup_match(20, 1001, 2002, 65, 48)
        fpl_client.get_entry_cup.return_value = [match]

        summary = await service.sync(20)

        assert summary.total_entries == 2
        assert summary.upserted == 2
        assert summary.skipped == 0
        assert summary.errors == 0
        rows = repos["result_repo"].upsert_batch.await_args.args[0]
        assert [(r.entry_id, r.result) for r in rows] == [
            (1001, RESULT_WIN),
            (2002, RESULT_LOSS),
        ]

    async def test_eliminated_entry_skipped(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        """An entry with no match this gameweek is skipped, not an error."""

        async def cup(entry_id: int):
            if entry_id == 1001:
                return [make_cup_match(20, 1001, 9009, 70, 60)]
            return [make_cup_match(18, 2002, 8008, 30, 60)]

        fpl_client.get_entry_cup.side_effect = cup

        summary = await service.sync(20)

        assert summary.upserted == 1
        assert summary.skipped == 1
        assert summary.errors == 0

    async def test_fetch_error_counted(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        async def cup(entry_id: int):
            if entry_id == 2002:
                raise httpx.ConnectTimeout("timed out")
            return [make_cup_match(20, 1001, 9009, 70, 60)]

        fpl_client.get_entry_cup.side_effect = cup

        summary = await service.sync(20)

        assert summary.errors == 1
        assert summary.upserted == 1

    async def test_no_active_tournaments(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        repos["tournament_repo"].find_active.return_value = []

        summary = await service.sync(20)

        assert summary.total_entries == 0
        fpl_client.get_entry_cup.assert_not_awaited()
        repos["result_repo"].upsert_batch.assert_not_awaited()

    async def test_entries_shared_across_tournaments_fetched_once(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        repos["tournament_repo"].find_active.return_value = [
            make_tournament(1),
            make_tournament(2),
        ]
        repos["tournament_entry_repo"].find_entry_ids_by_tournament_id.side_effect = [
            [1001, 2002],
            [2002, 3003],
        ]

        summary = await service.sync(20)

        assert summary.total_entries == 3
        assert fpl_client.get_entry_cup.await_count == 3

    async def test_unresolved_tournament_does_not_block_others(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        """Tournament 2's standings fail; tournament 1's entries are still synced."""
        repos["tournament_repo"].find_active.return_value = [
            make_tournament(1),
            make_tournament(2, league_id=200),
        ]
        repos["tournament_entry_repo"].find_entry_ids_by_tournament_id.side_effect = [
            [1001, 2002],
            [],
        ]
        fpl_client.get_league_classic_standings.side_effect = httpx.ConnectError("down")
        fpl_client.get_entry_cup.return_value = [make_cup_match(20, 1001, 2002, 65, 48)]

        summary = await service.sync(20)

        assert summary.total_entries == 2
        assert summary.upserted == 2
        assert list(summary.failed_tournaments) == [2]
        assert "down" in summary.failed_tournaments[2]

    async def test_zero_concurrency_rejected(
        self, service: CupResultsService, fpl_client: MagicMock, repos
    ):
        """An explicit 0 is not replaced by the configured default."""
        with pytest.raises(ValueError, match="concurrency must be >= 1, got 0"):
            await service.sync(20, concurrency=0)

        fpl_client.get_entry_cup.assert_not_awaited()
        repos["result_repo"].upsert_batch.assert_not_awaited()
