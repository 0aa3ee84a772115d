"""FPL API client for the per-entry calls made during result syncs."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from tournament_sync.config import get_settings

logger = logging.getLogger(__name__)


def _safe_int(val: Any, default: int = 0) -> int:
    """Safely convert API value to int, handling None and empty strings."""
    if val is None or val == "":
        return default
    try:
        return int(val)
    except (ValueError, TypeError):
        return default


def _optional_int(val: Any) -> int | None:
    """Like _safe_int, but keeps "no value" as None."""
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (ValueError, TypeError):
        return None


@dataclass(slots=True)
class PickItem:
    """A player in an entry's 15-man squad for one gameweek."""

    element: int
    position: int
    multiplier: int
    is_captain: bool
    is_vice_captain: bool

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PickItem":
        # Stored picks may use camelCase keys
        return cls(
            element=_safe_int(raw.get("element")),
            position=_safe_int(raw.get("position")),
            multiplier=_safe_int(raw.get("multiplier"), default=1),
            is_captain=bool(raw.get("is_captain", raw.get("isCaptain", False))),
            is_vice_captain=bool(
                raw.get("is_vice_captain", raw.get("isViceCaptain", False))
            ),
        )


@dataclass(slots=True)
class AutoSub:
    """An automatic substitution; the incoming element is the one that scores."""

    element_in: int | None
    element_out: int | None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "AutoSub":
        return cls(
            element_in=_optional_int(raw.get("element_in", raw.get("elementIn"))),
            element_out=_optional_int(raw.get("element_out", raw.get("elementOut"))),
        )


def parse_picks(raw: Any) -> list[PickItem]:
    """Parse a picks array; anything that isn't a list yields no picks."""
    if not isinstance(raw, list):
        return []
    return [PickItem.from_dict(p) for p in raw if isinstance(p, dict)]


def parse_auto_subs(raw: Any) -> list[AutoSub]:
    """Parse an automatic_subs array; anything that isn't a list yields none."""
    if not isinstance(raw, list):
        return []
    return [AutoSub.from_dict(s) for s in raw if isinstance(s, dict)]


@dataclass(slots=True)
class EntryHistory:
    """The entry_history block embedded in a picks response."""

    points: int | None = None
    total_points: int | None = None
    rank: int | None = None
    overall_rank: int | None = None
    bank: int | None = None
    value: int | None = None
    event_transfers: int | None = None
    event_transfers_cost: int | None = None
    points_on_bench: int | None = None


@dataclass(slots=True)
class PicksResponse:
    """Response of /entry/{id}/event/{gw}/picks/."""

    active_chip: str | None
    automatic_subs: list[AutoSub]
    entry_history: EntryHistory
    picks: list[PickItem]


@dataclass(slots=True)
class StandingsPage:
    """One page of a league's standings, reduced to entry ids."""

    entry_ids: list[int] = field(default_factory=list)
    has_next: bool = False


@dataclass(slots=True)
class CupMatch:
    """A single head-to-head cup fixture from /entry/{id}/cup/."""

    event: int
    entry_1_entry: int | None
    entry_1_name: str | None
    entry_1_player_name: str | None
    entry_1_points: int | None
    entry_2_entry: int | None
    entry_2_name: str | None
    entry_2_player_name: str | None
    entry_2_points: int | None
    winner: int | None


class FplApiClient:
    """
    FPL API client with rate limiting.

    Every call is a single attempt. Failed requests raise httpx errors and it is
    up to the caller to record them.
    """

    def __init__(
        self,
        base_url: str | None = None,
        requests_per_second: float | None = None,
        max_concurrent: int | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: FPL API root, defaults to settings
            requests_per_second: Target rate (1.0 = 1 request/sec)
            max_concurrent: Maximum concurrent requests
            timeout: Per-request timeout in seconds
        """
        settings = get_settings()
        self.base_url = (base_url or settings.fpl_api_base_url).rstrip("/")
        self.delay = 1.0 / (requests_per_second or settings.fpl_requests_per_second)
        self.semaphore = asyncio.Semaphore(max_concurrent or settings.fpl_max_concurrent)
        self.timeout = timeout or settings.fpl_timeout_seconds
        self._last_request_time = 0.0
        self._lock = asyncio.Lock()
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization, coroutine-safe)."""
        if self._client is None:
            async with self._lock:
                if self._client is None:  # Double-check after acquiring lock
                    self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources (coroutine-safe)."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None

    async def __aenter__(self) -> "FplApiClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context manager and close client."""
        await self.close()

    async def _rate_limit(self) -> None:
        """Apply rate limiting between requests."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self.delay:
                await asyncio.sleep(self.delay - elapsed)
            self._last_request_time = time.monotonic()

    async def _get(self, path: str) -> Any:
        """Make a rate-limited GET request."""
        async with self.semaphore:
            await self._rate_limit()

            client = await self._get_client()
            response = await client.get(f"{self.base_url}{path}")
            response.raise_for_status()
            return response.json()

    async def get_entry_event_picks(self, entry_id: int, event_id: int) -> PicksResponse:
        """
        Fetch an entry's squad for a gameweek.

        Args:
            entry_id: FPL entry (team) ID
            event_id: Gameweek number

        Returns:
            PicksResponse with picks, automatic subs and the entry_history block
        """
        data = await self._get(f"/entry/{entry_id}/event/{event_id}/picks/")

        history = data.get("entry_history") or {}
        return PicksResponse(
            active_chip=data.get("active_chip") or None,
            automatic_subs=parse_auto_subs(data.get("automatic_subs")),
            entry_history=EntryHistory(
                points=_optional_int(history.get("points")),
                total_points=_optional_int(history.get("total_points")),
                rank=_optional_int(history.get("rank")),
                overall_rank=_optional_int(history.get("overall_rank")),
                bank=_optional_int(history.get("bank")),
                value=_optional_int(history.get("value")),
                event_transfers=_optional_int(history.get("event_transfers")),
                event_transfers_cost=_optional_int(history.get("event_transfers_cost")),
                points_on_bench=_optional_int(history.get("points_on_bench")),
            ),
            picks=parse_picks(data.get("picks")),
        )

    async def _get_standings_page(self, kind: str, league_id: int, page: int) -> StandingsPage:
        data = await self._get(
            f"/leagues-{kind}/{league_id}/standings/?page_standings={page}"
        )
        standings = data.get("standings") or {}
        entry_ids = [
            _safe_int(result.get("entry")) for result in standings.get("results", [])
        ]
        return StandingsPage(
            entry_ids=entry_ids,
            has_next=bool(standings.get("has_next", False)),
        )

    async def get_league_classic_standings(self, league_id: int, page: int) -> StandingsPage:
        """Fetch one page of a classic league's standings."""
        return await self._get_standings_page("classic", league_id, page)

    async def get_league_h2h_standings(self, league_id: int, page: int) -> StandingsPage:
        """Fetch one page of a head-to-head league's standings."""
        return await self._get_standings_page("h2h", league_id, page)

    async def get_entry_cup(self, entry_id: int) -> list[CupMatch]:
        """
        Fetch an entry's cup matches (/entry/{id}/cup/).

        Args:
            entry_id: FPL entry (team) ID

        Returns:
            All cup matches the entry has played or been drawn into
        """
        data = await self._get(f"/entry/{entry_id}/cup/")

        matches = []
        for m in data.get("cup_matches") or []:
            matches.append(
                CupMatch(
                    event=_safe_int(m.get("event")),
                    entry_1_entry=_optional_int(m.get("entry_1_entry")),
                    entry_1_name=m.get("entry_1_name"),
                    entry_1_player_name=m.get("entry_1_player_name"),
                    entry_1_points=_optional_int(m.get("entry_1_points")),
                    entry_2_entry=_optional_int(m.get("entry_2_entry")),
                    entry_2_name=m.get("entry_2_name"),
                    entry_2_player_name=m.get("entry_2_player_name"),
                    entry_2_points=_optional_int(m.get("entry_2_points")),
                    winner=_optional_int(m.get("winner")),
                )
            )
        return matches
