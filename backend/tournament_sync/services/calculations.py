"""Pure calculation functions for league event results.

These functions are stateless and have no database or external dependencies,
making them easy to test in isolation. The sync service gathers stored results,
fetched picks, live stats and element types, then hands them to
compute_league_event_result() one entry at a time.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tournament_sync.errors import SkipReason
from tournament_sync.services.fpl_client import AutoSub, PickItem, PicksResponse
from tournament_sync.services.repositories import EntryEventResult, LiveStat

# =============================================================================
# Constants
# =============================================================================

# FPL position element types
GK = 1
DEF = 2
MID = 3
FWD = 4

# Positions whose clean sheet counts as a return
CLEAN_SHEET_POSITIONS = frozenset({GK, DEF})

# A keeper needs more than this many saves for the gameweek not to be a blank
BLANK_SAVES_THRESHOLD = 3

# Provenance of a resolved field
SOURCE_EXISTING = "existing"
SOURCE_FALLBACK = "fallback"
SOURCE_COMPUTED = "computed"
SOURCE_DEFAULT = "default"


# =============================================================================
# Result types
# =============================================================================


@dataclass(frozen=True, slots=True)
class Resolved:
    """A field value plus where it came from."""

    value: Any
    source: str


@dataclass(slots=True)
class LeagueEventResultData:
    """Computed per-entry result, before entry metadata and keys are attached."""

    event_points: int
    event_transfers: int
    event_transfers_cost: int
    event_net_points: int
    event_bench_points: int | None
    event_auto_sub_points: int | None
    event_rank: int | None
    event_chip: str | None
    overall_points: int
    overall_rank: int
    team_value: int | None
    bank: int | None
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
    provenance: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Pure Functions
# =============================================================================


def resolve_with_fallback(existing: Any, fallback: Any, default: Any) -> Resolved:
    """Pick the stored value, else the freshly fetched one, else the default.

    Only None counts as missing; 0 and "" are real values.
    """
    if existing is not None:
        return Resolved(existing, SOURCE_EXISTING)
    if fallback is not None:
        return Resolved(fallback, SOURCE_FALLBACK)
    return Resolved(default, SOURCE_DEFAULT)


def is_blank(stat: LiveStat | None, element_type: int | None) -> bool:
    """Whether a player returned nothing of note in the gameweek.

    A goal, assist, bonus point, penalty save or more than three saves is a
    return for anyone; a clean sheet only counts for goalkeepers and defenders.
    A player with no live record is always blank.
    """
    if stat is None:
        return True

    if (
        stat.goals_scored > 0
        or stat.assists > 0
        or stat.bonus > 0
        or stat.penalties_saved > 0
        or stat.saves > BLANK_SAVES_THRESHOLD
    ):
        return False

    if element_type in CLEAN_SHEET_POSITIONS and stat.clean_sheets > 0:
        return False

    return True


def calculate_auto_sub_points(
    auto_subs: list[AutoSub], live_by_element: Mapping[int, LiveStat]
) -> int:
    """Sum the live points of every auto-substituted incoming player.

    Elements without a live record contribute 0.
    """
    total = 0
    for sub in auto_subs:
        if not sub.element_in:
            continue
        stat = live_by_element.get(sub.element_in)
        total += stat.total_points if stat else 0
    return total


def find_highest_scorer(
    picks: list[PickItem], live_by_element: Mapping[int, LiveStat]
) -> tuple[int | None, int | None]:
    """Return (element, points) of the top scorer among the picks.

    Scans in pick order and only replaces on strictly greater points, so ties
    go to the earliest pick. Returns (None, None) for an empty squad.
    """
    best_element: int | None = None
    best_points: int | None = None

    for pick in picks:
        stat = live_by_element.get(pick.element)
        points = stat.total_points if stat else 0
        if best_points is None or points > best_points:
            best_points = points
            best_element = pick.element

    return best_element, best_points


def resolve_played_captain(
    captain_id: int | None,
    vice_captain_id: int | None,
    captain_stat: LiveStat | None,
    vice_stat: LiveStat | None,
) -> int | None:
    """The vice takes the armband only if the captain did not play and the vice did."""
    if captain_id and vice_captain_id:
        captain_minutes = captain_stat.minutes if captain_stat else 0
        vice_minutes = vice_stat.minutes if vice_stat else 0
        if captain_minutes == 0 and vice_minutes > 0:
            return vice_captain_id
    return captain_id


def _first_flagged(picks: list[PickItem], flag: str) -> PickItem | None:
    return next((pick for pick in picks if getattr(pick, flag)), None)


def compute_league_event_result(
    existing: EntryEventResult | None,
    fallback_picks: PicksResponse | None,
    live_by_element: Mapping[int, LiveStat],
    element_type_by_element: Mapping[int, int],
) -> LeagueEventResultData | SkipReason:
    """Build one entry's league result for a gameweek.

    Args:
        existing: Stored entry result, authoritative when present
        fallback_picks: Picks fetched from the FPL API for entries with no stored result
        live_by_element: Live stats for the gameweek keyed by element id
        element_type_by_element: Element type keyed by element id

    Returns:
        LeagueEventResultData, or SkipReason.NO_PICKS when there is no squad to score
    """
    if existing is not None and existing.event_picks:
        picks = existing.event_picks
        auto_subs = existing.event_auto_sub
    elif fallback_picks is not None:
        picks = fallback_picks.picks
        auto_subs = fallback_picks.automatic_subs
    else:
        picks, auto_subs = [], []

    if not picks:
        return SkipReason.NO_PICKS

    history = fallback_picks.entry_history if fallback_picks else None

    def stored(name: str) -> Any:
        return getattr(existing, name) if existing is not None else None

    def fetched(name: str) -> Any:
        return getattr(history, name) if history is not None else None

    resolved: dict[str, Resolved] = {
        "event_points": resolve_with_fallback(stored("event_points"), fetched("points"), 0),
        "event_transfers": resolve_with_fallback(
            stored("event_transfers"), fetched("event_transfers"), 0
        ),
        "event_transfers_cost": resolve_with_fallback(
            stored("event_transfers_cost"), fetched("event_transfers_cost"), 0
        ),
        "event_bench_points": resolve_with_fallback(
            stored("event_bench_points"), fetched("points_on_bench"), None
        ),
        "event_rank": resolve_with_fallback(stored("event_rank"), fetched("rank"), None),
        "event_chip": resolve_with_fallback(
            stored("event_chip"),
            fallback_picks.active_chip if fallback_picks else None,
            None,
        ),
        "overall_points": resolve_with_fallback(
            stored("overall_points"), fetched("total_points"), 0
        ),
        "overall_rank": resolve_with_fallback(
            stored("overall_rank"), fetched("overall_rank"), 0
        ),
        "team_value": resolve_with_fallback(stored("team_value"), fetched("value"), None),
        "bank": resolve_with_fallback(stored("bank"), fetched("bank"), None),
    }

    net = stored("event_net_points")
    if net is not None:
        resolved["event_net_points"] = Resolved(net, SOURCE_EXISTING)
    else:
        resolved["event_net_points"] = Resolved(
            resolved["event_points"].value - resolved["event_transfers_cost"].value,
            SOURCE_COMPUTED,
        )

    auto_sub_points = stored("event_auto_sub_points")
    if auto_sub_points is not None:
        resolved["event_auto_sub_points"] = Resolved(auto_sub_points, SOURCE_EXISTING)
    else:
        resolved["event_auto_sub_points"] = Resolved(
            calculate_auto_sub_points(auto_subs, live_by_element), SOURCE_COMPUTED
        )

    # Captaincy
    captain_pick = _first_flagged(picks, "is_captain")
    vice_pick = _first_flagged(picks, "is_vice_captain")
    captain_id = captain_pick.element if captain_pick else None
    vice_captain_id = vice_pick.element if vice_pick else None
    captain_stat = live_by_element.get(captain_id) if captain_id else None
    vice_stat = live_by_element.get(vice_captain_id) if vice_captain_id else None
    captain_multiplier = captain_pick.multiplier if captain_pick else 1

    captain_points = (
        (captain_stat.total_points if captain_stat else 0) * captain_multiplier
        if captain_id
        else None
    )
    vice_captain_points = (
        (vice_stat.total_points if vice_stat else 0) if vice_captain_id else None
    )

    highest_id, highest_points = find_highest_scorer(picks, live_by_element)

    return LeagueEventResultData(
        event_points=resolved["event_points"].value,
        event_transfers=resolved["event_transfers"].value,
        event_transfers_cost=resolved["event_transfers_cost"].value,
        event_net_points=resolved["event_net_points"].value,
        event_bench_points=resolved["event_bench_points"].value,
        event_auto_sub_points=resolved["event_auto_sub_points"].value,
        event_rank=resolved["event_rank"].value,
        event_chip=resolved["event_chip"].value,
        overall_points=resolved["overall_points"].value,
        overall_rank=resolved["overall_rank"].value,
        team_value=resolved["team_value"].value,
        bank=resolved["bank"].value,
        captain_id=captain_id,
        captain_points=captain_points,
        captain_blank=is_blank(
            captain_stat, element_type_by_element.get(captain_id) if captain_id else None
        ),
        vice_captain_id=vice_captain_id,
        vice_captain_points=vice_captain_points,
        vice_captain_blank=is_blank(
            vice_stat,
            element_type_by_element.get(vice_captain_id) if vice_captain_id else None,
        ),
        played_captain_id=resolve_played_captain(
            captain_id, vice_captain_id, captain_stat, vice_stat
        ),
        highest_score_element_id=highest_id,
        highest_score_points=highest_points,
        highest_score_blank=is_blank(
            live_by_element.get(highest_id) if highest_id else None,
            element_type_by_element.get(highest_id) if highest_id else None,
        ),
        provenance={name: r.source for name, r in resolved.items()},
    )
