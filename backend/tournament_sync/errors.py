"""Exceptions raised by the result sync services."""

from enum import Enum


class TournamentSyncError(Exception):
    """Base class for sync failures."""


class FatalPrereqError(TournamentSyncError):
    """A prerequisite for the whole sync is missing; nothing was processed."""


class TournamentNotFoundError(FatalPrereqError):
    """Raised when a tournament does not exist in the database."""

    def __init__(self, tournament_id: int):
        super().__init__(f"Tournament {tournament_id} not found")
        self.tournament_id = tournament_id


class StandingsPageLimitError(FatalPrereqError):
    """League standings still had further pages when the page ceiling was reached.

    The roster would be incomplete, so the tournament is not resolved at all.
    """

    def __init__(self, league_id: int, max_pages: int):
        super().__init__(
            f"League {league_id} standings exceed {max_pages} pages; roster would be incomplete"
        )
        self.league_id = league_id
        self.max_pages = max_pages


class FetchError(TournamentSyncError):
    """A single upstream call for one entry failed."""

    def __init__(self, entry_id: int, event_id: int | None, cause: BaseException):
        super().__init__(
            f"Upstream fetch failed for entry {entry_id} (event {event_id}): "
            f"{type(cause).__name__}: {cause}"
        )
        self.entry_id = entry_id
        self.event_id = event_id


class PersistenceError(TournamentSyncError):
    """A batch upsert failed. Earlier batches of the same call stay written."""

    def __init__(self, table: str, written: int, message: str):
        super().__init__(f"Failed to upsert into {table} after {written} rows: {message}")
        self.table = table
        self.written = written


class SkipReason(str, Enum):
    """Why an entry produced no row. Counted as skipped, never raised."""

    NO_PICKS = "no-picks"
    NO_ENTRY_INFO = "no-entry-info"
    NO_CUP_MATCH = "no-cup-match"
