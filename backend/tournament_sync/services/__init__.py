"""Service layer for business logic."""

from tournament_sync.services.cup_results import CupResultsService
from tournament_sync.services.fpl_client import FplApiClient
from tournament_sync.services.league_event_results import LeagueEventResultsService

__all__ = ["CupResultsService", "FplApiClient", "LeagueEventResultsService"]
