"""Sync API routes - trigger league and cup result syncs."""

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException, Path, Query

from tournament_sync.dependencies import get_fpl_client, require_db
from tournament_sync.errors import (
    FatalPrereqError,
    PersistenceError,
    StandingsPageLimitError,
)
from tournament_sync.schemas.sync import (
    ActiveLeagueSyncResponse,
    CupSyncResponse,
    LeagueSyncResponse,
)
from tournament_sync.services.cup_results import CupResultsService
from tournament_sync.services.fpl_client import FplApiClient
from tournament_sync.services.league_event_results import LeagueEventResultsService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/sync", tags=["sync"])

TournamentIdPath = Annotated[int, Path(ge=1, description="Tournament ID")]
EventIdPath = Annotated[int, Path(ge=1, le=38, description="Gameweek number")]
ConcurrencyQuery = Annotated[
    int | None, Query(ge=1, le=20, description="Upstream fetches in flight")
]


@router.post(
    "/league-results/{tournament_id}/events/{event_id}",
    response_model=LeagueSyncResponse,
)
async def sync_league_results(
    tournament_id: TournamentIdPath,
    event_id: EventIdPath,
    concurrency: ConcurrencyQuery = None,
    fpl_client: FplApiClient = Depends(get_fpl_client),
    _: None = Depends(require_db),
) -> LeagueSyncResponse:
    """Recompute league event results for one tournament and gameweek."""
    try:
        service = LeagueEventResultsService(fpl_client)
        summary = await service.sync(tournament_id, event_id, concurrency)
    except StandingsPageLimitError as e:
        logger.exception(f"Incomplete league roster for tournament {tournament_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e
    except FatalPrereqError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except httpx.HTTPError as e:
        logger.exception(f"FPL API error resolving tournament {tournament_id} entries: {e}")
        raise HTTPException(
            status_code=502,
            detail="FPL API error while resolving tournament entries",
        ) from e
    except PersistenceError as e:
        logger.exception(f"Failed to store league results: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while storing league results",
        ) from e
    return LeagueSyncResponse.model_validate(summary, from_attributes=True)


@router.post("/league-results/events/{event_id}", response_model=ActiveLeagueSyncResponse)
async def sync_active_league_results(
    event_id: EventIdPath,
    concurrency: ConcurrencyQuery = None,
    fpl_client: FplApiClient = Depends(get_fpl_client),
    _: None = Depends(require_db),
) -> ActiveLeagueSyncResponse:
    """Recompute league event results for every active tournament."""
    service = LeagueEventResultsService(fpl_client)
    report = await service.sync_active(event_id, concurrency)
    return ActiveLeagueSyncResponse.model_validate(report, from_attributes=True)


@router.post("/cup-results/events/{event_id}", response_model=CupSyncResponse)
async def sync_cup_results(
    event_id: EventIdPath,
    concurrency: ConcurrencyQuery = None,
    fpl_client: FplApiClient = Depends(get_fpl_client),
    _: None = Depends(require_db),
) -> CupSyncResponse:
    """Recompute cup results for a gameweek. Outside the cup phase this is a no-op."""
    try:
        service = CupResultsService(fpl_client)
        summary = await service.sync(event_id, concurrency)
    except PersistenceError as e:
        logger.exception(f"Failed to store cup results: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal server error while storing cup results",
        ) from e
    return CupSyncResponse.model_validate(summary, from_attributes=True)
