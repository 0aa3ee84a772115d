"""API response schemas."""

from tournament_sync.schemas.sync import (
    ActiveLeagueSyncResponse,
    CupSyncResponse,
    LeagueSyncResponse,
)

__all__ = [
    "ActiveLeagueSyncResponse",
    "CupSyncResponse",
    "LeagueSyncResponse",
]
