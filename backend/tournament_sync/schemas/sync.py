"""Sync API response schemas.

These Pydantic models are used for API serialization. They can be populated
directly from the service dataclasses using model_validate(obj, from_attributes=True).
"""

from pydantic import BaseModel, ConfigDict, Field


class LeagueSyncResponse(BaseModel):
    """Counters from one tournament's league event results sync."""

    model_config = ConfigDict(from_attributes=True)

    tournament_id: int
    event_id: int = Field(ge=1, le=38)
    total_entries: int = Field(ge=0)
    updated: int = Field(ge=0)
    skipped: int = Field(ge=0)
    fetch_errors: int = Field(ge=0)


class ActiveLeagueSyncResponse(BaseModel):
    """League event results sync across all active tournaments."""

    model_config = ConfigDict(from_attributes=True)

    event_id: int = Field(ge=1, le=38)
    summaries: list[LeagueSyncResponse]
    failed: dict[int, str]


class CupSyncResponse(BaseModel):
    """Counters from a cup results sync."""

    model_config = ConfigDict(from_attributes=True)

    event_id: int
    total_entries: int = Field(ge=0)
    upserted: int = Field(ge=0)
    skipped: int = Field(ge=0)
    errors: int = Field(ge=0)
    failed_tournaments: dict[int, str] = Field(default_factory=dict)
