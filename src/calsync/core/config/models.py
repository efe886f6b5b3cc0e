"""
Configuration data models for calsync.

These models define the structure of calsync.json and
~/.config/calsync/config.json files, with validation and type safety via
Pydantic. Unknown fields are rejected so that typos fail fast, before any
network activity begins.
"""

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SyncSettings(BaseModel):
    """
    Run-level limits and retry settings.

    The default time budget leaves headroom under a six-minute scheduler limit.
    """

    model_config = ConfigDict(extra="forbid")

    time_budget_seconds: Optional[float] = Field(
        default=330.0,
        gt=0,
        description="Wall-clock budget for one run (None = unlimited)",
    )
    cache_ttl_seconds: int = Field(
        default=60 * 60 * 2,
        ge=1,
        description="How long a synced event is remembered before it is re-applied",
    )
    backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Fixed delay between retries of a transient failure",
    )
    fetch_max_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts per page fetch on transient failures",
    )
    sink_max_attempts: int = Field(
        default=10,
        ge=1,
        description="Attempts per destination mutation on transient failures",
    )
    log_errors: bool = Field(
        default=False,
        description="Log each failure as soon as it is recorded",
    )


class CacheConfig(BaseModel):
    """Where synced-event cache entries are persisted between runs."""

    model_config = ConfigDict(extra="forbid")

    path: Path = Field(
        default=Path(".calsync") / "cache.json",
        description="Cache file location, relative to the working directory",
    )


class GoogleCalendarConfig(BaseModel):
    """Google Calendar sink settings."""

    model_config = ConfigDict(extra="forbid")

    type: Literal["google_calendar"] = "google_calendar"
    token_env: str = Field(
        default="GOOGLE_CALENDAR_TOKEN",
        min_length=1,
        description="Environment variable holding an OAuth access token",
    )
    base_url: str = Field(default="https://www.googleapis.com/calendar/v3")
    timeout_seconds: float = Field(default=30.0, gt=0)


class LocationMode(str, Enum):
    """How much of a class location to put in the event's location field."""

    CONCISE = "concise"
    FULL = "full"
    NONE = "none"


class MarianaTekSourceConfig(BaseModel):
    """
    A Mariana Tek brand whose classes are mirrored to calendars.

    Exactly one of ``target_calendar`` and ``location_to_target_calendars``
    must be set.
    """

    model_config = ConfigDict(extra="forbid")

    type: Literal["marianatek"] = "marianatek"
    name: str = Field(..., min_length=1, description="Name used in logs and error reports")
    id_prefix: str = Field(
        ...,
        min_length=1,
        description=(
            "Prefix added to event ids to tell which source produced them. "
            "Changing it without clearing old events causes duplicates."
        ),
    )
    brand: str = Field(..., min_length=1, description="Mariana Tek brand subdomain")
    past_days_to_fetch: int = Field(default=1, ge=0)
    future_days_to_fetch: int = Field(default=30, ge=1)
    include_reserve_link: bool = True
    include_phone_number: bool = False
    include_email: bool = True
    include_address: bool = True
    location_mode: LocationMode = LocationMode.CONCISE
    custom_prefix: str = ""
    custom_suffix: str = ""
    target_calendar: Optional[str] = Field(default=None, min_length=1)
    location_to_target_calendars: Optional[dict[str, list[str]]] = None

    @field_validator("location_to_target_calendars")
    @classmethod
    def _no_empty_targets(
        cls, value: Optional[dict[str, list[str]]]
    ) -> Optional[dict[str, list[str]]]:
        if value is None:
            return value
        for location, targets in value.items():
            if not targets:
                raise ValueError(f"location_to_target_calendars['{location}'] is empty")
            for i, target in enumerate(targets):
                if not target:
                    raise ValueError(
                        f"location_to_target_calendars['{location}'][{i}] is empty"
                    )
        return value

    @model_validator(mode="after")
    def _exactly_one_target(self) -> "MarianaTekSourceConfig":
        has_single = self.target_calendar is not None
        has_mapping = self.location_to_target_calendars is not None
        if has_single == has_mapping:
            raise ValueError(
                "Either 'target_calendar' or 'location_to_target_calendars' "
                "must be specified, but not both"
            )
        return self


class CalsyncConfig(BaseModel):
    """
    Top-level calsync configuration.

    Example:
        >>> config = CalsyncConfig(sources=[{
        ...     "name": "Studio", "id_prefix": "studio-", "brand": "studio",
        ...     "target_calendar": "primary",
        ... }])
        >>> config.sync.cache_ttl_seconds
        7200
    """

    model_config = ConfigDict(extra="forbid")

    sync: SyncSettings = Field(default_factory=SyncSettings)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    sink: GoogleCalendarConfig = Field(default_factory=GoogleCalendarConfig)
    sources: list[MarianaTekSourceConfig] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _unique_source_names(self) -> "CalsyncConfig":
        names = [source.name for source in self.sources]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate source names: {', '.join(duplicates)}")
        return self
