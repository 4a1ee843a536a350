"""Domain models shared across services."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Building(BaseModel):
    """A building and the ordered roster of its resident ids."""

    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("slug", "id"))
    residents: List[str] = Field(default_factory=list)


class Resident(BaseModel):
    """A single resident as served by the residents registry."""

    model_config = ConfigDict(extra="ignore", frozen=True, coerce_numbers_to_str=True)

    id: str
    age: float


class ReportRecord(BaseModel):
    """One immutable average-age measurement for a building.

    Field names follow Python conventions; the persisted and HTTP shape uses
    ``buildingId``, ``averageAge`` and ``dateAdded``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    building_id: str = Field(alias="buildingId")
    average_age: float = Field(alias="averageAge")
    created_at: datetime = Field(default_factory=utc_now, alias="dateAdded")
