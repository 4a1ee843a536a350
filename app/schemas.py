"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from models.records import ReportRecord
from services.aggregation import AggregationResult


class ReportResponse(BaseModel):
    """Latest average-age measurement for a building."""

    model_config = ConfigDict(populate_by_name=True)

    building_id: str = Field(..., alias="buildingId")
    average_age: float = Field(..., alias="averageAge")
    date_added: datetime = Field(..., alias="dateAdded")

    @classmethod
    def from_record(cls, record: ReportRecord) -> "ReportResponse":
        return cls(
            building_id=record.building_id,
            average_age=record.average_age,
            date_added=record.created_at,
        )


class AggregationRunResponse(BaseModel):
    """Outcome of a manually triggered aggregation run."""

    succeeded: int = Field(..., ge=0)
    failed: List[str] = Field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def from_result(cls, result: AggregationResult) -> "AggregationRunResponse":
        return cls(
            succeeded=result.succeeded,
            failed=list(result.failed),
            cancelled=result.cancelled,
        )
