"""HTTP route definitions for the service."""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import AggregationRunResponse, ReportResponse
from services.errors import BadRequest, PersistenceFailure, UpstreamUnavailable
from services.reports import ReportService, build_default_report_service
from services.scheduler import AggregationScheduler, build_default_scheduler

router = APIRouter()


def get_report_service() -> ReportService:
    return build_default_report_service()


def get_scheduler() -> AggregationScheduler:
    return build_default_scheduler()


@router.get(
    "/api/reports",
    response_model=Union[ReportResponse, List[ReportResponse]],
    response_model_by_alias=True,
    summary="Fetch the latest average-age report for a building.",
)
async def get_report(
    building_id: str = Query("", alias="buildingId"),
    from_date: Optional[date] = Query(None, alias="fromDate"),
    to_date: Optional[date] = Query(None, alias="toDate"),
    reports: ReportService = Depends(get_report_service),
) -> Union[ReportResponse, List[ReportResponse]]:
    try:
        record = reports.get_report(building_id, from_date=from_date, to_date=to_date)
    except BadRequest as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except PersistenceFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Report store is unavailable.",
        ) from exc
    if record is None:
        return []
    return ReportResponse.from_record(record)


@router.post(
    "/api/aggregations",
    response_model=AggregationRunResponse,
    summary="Run an aggregation now instead of waiting for the next tick.",
)
def run_aggregation(
    scheduler: AggregationScheduler = Depends(get_scheduler),
) -> AggregationRunResponse:
    try:
        result = scheduler.trigger()
    except UpstreamUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Buildings registry is unavailable.",
        ) from exc
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An aggregation run is already in progress.",
        )
    return AggregationRunResponse.from_result(result)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /api/reports?buildingId=<id> for reports."}
