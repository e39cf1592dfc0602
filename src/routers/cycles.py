"""Endpoints for logged periods and cycle insights (predictions, late check,
conception planning, analytics summary)."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from src.cycles import (
    ConceptionPlanner,
    CycleDataError,
    CycleRecord,
    CycleStatisticsEstimator,
    LatePeriodMonitor,
    PeriodPredictor,
    PlanningError,
    PreferencesError,
    quick_start_record,
    with_logged_lengths,
)
from src.dependencies import CurrentUser
from src.models.cycles import (
    ConceptionPlanRead,
    ConceptionPlanResponse,
    CycleCreate,
    CycleRead,
    CycleSummaryRead,
    CycleUpdate,
    LateStatusRead,
    LateStatusResponse,
    PredictionRead,
    PredictionsResponse,
)
from src.services import cycle_store

router = APIRouter(prefix="/cycles", tags=["cycles"])
logger = logging.getLogger("fertility.routers.cycles")


async def _load_snapshot(user_id: uuid.UUID):
    """Fetch records + preferences, mapping bad stored data to 422."""
    try:
        records = await cycle_store.fetch_cycles(user_id)
        preferences = await cycle_store.fetch_preferences(user_id)
    except (CycleDataError, PreferencesError) as exc:
        logger.warning("Unusable cycle data for user %s: %s", user_id, exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return records, preferences


async def _load_preferences(user_id: uuid.UUID):
    try:
        return await cycle_store.fetch_preferences(user_id)
    except PreferencesError as exc:
        logger.warning("Unusable preferences for user %s: %s", user_id, exc)
        raise HTTPException(status_code=422, detail=str(exc))


def _to_record(data: dict) -> CycleRecord:
    try:
        return CycleRecord.from_mapping(data)
    except CycleDataError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


# ---------- Insights ----------

@router.get("/insights/predictions", response_model=PredictionsResponse)
async def get_predictions(
    user: CurrentUser,
    periods: int | None = Query(default=None, ge=0, le=24),
) -> Any:
    records, preferences = await _load_snapshot(user.user_id)
    if not records:
        return PredictionsResponse()

    stats = CycleStatisticsEstimator().estimate(records, preferences)
    predictions = PeriodPredictor().predict(records, preferences, number_of_periods=periods)
    return PredictionsResponse(
        avg_cycle_length=stats.avg_cycle_length,
        avg_period_length=stats.avg_period_length,
        predictions=[PredictionRead.model_validate(p) for p in predictions],
    )


@router.get("/insights/late-status", response_model=LateStatusResponse)
async def get_late_status(
    user: CurrentUser,
    as_of: date | None = Query(default=None),
) -> Any:
    records, preferences = await _load_snapshot(user.user_id)
    status = LatePeriodMonitor().check(records, as_of or date.today(), preferences)
    if status is None:
        return LateStatusResponse()
    return LateStatusResponse(status=LateStatusRead.model_validate(status))


@router.get("/insights/conception-plan", response_model=ConceptionPlanResponse)
async def get_conception_plan(
    user: CurrentUser,
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900, le=9999),
    as_of: date | None = Query(default=None),
) -> Any:
    records, preferences = await _load_snapshot(user.user_id)
    try:
        plan = ConceptionPlanner().plan(
            records, month, year, as_of or date.today(), preferences
        )
    except (CycleDataError, PlanningError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    if plan is None:
        return ConceptionPlanResponse(insufficient_data=True)
    return ConceptionPlanResponse(plan=ConceptionPlanRead.model_validate(plan))


@router.get("/insights/summary", response_model=CycleSummaryRead)
async def get_summary(user: CurrentUser) -> Any:
    records, _ = await _load_snapshot(user.user_id)
    summary = CycleStatisticsEstimator().summarize(records)
    return CycleSummaryRead.model_validate(summary)


# ---------- Logged periods ----------

@router.get("", response_model=list[CycleRead])
async def list_cycles(user: CurrentUser) -> Any:
    return await cycle_store.fetch_cycle_rows(user.user_id)


@router.post("", response_model=CycleRead, status_code=201)
async def create_cycle(user: CurrentUser, body: CycleCreate) -> Any:
    record = _to_record(body.model_dump())
    preferences = await _load_preferences(user.user_id)
    record = with_logged_lengths(record, preferences, new=True)
    return await cycle_store.insert_cycle(user.user_id, record)


@router.post("/quick-start", response_model=CycleRead, status_code=201)
async def quick_start(
    user: CurrentUser,
    as_of: date | None = Query(default=None),
) -> Any:
    """Log a period starting today with the user's typical lengths."""
    _, preferences = await _load_snapshot(user.user_id)
    record = quick_start_record(preferences, as_of or date.today())
    return await cycle_store.insert_cycle(user.user_id, record)


@router.get("/{cycle_id}", response_model=CycleRead)
async def get_cycle(cycle_id: uuid.UUID, user: CurrentUser) -> Any:
    row = await cycle_store.fetch_cycle_row(user.user_id, cycle_id)
    if not row:
        raise HTTPException(status_code=404, detail="Cycle not found")
    return row


@router.patch("/{cycle_id}", response_model=CycleRead)
async def update_cycle(cycle_id: uuid.UUID, user: CurrentUser, body: CycleUpdate) -> Any:
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    existing = await cycle_store.fetch_cycle_row(user.user_id, cycle_id)
    if not existing:
        raise HTTPException(status_code=404, detail="Cycle not found")

    merged = {**existing, **updates}
    if "end_date" in updates and updates["end_date"] is None and "period_length" not in updates:
        # Cleared end date: fall back to the typical period length
        merged["period_length"] = None
    record = _to_record(merged)
    preferences = await _load_preferences(user.user_id)
    record = with_logged_lengths(record, preferences)
    row = await cycle_store.update_cycle(user.user_id, cycle_id, record)
    if not row:
        raise HTTPException(status_code=404, detail="Cycle not found")
    return row


@router.delete("/{cycle_id}", status_code=204)
async def delete_cycle(cycle_id: uuid.UUID, user: CurrentUser) -> None:
    if not await cycle_store.delete_cycle(user.user_id, cycle_id):
        raise HTTPException(status_code=404, detail="Cycle not found")
