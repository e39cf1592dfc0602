"""Endpoints for the user's typical cycle and period lengths."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from src.cycles import PreferencesError, UserPreferences
from src.dependencies import CurrentUser
from src.models.cycles import PreferencesRead
from src.services import cycle_store

router = APIRouter(prefix="/preferences", tags=["preferences"])
logger = logging.getLogger("fertility.routers.preferences")


@router.get("", response_model=PreferencesRead)
async def get_preferences(user: CurrentUser) -> Any:
    try:
        preferences = await cycle_store.fetch_preferences(user.user_id)
    except PreferencesError as exc:
        logger.warning("Stored preferences unusable for user %s: %s", user.user_id, exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return PreferencesRead.model_validate(preferences)


@router.put("", response_model=PreferencesRead)
async def put_preferences(user: CurrentUser, body: PreferencesRead) -> Any:
    try:
        preferences = UserPreferences(
            typical_cycle_length=body.typical_cycle_length,
            typical_period_length=body.typical_period_length,
        )
    except PreferencesError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    stored = await cycle_store.upsert_preferences(user.user_id, preferences)
    return PreferencesRead.model_validate(stored)
