"""Storage for logged periods and user preferences.

The engine never talks to the database; routes fetch a newest-first
snapshot here and hand it over.  Rows are returned as plain dicts for the
API layer, or converted to ``CycleRecord`` via ``fetch_cycles``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from src.cycles.config_loader import get_cycle_config
from src.cycles.records import CycleRecord, UserPreferences, sort_newest_first
from src.services.database import fetch, fetchrow, get_connection

logger = logging.getLogger("fertility.cycle_store")


def _record_params(record: CycleRecord) -> tuple[Any, ...]:
    return (
        record.start_date,
        record.end_date,
        record.period_length,
        record.cycle_length,
        record.flow.value if record.flow else None,
        sorted(record.symptoms),
        record.notes,
    )


async def fetch_cycle_rows(user_id: uuid.UUID) -> list[dict]:
    rows = await fetch(
        "SELECT * FROM cycles WHERE user_id = $1 ORDER BY start_date DESC",
        user_id,
        user_id=user_id,
    )
    return [dict(r) for r in rows]


async def fetch_cycle_row(user_id: uuid.UUID, cycle_id: uuid.UUID) -> dict | None:
    row = await fetchrow(
        "SELECT * FROM cycles WHERE cycle_id = $1 AND user_id = $2",
        cycle_id,
        user_id,
        user_id=user_id,
    )
    return dict(row) if row else None


async def fetch_cycles(user_id: uuid.UUID) -> list[CycleRecord]:
    """All of a user's records as engine input, newest first."""
    rows = await fetch_cycle_rows(user_id)
    return sort_newest_first(CycleRecord.from_mapping(r) for r in rows)


async def fetch_preferences(user_id: uuid.UUID) -> UserPreferences:
    """The user's typical lengths, or configured defaults if never set."""
    row = await fetchrow(
        "SELECT typical_cycle_length, typical_period_length "
        "FROM user_preferences WHERE user_id = $1",
        user_id,
        user_id=user_id,
    )
    config = get_cycle_config()
    if not row:
        logger.debug("No preferences stored for user %s; using defaults", user_id)
        return UserPreferences(
            typical_cycle_length=config.default_cycle_length,
            typical_period_length=config.default_period_length,
        )
    return UserPreferences(
        typical_cycle_length=row["typical_cycle_length"] or config.default_cycle_length,
        typical_period_length=row["typical_period_length"] or config.default_period_length,
    )


async def upsert_preferences(
    user_id: uuid.UUID, preferences: UserPreferences
) -> UserPreferences:
    """Store the user's typical lengths, replacing any previous values."""
    row = await fetchrow(
        """
        INSERT INTO user_preferences (
            user_id, typical_cycle_length, typical_period_length
        ) VALUES ($1, $2, $3)
        ON CONFLICT (user_id) DO UPDATE SET
            typical_cycle_length = EXCLUDED.typical_cycle_length,
            typical_period_length = EXCLUDED.typical_period_length
        RETURNING typical_cycle_length, typical_period_length
        """,
        user_id,
        preferences.typical_cycle_length,
        preferences.typical_period_length,
        user_id=user_id,
    )
    logger.info(
        "Preferences for user %s set to cycle=%s period=%s",
        user_id,
        row["typical_cycle_length"],
        row["typical_period_length"],
    )
    return UserPreferences(
        typical_cycle_length=row["typical_cycle_length"],
        typical_period_length=row["typical_period_length"],
    )


async def insert_cycle(user_id: uuid.UUID, record: CycleRecord) -> dict:
    row = await fetchrow(
        """
        INSERT INTO cycles (
            cycle_id, user_id, start_date, end_date, period_length,
            cycle_length, flow, symptoms, notes
        ) VALUES (gen_random_uuid(), $1, $2, $3, $4, $5, $6, $7, $8)
        RETURNING *
        """,
        user_id,
        *_record_params(record),
        user_id=user_id,
    )
    logger.info("Logged period starting %s for user %s", record.start_date, user_id)
    return dict(row)


async def update_cycle(
    user_id: uuid.UUID, cycle_id: uuid.UUID, record: CycleRecord
) -> dict | None:
    """Overwrite a stored record with an already-validated one."""
    row = await fetchrow(
        """
        UPDATE cycles SET
            start_date = $3, end_date = $4, period_length = $5, cycle_length = $6,
            flow = $7, symptoms = $8, notes = $9, updated_at = NOW()
        WHERE user_id = $1 AND cycle_id = $2
        RETURNING *
        """,
        user_id,
        cycle_id,
        *_record_params(record),
        user_id=user_id,
    )
    return dict(row) if row else None


async def delete_cycle(user_id: uuid.UUID, cycle_id: uuid.UUID) -> bool:
    async with get_connection(user_id=user_id) as conn:
        result = await conn.execute(
            "DELETE FROM cycles WHERE cycle_id = $1 AND user_id = $2",
            cycle_id,
            user_id,
        )
    return result != "DELETE 0"
