"""Tests for the HTTP endpoints with the storage layer mocked out."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from src.cycles.records import CycleRecord, PreferencesError, UserPreferences
from src.cycles.tests.conftest import TEST_USER_ID, make_record
from src.main import create_app

HEADERS = {"X-User-Id": str(TEST_USER_ID)}
STORE = "src.services.cycle_store"


def make_row(record: CycleRecord, cycle_id: UUID | None = None) -> dict:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    return {
        "cycle_id": cycle_id or uuid4(),
        "user_id": TEST_USER_ID,
        "start_date": record.start_date,
        "end_date": record.end_date,
        "period_length": record.period_length,
        "cycle_length": record.cycle_length,
        "flow": record.flow.value if record.flow else None,
        "symptoms": sorted(record.symptoms),
        "notes": record.notes,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def snapshot():
    """Patch the store with two records and default preferences."""
    records = [make_record(date(2024, 1, 29)), make_record(date(2024, 1, 1))]
    with patch(f"{STORE}.fetch_cycles", AsyncMock(return_value=records)), patch(
        f"{STORE}.fetch_preferences", AsyncMock(return_value=UserPreferences())
    ):
        yield records


class TestAuth:
    def test_missing_user_header_is_401(self, client: TestClient) -> None:
        assert client.get("/api/v1/cycles").status_code == 401

    def test_malformed_user_header_is_401(self, client: TestClient) -> None:
        response = client.get("/api/v1/cycles", headers={"X-User-Id": "nobody"})
        assert response.status_code == 401


class TestInsights:
    def test_predictions(self, client: TestClient, snapshot) -> None:
        response = client.get(
            "/api/v1/cycles/insights/predictions", params={"periods": 1}, headers=HEADERS
        )
        assert response.status_code == 200
        body = response.json()
        assert body["avg_cycle_length"] == 28
        assert body["predictions"][0]["start_date"] == "2024-02-26"
        assert body["predictions"][0]["ovulation_date"] == "2024-03-11"
        assert body["predictions"][0]["confidence"] == 67

    def test_predictions_without_records(self, client: TestClient) -> None:
        with patch(f"{STORE}.fetch_cycles", AsyncMock(return_value=[])), patch(
            f"{STORE}.fetch_preferences", AsyncMock(return_value=UserPreferences())
        ):
            response = client.get("/api/v1/cycles/insights/predictions", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["predictions"] == []

    def test_late_status(self, client: TestClient, snapshot) -> None:
        response = client.get(
            "/api/v1/cycles/insights/late-status",
            params={"as_of": "2024-03-01"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        status = response.json()["status"]
        assert status["is_late"] is True
        assert status["days_late"] == 4
        assert status["expected_date"] == "2024-02-26"

    def test_conception_plan(self, client: TestClient, snapshot) -> None:
        response = client.get(
            "/api/v1/cycles/insights/conception-plan",
            params={"month": 6, "year": 2025, "as_of": "2024-06-01"},
            headers=HEADERS,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["insufficient_data"] is False
        assert body["plan"]["optimal_conception_date"] == "2024-09-08"

    def test_conception_plan_insufficient_data(self, client: TestClient) -> None:
        with patch(f"{STORE}.fetch_cycles", AsyncMock(return_value=[])), patch(
            f"{STORE}.fetch_preferences", AsyncMock(return_value=UserPreferences())
        ):
            response = client.get(
                "/api/v1/cycles/insights/conception-plan",
                params={"month": 6, "year": 2025},
                headers=HEADERS,
            )
        assert response.status_code == 200
        assert response.json() == {"insufficient_data": True, "plan": None}

    def test_conception_plan_rejects_bad_month(self, client: TestClient, snapshot) -> None:
        response = client.get(
            "/api/v1/cycles/insights/conception-plan",
            params={"month": 13, "year": 2025},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_summary(self, client: TestClient, snapshot) -> None:
        response = client.get("/api/v1/cycles/insights/summary", headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["total_cycles"] == 2
        assert body["cycle_lengths"] == [28]

    def test_bad_stored_preferences_are_422(self, client: TestClient) -> None:
        with patch(f"{STORE}.fetch_cycles", AsyncMock(return_value=[])), patch(
            f"{STORE}.fetch_preferences",
            AsyncMock(side_effect=PreferencesError("typical_cycle_length out of range")),
        ):
            response = client.get("/api/v1/cycles/insights/summary", headers=HEADERS)
        assert response.status_code == 422


@pytest.fixture
def typical_lengths():
    """Patch stored preferences to a 30-day cycle with 4-day periods."""
    prefs = UserPreferences(typical_cycle_length=30, typical_period_length=4)
    with patch(f"{STORE}.fetch_preferences", AsyncMock(return_value=prefs)):
        yield prefs


class TestCrud:
    def test_create_cycle(self, client: TestClient, typical_lengths) -> None:
        insert = AsyncMock(side_effect=lambda user_id, record: make_row(record))
        with patch(f"{STORE}.insert_cycle", insert):
            response = client.post(
                "/api/v1/cycles",
                json={"start_date": "2024-06-01", "period_length": 5, "flow": "medium"},
                headers=HEADERS,
            )
        assert response.status_code == 201
        user_id, record = insert.await_args.args
        assert user_id == TEST_USER_ID
        assert record.start_date == date(2024, 6, 1)
        assert record.period_length == 5
        assert record.end_date == date(2024, 6, 5)

    def test_create_with_end_date_derives_period_length(
        self, client: TestClient, typical_lengths
    ) -> None:
        insert = AsyncMock(side_effect=lambda user_id, record: make_row(record))
        with patch(f"{STORE}.insert_cycle", insert):
            response = client.post(
                "/api/v1/cycles",
                json={"start_date": "2024-06-01", "end_date": "2024-06-08"},
                headers=HEADERS,
            )
        assert response.status_code == 201
        _, record = insert.await_args.args
        assert record.period_length == 8
        assert record.cycle_length == 30
        assert response.json()["period_length"] == 8

    def test_create_without_end_date_uses_typical_length(
        self, client: TestClient, typical_lengths
    ) -> None:
        insert = AsyncMock(side_effect=lambda user_id, record: make_row(record))
        with patch(f"{STORE}.insert_cycle", insert):
            response = client.post(
                "/api/v1/cycles", json={"start_date": "2024-06-01"}, headers=HEADERS
            )
        assert response.status_code == 201
        body = response.json()
        assert body["end_date"] == "2024-06-04"
        assert body["period_length"] == 4
        assert body["cycle_length"] == 30

    def test_create_rejects_end_before_start(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/cycles",
            json={"start_date": "2024-06-05", "end_date": "2024-06-01"},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_quick_start(self, client: TestClient, snapshot) -> None:
        insert = AsyncMock(side_effect=lambda user_id, record: make_row(record))
        with patch(f"{STORE}.insert_cycle", insert):
            response = client.post(
                "/api/v1/cycles/quick-start", params={"as_of": "2024-06-01"}, headers=HEADERS
            )
        assert response.status_code == 201
        body = response.json()
        assert body["start_date"] == "2024-06-01"
        assert body["end_date"] == "2024-06-05"
        assert body["flow"] == "medium"

    def test_update_end_date_recomputes_period_length(
        self, client: TestClient, typical_lengths
    ) -> None:
        cycle_id = uuid4()
        stored = CycleRecord(
            start_date=date(2024, 6, 1), end_date=date(2024, 6, 5), period_length=5
        )
        update = AsyncMock(side_effect=lambda user_id, cid, record: make_row(record, cid))
        with patch(
            f"{STORE}.fetch_cycle_row", AsyncMock(return_value=make_row(stored, cycle_id))
        ), patch(f"{STORE}.update_cycle", update):
            response = client.patch(
                f"/api/v1/cycles/{cycle_id}", json={"end_date": "2024-06-07"}, headers=HEADERS
            )
        assert response.status_code == 200
        _, _, record = update.await_args.args
        assert record.end_date == date(2024, 6, 7)
        assert record.period_length == 7
        assert response.json()["period_length"] == 7

    def test_clearing_end_date_falls_back_to_typical_length(
        self, client: TestClient, typical_lengths
    ) -> None:
        cycle_id = uuid4()
        stored = CycleRecord(
            start_date=date(2024, 6, 1), end_date=date(2024, 6, 8), period_length=8
        )
        update = AsyncMock(side_effect=lambda user_id, cid, record: make_row(record, cid))
        with patch(
            f"{STORE}.fetch_cycle_row", AsyncMock(return_value=make_row(stored, cycle_id))
        ), patch(f"{STORE}.update_cycle", update):
            response = client.patch(
                f"/api/v1/cycles/{cycle_id}", json={"end_date": None}, headers=HEADERS
            )
        assert response.status_code == 200
        assert response.json()["period_length"] == 4
        assert response.json()["end_date"] == "2024-06-04"

    def test_update_merges_existing_row(self, client: TestClient, typical_lengths) -> None:
        cycle_id = uuid4()
        existing = make_row(make_record(date(2024, 6, 1)), cycle_id)
        update = AsyncMock(side_effect=lambda user_id, cid, record: make_row(record, cid))
        with patch(f"{STORE}.fetch_cycle_row", AsyncMock(return_value=existing)), patch(
            f"{STORE}.update_cycle", update
        ):
            response = client.patch(
                f"/api/v1/cycles/{cycle_id}", json={"notes": "heavy day two"}, headers=HEADERS
            )
        assert response.status_code == 200
        assert response.json()["notes"] == "heavy day two"
        assert response.json()["start_date"] == "2024-06-01"

    def test_update_rejects_invalid_merge(self, client: TestClient, typical_lengths) -> None:
        cycle_id = uuid4()
        existing = make_row(make_record(date(2024, 6, 1)), cycle_id)
        with patch(f"{STORE}.fetch_cycle_row", AsyncMock(return_value=existing)):
            response = client.patch(
                f"/api/v1/cycles/{cycle_id}", json={"end_date": "2024-05-01"}, headers=HEADERS
            )
        assert response.status_code == 422

    def test_update_without_fields_is_400(self, client: TestClient) -> None:
        response = client.patch(f"/api/v1/cycles/{uuid4()}", json={}, headers=HEADERS)
        assert response.status_code == 400

    def test_update_missing_cycle_is_404(self, client: TestClient) -> None:
        with patch(f"{STORE}.fetch_cycle_row", AsyncMock(return_value=None)):
            response = client.patch(
                f"/api/v1/cycles/{uuid4()}", json={"notes": "x"}, headers=HEADERS
            )
        assert response.status_code == 404

    def test_delete_missing_cycle_is_404(self, client: TestClient) -> None:
        with patch(f"{STORE}.delete_cycle", AsyncMock(return_value=False)):
            response = client.delete(f"/api/v1/cycles/{uuid4()}", headers=HEADERS)
        assert response.status_code == 404

    def test_delete_cycle(self, client: TestClient) -> None:
        with patch(f"{STORE}.delete_cycle", AsyncMock(return_value=True)):
            response = client.delete(f"/api/v1/cycles/{uuid4()}", headers=HEADERS)
        assert response.status_code == 204


class TestHealth:
    def test_health_without_database_is_degraded(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["database"] == "unreachable"

    def test_health_reports_engine_config_version(self, client: TestClient) -> None:
        assert client.get("/health").json()["engine_config"] == "1.0"

    def test_health_with_database_and_tables(self, client: TestClient) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = True
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        with patch("src.routers.health.get_pool", return_value=pool):
            body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    def test_health_with_missing_tables_is_degraded(self, client: TestClient) -> None:
        conn = AsyncMock()
        conn.fetchval.return_value = False
        pool = MagicMock()
        pool.acquire.return_value.__aenter__.return_value = conn
        with patch("src.routers.health.get_pool", return_value=pool):
            body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["database"] == "schema_missing"


class TestPreferences:
    def test_get_defaults(self, client: TestClient) -> None:
        with patch(f"{STORE}.fetch_preferences", AsyncMock(return_value=UserPreferences())):
            response = client.get("/api/v1/preferences", headers=HEADERS)
        assert response.status_code == 200
        assert response.json() == {"typical_cycle_length": 28, "typical_period_length": 5}

    def test_get_bad_stored_values_is_422(self, client: TestClient) -> None:
        with patch(
            f"{STORE}.fetch_preferences",
            AsyncMock(side_effect=PreferencesError("typical_cycle_length out of range")),
        ):
            response = client.get("/api/v1/preferences", headers=HEADERS)
        assert response.status_code == 422

    def test_put_stores_new_lengths(self, client: TestClient) -> None:
        upsert = AsyncMock(side_effect=lambda user_id, prefs: prefs)
        with patch(f"{STORE}.upsert_preferences", upsert):
            response = client.put(
                "/api/v1/preferences",
                json={"typical_cycle_length": 32, "typical_period_length": 6},
                headers=HEADERS,
            )
        assert response.status_code == 200
        assert response.json() == {"typical_cycle_length": 32, "typical_period_length": 6}
        user_id, prefs = upsert.await_args.args
        assert user_id == TEST_USER_ID
        assert prefs == UserPreferences(typical_cycle_length=32, typical_period_length=6)

    @pytest.mark.parametrize(
        "body",
        [
            {"typical_cycle_length": 14, "typical_period_length": 5},
            {"typical_cycle_length": 46, "typical_period_length": 5},
            {"typical_cycle_length": 28, "typical_period_length": 11},
        ],
    )
    def test_put_out_of_range_is_422(self, client: TestClient, body: dict) -> None:
        upsert = AsyncMock()
        with patch(f"{STORE}.upsert_preferences", upsert):
            response = client.put("/api/v1/preferences", json=body, headers=HEADERS)
        assert response.status_code == 422
        upsert.assert_not_awaited()

    def test_requires_user(self, client: TestClient) -> None:
        assert client.get("/api/v1/preferences").status_code == 401
