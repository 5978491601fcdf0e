#!/usr/bin/env python3
"""
Router tests for the replenishment and health endpoints.

The application lifespan is not entered, so no database, Redis or
scheduler is touched; services are replaced through dependency overrides.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from commerce.dependencies import (
    get_async_database,
    get_replenishment_scheduler,
    get_replenishment_service,
)
from commerce.enums import RejectionReason, ReplenishmentStatus
from commerce.exceptions import (
    CustomerNotFoundError,
    InvalidScheduleError,
    InvalidStateTransitionError,
    ReplenishmentNotFoundError,
    SchedulingFailureError,
)
from commerce.main import app
from commerce.models.replenishment_model import ReplenishmentList

BODY = {
    "order_template": {
        "order_items": [{"product_id": 7, "quantity": 2}],
        "payment_method": "card",
        "shipping_country": "Germany",
    },
    "interval": 2,
    "unit": "week",
}


@pytest.fixture
def scheduler():
    scheduler = MagicMock()
    scheduler.create_replenishment = AsyncMock()
    scheduler.update_replenishment = AsyncMock()
    scheduler.toggle_cancel_status = AsyncMock()
    scheduler.remove_replenishment = AsyncMock()
    return scheduler


@pytest.fixture
def service():
    service = MagicMock()
    service.get_customer_replenishments = AsyncMock(
        return_value=ReplenishmentList(total=0, replenishments=[])
    )
    service.get_replenishment_by_id = AsyncMock()
    service.get_all_replenishments = AsyncMock(
        return_value=ReplenishmentList(total=0, replenishments=[])
    )
    return service


@pytest.fixture
def database():
    database = MagicMock()
    database.health_check = AsyncMock(return_value={"status": "healthy"})
    database.get_pool_stats = AsyncMock(return_value={"status": "healthy", "pool_stats": {}})
    return database


@pytest.fixture
def client(scheduler, service, database):
    app.dependency_overrides[get_replenishment_scheduler] = lambda: scheduler
    app.dependency_overrides[get_replenishment_service] = lambda: service
    app.dependency_overrides[get_async_database] = lambda: database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.mark.unit
class TestCreateReplenishment:
    def test_created(self, client, scheduler, make_replenishment):
        scheduler.create_replenishment.return_value = make_replenishment()

        response = client.post("/api/customers/42/replenishments", json=BODY)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "scheduled"
        assert "scheduler_id" not in data
        assert "next_job_id" not in data
        args, kwargs = scheduler.create_replenishment.await_args
        assert args[0] == 42
        assert args[2:] == (2, "week")
        assert kwargs == {"trial_start": None, "expiry": None, "max_times": None}

    def test_unknown_customer(self, client, scheduler):
        scheduler.create_replenishment.side_effect = CustomerNotFoundError()

        response = client.post("/api/customers/42/replenishments", json=BODY)

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["type"] == "CustomerNotFoundError"
        assert error["correlation_id"]

    def test_invalid_schedule(self, client, scheduler):
        scheduler.create_replenishment.side_effect = InvalidScheduleError(
            "Start date cannot be in the past"
        )

        response = client.post("/api/customers/42/replenishments", json=BODY)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Start date cannot be in the past"

    def test_queue_failure(self, client, scheduler):
        scheduler.create_replenishment.side_effect = SchedulingFailureError()

        assert client.post("/api/customers/42/replenishments", json=BODY).status_code == 503

    @pytest.mark.parametrize(
        "patch",
        [
            {"interval": 0},
            {"unit": "fortnight"},
            {"times": 0},
            {"starting": "2026-04-10T00:00:00Z", "expiry": "2026-04-01T00:00:00Z"},
        ],
    )
    def test_request_validation(self, client, scheduler, patch):
        response = client.post("/api/customers/42/replenishments", json={**BODY, **patch})

        assert response.status_code == 422
        scheduler.create_replenishment.assert_not_awaited()


@pytest.mark.unit
class TestUpdateReplenishment:
    def test_updated(self, client, scheduler, make_replenishment):
        scheduler.update_replenishment.return_value = make_replenishment(
            start_date="2026-04-01T00:00:00Z"
        )

        response = client.put(
            "/api/customers/42/replenishments/1",
            json={**BODY, "starting": "2026-04-01T00:00:00Z", "times": 3},
        )

        assert response.status_code == 200
        kwargs = scheduler.update_replenishment.await_args.kwargs
        assert kwargs["new_start_date"].isoformat() == "2026-04-01T00:00:00+00:00"
        assert kwargs["times"] == 3

    def test_rejected_transition(self, client, scheduler):
        scheduler.update_replenishment.side_effect = InvalidStateTransitionError(
            RejectionReason.FINISHED_IMMUTABLE
        )

        response = client.put("/api/customers/42/replenishments/1", json=BODY)

        assert response.status_code == 409
        assert response.json()["error"]["reason"] == "finished_immutable"

    def test_missing_replenishment(self, client, scheduler):
        scheduler.update_replenishment.side_effect = ReplenishmentNotFoundError()

        assert client.put("/api/customers/42/replenishments/9", json=BODY).status_code == 404


@pytest.mark.unit
class TestCancelAndRemove:
    def test_toggle_cancel(self, client, scheduler):
        response = client.patch("/api/customers/42/replenishments/1/cancel")

        assert response.status_code == 204
        scheduler.toggle_cancel_status.assert_awaited_once_with(42, 1)

    def test_toggle_finished_conflicts(self, client, scheduler):
        scheduler.toggle_cancel_status.side_effect = InvalidStateTransitionError(
            RejectionReason.CANNOT_CANCEL_FINISHED
        )

        assert client.patch("/api/customers/42/replenishments/1/cancel").status_code == 409

    def test_remove(self, client, scheduler):
        response = client.delete("/api/customers/42/replenishments/1")

        assert response.status_code == 204
        scheduler.remove_replenishment.assert_awaited_once_with(42, 1)


@pytest.mark.unit
class TestReadEndpoints:
    def test_customer_listing(self, client, service):
        response = client.get("/api/customers/42/replenishments")

        assert response.status_code == 200
        assert response.json() == {"total": 0, "replenishments": []}
        service.get_customer_replenishments.assert_awaited_once_with(42)

    def test_admin_filters(self, client, service):
        response = client.get("/api/replenishments?status=active&unit=day&customer_id=3")

        assert response.status_code == 200
        filters = service.get_all_replenishments.await_args.args[0]
        assert filters.status == ReplenishmentStatus.ACTIVE
        assert filters.customer_id == 3

    def test_invalid_user_id(self, client):
        assert client.get("/api/customers/0/replenishments").status_code == 422


@pytest.mark.unit
class TestHealth:
    def test_healthy(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["scheduler_running"] is False
        assert response.json()["pool"]["status"] == "healthy"

    def test_database_down(self, client, database):
        database.health_check.return_value = {"status": "unhealthy", "error": "timeout"}

        assert client.get("/api/health").status_code == 503
