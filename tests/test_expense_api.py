from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from camledger.controllers.auth_controller import router as auth_router
from camledger.controllers.expense_controller import router as expense_router
from camledger.repository.data_repository import DataRepository
from camledger.services.allocation_service import CamAllocationService
from camledger.services.auth_service import AuthService
from camledger.services.expense_service import ExpenseLifecycleService
from camledger.utils.config import get_settings


ADMIN_TOKEN = "secret-admin-token"
JANUARY = {"period_start": "2025-01-01", "period_end": "2025-01-31"}


def _build_test_settings(tmp_path, filename: str, admin_token):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        seed_demo_data=False,
        admin_token=admin_token,
    )


def _build_test_app(tmp_path, admin_token=ADMIN_TOKEN) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, "expense_api.db", admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()

    repository.create_building("Junction City Mall", 10000.0, 300000.0, 200000.0, building_id=7)
    leased = repository.create_unit(7, "G-01", 4000.0)
    repository.create_contract(leased, "Golden Bakery")
    repository.create_unit(7, "G-02", 6000.0)
    repository.create_building("Empty Tower", 1000.0, 10.0, 10.0, building_id=9)

    def today_provider() -> date:
        return date(2025, 6, 1)

    allocation_service = CamAllocationService(
        repository=repository,
        settings=settings,
        today_provider=today_provider,
    )
    expense_service = ExpenseLifecycleService(
        repository=repository,
        settings=settings,
        allocation_service=allocation_service,
        today_provider=today_provider,
    )

    app = FastAPI()
    app.include_router(auth_router)
    app.include_router(expense_router)
    app.state.repository = repository
    app.state.allocation_service = allocation_service
    app.state.expense_service = expense_service
    app.state.auth_service = AuthService(settings=settings)
    return app, repository


def _login(client: TestClient) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": ADMIN_TOKEN})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _allocation_body(building_id: int = 7, **overrides) -> dict:
    body = {"building_id": building_id, "other_cam_costs": 150000.0, **JANUARY}
    body.update(overrides)
    return body


def test_calculate_returns_rounded_summary_without_persisting(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/cam/calculate", json=_allocation_body())

    assert response.status_code == 200
    payload = response.json()
    assert payload["building_name"] == "Junction City Mall"
    assert payload["occupied_percentage"] == 40.0
    assert payload["vacant_percentage"] == 60.0
    assert payload["total_cam_costs"] == 650000.0
    assert payload["tenants_cam"] == 260000.0
    assert payload["owner_cam"] == 390000.0
    assert [unit["tenant_name"] for unit in payload["unit_breakdown"]] == [
        "Golden Bakery",
        "Vacant",
    ]
    assert payload["unit_breakdown"][0]["cam_share"] == 260000.0
    assert repository.count_expense_records() == 0


@pytest.mark.parametrize(
    ("body", "status_code", "kind"),
    [
        (_allocation_body(period_start="2025-01-31", period_end="2025-01-01"), 400, "InvalidPeriod"),
        (_allocation_body(period_start="2025-07-01", period_end="2025-07-31"), 400, "InvalidPeriod"),
        (_allocation_body(building_id=404), 404, "BuildingNotFound"),
        (_allocation_body(building_id=9), 422, "NoUnitsDefined"),
        (_allocation_body(other_cam_costs=-5.0), 400, "InvalidCostInput"),
    ],
)
def test_calculate_maps_domain_errors(tmp_path, body, status_code, kind):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/cam/calculate", json=body)

    assert response.status_code == status_code
    assert response.json()["detail"]["kind"] == kind


def test_calculate_rejects_repeated_unit_ids(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    unit = {"unit_id": 1, "unit_number": "G-01", "unit_space": 10.0, "is_occupied": True}

    response = client.post("/cam/calculate", json=_allocation_body(units=[unit, unit]))
    assert response.status_code == 422


def test_mutations_require_admin_session(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    unauth_create = client.post("/expenses", json=_allocation_body())
    assert unauth_create.status_code == 401
    assert unauth_create.json()["detail"]["kind"] == "Unauthorized"

    bad_bearer = client.post(
        "/expenses",
        json=_allocation_body(),
        headers={"Authorization": "Bearer not-a-session"},
    )
    assert bad_bearer.status_code == 401
    assert repository.count_expense_records() == 0


def test_login_rejects_invalid_admin_token(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    response = client.post("/login", json={"admin_token": "wrong-token"})
    assert response.status_code == 401


def test_logout_invalidates_session(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    headers = _login(client)

    assert client.post("/logout", headers=headers).status_code == 204
    assert client.post("/expenses", json=_allocation_body(), headers=headers).status_code == 401


def test_expense_end_to_end_flow(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)
    headers = _login(client)

    create_response = client.post("/expenses", json=_allocation_body(), headers=headers)
    assert create_response.status_code == 201
    record = create_response.json()
    expense_id = record["id"]
    assert record["status"] == "PENDING"
    assert record["total_amount"] == pytest.approx(390000.0)

    duplicate_response = client.post("/expenses", json=_allocation_body(), headers=headers)
    assert duplicate_response.status_code == 409
    assert duplicate_response.json()["detail"]["kind"] == "DuplicatePeriod"
    assert repository.count_expense_records() == 1

    check_response = client.get(
        "/expenses/check-duplicate",
        params={"building_id": 7, **JANUARY},
    )
    assert check_response.status_code == 200
    assert check_response.json() == {"exists": True}

    list_response = client.get("/expenses", params={"building_id": 7, "status": "PENDING"})
    assert list_response.status_code == 200
    assert [item["id"] for item in list_response.json()] == [expense_id]

    get_response = client.get(f"/expenses/{expense_id}")
    assert get_response.status_code == 200
    assert get_response.json()["description"] == (
        "Mall Owner CAM Expense for 2025-01-01 to 2025-01-31"
    )

    approve_response = client.patch(
        f"/expenses/{expense_id}/status",
        json={"status": "APPROVED"},
        headers=headers,
    )
    assert approve_response.status_code == 200
    assert approve_response.json()["status"] == "APPROVED"
    assert approve_response.json()["total_amount"] == record["total_amount"]

    unknown_status = client.patch(
        f"/expenses/{expense_id}/status",
        json={"status": "ARCHIVED"},
        headers=headers,
    )
    assert unknown_status.status_code == 422

    cancel_response = client.patch(
        f"/expenses/{expense_id}/status",
        json={"status": "CANCELLED"},
        headers=headers,
    )
    assert cancel_response.status_code == 200
    revive_response = client.patch(
        f"/expenses/{expense_id}/status",
        json={"status": "PENDING"},
        headers=headers,
    )
    assert revive_response.status_code == 409
    assert revive_response.json()["detail"]["kind"] == "InvalidStatusTransition"

    summary_response = client.get("/expenses/summary", params={"building_id": 7})
    assert summary_response.status_code == 200
    summary = summary_response.json()
    assert summary["total_expenses"] == 1
    assert summary["count_by_status"]["CANCELLED"] == 1
    assert summary["total_amount"] == 0.0

    csv_response = client.get("/expenses/export/csv")
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert "attachment" in csv_response.headers["content-disposition"]
    assert csv_response.text.splitlines()[0].startswith("Building,Period Start,Period End")

    delete_response = client.delete(f"/expenses/{expense_id}", headers=headers)
    assert delete_response.status_code == 204

    missing_response = client.get(f"/expenses/{expense_id}")
    assert missing_response.status_code == 404
    assert missing_response.json()["detail"]["kind"] == "NotFound"
    assert client.delete(f"/expenses/{expense_id}", headers=headers).status_code == 404

    events_response = client.get(f"/expenses/{expense_id}/events")
    assert events_response.status_code == 200
    assert [event["event_type"] for event in events_response.json()] == [
        "CREATED",
        "STATUS_CHANGED",
        "STATUS_CHANGED",
        "DELETED",
    ]


def test_unknown_expense_returns_not_found(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    headers = _login(client)

    assert client.get("/expenses/12345").status_code == 404
    assert client.get("/expenses/12345/events").status_code == 404
    patch_response = client.patch(
        "/expenses/12345/status",
        json={"status": "PAID"},
        headers=headers,
    )
    assert patch_response.status_code == 404


def test_open_mode_without_admin_token(tmp_path):
    app, repository = _build_test_app(tmp_path, admin_token=None)
    client = TestClient(app)

    response = client.post("/expenses", json=_allocation_body())
    assert response.status_code == 201
    assert repository.count_expense_records() == 1

    login_response = client.post("/login", json={"admin_token": "anything"})
    assert login_response.status_code == 401


def test_create_app_runs_startup_and_seeds_directory(tmp_path):
    from app import create_app

    settings = replace(
        _build_test_settings(tmp_path, "startup.db", None),
        seed_demo_data=True,
    )
    app = create_app(settings)

    with TestClient(app) as client:
        response = client.post("/cam/calculate", json=_allocation_body(building_id=1))
        assert response.status_code == 200
        payload = response.json()
        assert payload["building_name"] == "Junction City Mall"
        assert payload["unallocated_area"] == 1000.0
        assert payload["tenants_cam"] == 390000.0
        assert payload["owner_cam"] == 260000.0
        assert payload["occupied_units_count"] == 3
        assert payload["vacant_units_count"] == 1
