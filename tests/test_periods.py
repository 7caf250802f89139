from __future__ import annotations

from datetime import date

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from bilgeverse.db import get_engine, get_session
from bilgeverse.main import create_app
from bilgeverse.models.period import Period, PeriodStatus


def _login(client: TestClient, username: str, password: str) -> dict[str, str]:
    r = client.post(
        "/api/auth/login",
        data={"username": username, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _create_user(client: TestClient, admin: dict[str, str], username: str, role: str, **extra) -> dict:
    r = client.post(
        "/api/admin/users",
        headers=admin,
        json={"username": username, "password": "pass1234", "role": role, **extra},
    )
    assert r.status_code == 201
    return r.json()


def _create_period(client: TestClient, admin: dict[str, str], name: str, **extra) -> dict:
    r = client.post("/api/admin/periods", headers=admin, json={"name": name, "startDate": "2024-09-01", **extra})
    assert r.status_code == 201
    return r.json()["period"]


def _setup(tmp_path, monkeypatch, name: str):
    db_path = tmp_path / name
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass123")
    return create_app()


def test_create_and_list_periods(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_create.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")

        period = _create_period(client, admin, "2024-2025 Güz", description="Fall term")
        assert period["status"] == "INACTIVE"
        assert period["totalWeeks"] == 8
        assert period["counts"]["pointsTransactions"] == 0
        assert period["counts"]["weeklyReports"] == 0

        r = client.get("/api/admin/periods", headers=admin)
        assert r.status_code == 200
        periods = r.json()["periods"]
        assert [p["name"] for p in periods] == ["2024-2025 Güz"]
        assert all(v == 0 for v in periods[0]["counts"].values())

        r = client.get("/api/admin/periods", headers=admin, params={"status": "ACTIVE"})
        assert r.status_code == 200
        assert r.json()["periods"] == []

        r = client.get(f"/api/admin/periods/{period['id']}", headers=admin)
        assert r.status_code == 200
        assert r.json()["period"]["description"] == "Fall term"


def test_create_period_validation(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_validation.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")

        r = client.post("/api/admin/periods", headers=admin, json={"startDate": "2024-09-01"})
        assert r.status_code == 400
        assert r.json()["error"] == "Period name and start date are required"

        r = client.post(
            "/api/admin/periods",
            headers=admin,
            json={"name": "Bad dates", "startDate": "2024-09-01", "endDate": "2024-08-01"},
        )
        assert r.status_code == 400
        assert r.json()["error"] == "End date must be after start date"

        _create_period(client, admin, "Spring")
        r = client.post("/api/admin/periods", headers=admin, json={"name": "Spring", "startDate": "2025-02-01"})
        assert r.status_code == 400
        assert r.json()["error"] == "Period with this name already exists"

        r = client.post(
            "/api/admin/periods",
            headers=admin,
            json={"name": "Too long", "startDate": "2025-02-01", "totalWeeks": 60},
        )
        assert r.status_code == 400


def test_activation_keeps_single_active_period(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_activate.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        first = _create_period(client, admin, "First")
        second = _create_period(client, admin, "Second")

        r = client.get("/api/admin/periods/active", headers=admin)
        assert r.status_code == 404

        r = client.post(f"/api/admin/periods/{first['id']}/activate", headers=admin, json={"resetData": False})
        assert r.status_code == 200
        body = r.json()
        assert body["period"]["status"] == "ACTIVE"
        assert body["resetData"] is False

        r = client.post(f"/api/admin/periods/{first['id']}/activate", headers=admin, json={"resetData": False})
        assert r.status_code == 400
        assert r.json()["error"] == "Period is already active"

        r = client.post(f"/api/admin/periods/{second['id']}/activate", headers=admin, json={"resetData": False})
        assert r.status_code == 200

        r = client.get("/api/admin/periods", headers=admin)
        statuses = {p["name"]: p["status"] for p in r.json()["periods"]}
        assert statuses == {"First": "INACTIVE", "Second": "ACTIVE"}

        r = client.get("/api/admin/periods/active", headers=admin)
        assert r.status_code == 200
        assert r.json()["period"]["id"] == second["id"]

        r = client.post("/api/admin/periods/does-not-exist/activate", headers=admin, json={"resetData": False})
        assert r.status_code == 404


def test_activation_with_reset_zeroes_balances(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_reset.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        tutor = _create_user(client, admin, "rehber", "TUTOR")
        student = _create_user(client, admin, "ogrenci", "STUDENT", tutorId=tutor["id"])

        first = _create_period(client, admin, "2024-2025 Güz")
        r = client.post(f"/api/admin/periods/{first['id']}/activate", headers=admin)
        assert r.status_code == 200
        assert r.json()["resetData"] is True

        r = client.post("/api/points", headers=admin, json={"studentId": student["id"], "points": 15})
        assert r.status_code == 200
        assert r.json()["newBalance"] == 15

        # Activation without reset keeps balances.
        second = _create_period(client, admin, "2024-2025 Bahar")
        r = client.post(f"/api/admin/periods/{second['id']}/activate", headers=admin, json={"resetData": False})
        assert r.status_code == 200
        r = client.get(f"/api/admin/users/{student['id']}", headers=admin)
        assert r.json()["points"] == 15
        assert r.json()["experience"] == 15

        third = _create_period(client, admin, "2025 Yaz")
        r = client.post(f"/api/admin/periods/{third['id']}/activate", headers=admin, json={"resetData": True})
        assert r.status_code == 200
        assert r.json()["resetUsers"] == 1

        r = client.get("/api/admin/users", headers=admin)
        assert all(u["points"] == 0 and u["experience"] == 0 for u in r.json())

        # The ledger still sums to the stored totals.
        r = client.get("/api/points/transactions", headers=admin, params={"userId": student["id"]})
        txns = r.json()["transactions"]
        assert sum(t["amount"] for t in txns) == 0
        assert any(t["reason"] == "period_reset" and t["periodId"] == third["id"] for t in txns)

        r = client.post(f"/api/admin/users/{student['id']}/recompute-balance", headers=admin)
        assert r.status_code == 200
        assert r.json()["repaired"] is False

        r = client.get("/api/admin/audit-logs", headers=admin, params={"action": "period.activate"})
        assert r.status_code == 200
        assert len(r.json()) == 3


def test_update_period_status_and_settings(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_update.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        period = _create_period(client, admin, "Editable")

        r = client.put(f"/api/admin/periods/{period['id']}", headers=admin, json={"status": "ACTIVE"})
        assert r.status_code == 400

        r = client.put(
            f"/api/admin/periods/{period['id']}",
            headers=admin,
            json={"status": "ARCHIVED", "totalWeeks": 12, "description": "done"},
        )
        assert r.status_code == 200
        updated = r.json()["period"]
        assert updated["status"] == "ARCHIVED"
        assert updated["totalWeeks"] == 12
        assert updated["description"] == "done"

        r = client.put(f"/api/admin/periods/{period['id']}", headers=admin, json={"endDate": "2024-01-01"})
        assert r.status_code == 400

        r = client.put("/api/admin/periods/missing", headers=admin, json={"description": "x"})
        assert r.status_code == 404


def test_delete_period_refuses_dependents_unless_cascade(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_delete.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        student = _create_user(client, admin, "ogrenci", "STUDENT")

        empty = _create_period(client, admin, "Empty")
        r = client.delete(f"/api/admin/periods/{empty['id']}", headers=admin)
        assert r.status_code == 200
        assert r.json()["deleted"] is True

        used = _create_period(client, admin, "Used")
        client.post(f"/api/admin/periods/{used['id']}/activate", headers=admin, json={"resetData": False})
        r = client.post("/api/points", headers=admin, json={"studentId": student["id"], "points": 5})
        assert r.status_code == 200

        later = _create_period(client, admin, "Later")
        client.post(f"/api/admin/periods/{later['id']}/activate", headers=admin, json={"resetData": False})

        r = client.delete(f"/api/admin/periods/{used['id']}", headers=admin)
        assert r.status_code == 400
        assert "archive" in r.json()["error"]

        r = client.delete(f"/api/admin/periods/{used['id']}", headers=admin, params={"cascade": "true"})
        assert r.status_code == 200
        counts = r.json()["counts"]
        assert counts["pointsTransactions"] == 1
        assert counts["experienceTransactions"] == 1

        # Balances are rebuilt from what is left of the ledger.
        r = client.get(f"/api/admin/users/{student['id']}", headers=admin)
        assert r.json()["points"] == 0
        assert r.json()["experience"] == 0

        r = client.get(f"/api/admin/periods/{used['id']}", headers=admin)
        assert r.status_code == 404


def test_period_admin_endpoints_require_admin(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_perm.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        _create_user(client, admin, "rehber", "TUTOR")
        tutor = _login(client, "rehber", "pass1234")
        period = _create_period(client, admin, "Guarded")

        r = client.get("/api/admin/periods", headers=tutor)
        assert r.status_code == 403
        r = client.post(f"/api/admin/periods/{period['id']}/activate", headers=tutor)
        assert r.status_code == 403

        r = client.get("/api/admin/periods")
        assert r.status_code == 401

        client.post(f"/api/admin/periods/{period['id']}/activate", headers=admin, json={"resetData": False})
        r = client.get("/api/admin/periods/active", headers=tutor)
        assert r.status_code == 200
        assert r.json()["period"]["name"] == "Guarded"


def test_cascade_delete_after_reset_keeps_balances_at_zero(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_delete_reset.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        student = _create_user(client, admin, "ogrenci", "STUDENT")

        first = _create_period(client, admin, "A")
        client.post(f"/api/admin/periods/{first['id']}/activate", headers=admin, json={"resetData": False})
        r = client.post("/api/points", headers=admin, json={"studentId": student["id"], "points": 10})
        assert r.status_code == 200

        second = _create_period(client, admin, "B")
        r = client.post(f"/api/admin/periods/{second['id']}/activate", headers=admin, json={"resetData": True})
        assert r.status_code == 200

        r = client.delete(f"/api/admin/periods/{first['id']}", headers=admin, params={"cascade": "true"})
        assert r.status_code == 200

        r = client.get(f"/api/admin/users/{student['id']}", headers=admin)
        assert r.json()["points"] == 0
        assert r.json()["experience"] == 0

        for kind in ("points", "experience"):
            r = client.get(f"/api/{kind}/transactions", headers=admin, params={"userId": student["id"]})
            txns = r.json()["transactions"]
            assert sum(t["amount"] for t in txns) == 0
            assert {t["periodId"] for t in txns} == {second["id"]}
            assert any(t["reason"] == "period_delete" and t["amount"] == 10 for t in txns)

        r = client.post(f"/api/admin/users/{student['id']}/recompute-balance", headers=admin)
        assert r.json()["repaired"] is False


def test_total_weeks_cannot_drop_below_used_weeks(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_weeks.db")
    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        _create_user(client, admin, "rehber", "TUTOR")
        tutor = _login(client, "rehber", "pass1234")

        period = _create_period(client, admin, "Güz")
        client.post(f"/api/admin/periods/{period['id']}/activate", headers=admin, json={"resetData": False})
        r = client.post("/api/tutor/weekly-reports", headers=tutor, json={"weekNumber": 6})
        assert r.status_code == 201

        r = client.put(f"/api/admin/periods/{period['id']}", headers=admin, json={"totalWeeks": 5})
        assert r.status_code == 400
        assert "6" in r.json()["error"]

        r = client.get(f"/api/admin/periods/{period['id']}", headers=admin)
        assert r.json()["period"]["totalWeeks"] == 8

        r = client.put(f"/api/admin/periods/{period['id']}", headers=admin, json={"totalWeeks": 6})
        assert r.status_code == 200
        assert r.json()["period"]["totalWeeks"] == 6


def test_database_rejects_second_active_period(tmp_path, monkeypatch):
    app = _setup(tmp_path, monkeypatch, "test_periods_single_active.db")

    def _insert_active(session: Session = Depends(get_session)):
        session.add(Period(name="Rogue", start_date=date(2024, 9, 1), status=PeriodStatus.ACTIVE))
        session.commit()
        return {"ok": True}

    app.add_api_route("/api/test/insert-active-period", _insert_active, methods=["POST"])

    with TestClient(app) as client:
        admin = _login(client, "admin", "adminpass123")
        period = _create_period(client, admin, "Güz")
        client.post(f"/api/admin/periods/{period['id']}/activate", headers=admin, json={"resetData": False})

        r = client.post("/api/test/insert-active-period")
        assert r.status_code == 409
        assert "error" in r.json()

        with Session(get_engine()) as session:
            session.add(Period(name="One", start_date=date(2024, 9, 1), status=PeriodStatus.ACTIVE))
            session.add(Period(name="Two", start_date=date(2025, 2, 1), status=PeriodStatus.ACTIVE))
            with pytest.raises(IntegrityError):
                session.commit()

        r = client.get("/api/admin/periods", headers=admin, params={"status": "ACTIVE"})
        assert [p["id"] for p in r.json()["periods"]] == [period["id"]]
