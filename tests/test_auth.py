from __future__ import annotations

from fastapi.testclient import TestClient

from bilgeverse.main import create_app


def _login(client: TestClient, username: str, password: str):
    return client.post(
        "/api/auth/login",
        data={"username": username, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def test_login_me_and_refresh(tmp_path, monkeypatch):
    db_path = tmp_path / "test_auth.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass123")

    app = create_app()
    with TestClient(app) as client:
        r = client.get("/api/system/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}

        r = _login(client, "admin", "wrong-password")
        assert r.status_code == 401
        assert r.json()["error"] == "Invalid username or password"

        r = _login(client, "admin", "adminpass123")
        assert r.status_code == 200
        assert r.json()["role"] == "ADMIN"
        admin = {"Authorization": f"Bearer {r.json()['access_token']}"}

        r = client.post(
            "/api/admin/users",
            headers=admin,
            json={"username": "rehber", "password": "pass1234", "role": "TUTOR", "firstName": "Ayşe"},
        )
        assert r.status_code == 201
        tutor_id = r.json()["id"]
        assert "hashedPassword" not in r.json()

        r = client.post(
            "/api/admin/users",
            headers=admin,
            json={"username": "ogrenci", "password": "pass1234", "role": "STUDENT", "tutorId": tutor_id},
        )
        assert r.status_code == 201

        r = _login(client, "ogrenci", "pass1234")
        student = {"Authorization": f"Bearer {r.json()['access_token']}"}

        r = client.get("/api/auth/me", headers=student)
        assert r.status_code == 200
        assert r.json()["user"]["username"] == "ogrenci"
        assert r.json()["tutor"]["firstName"] == "Ayşe"

        r = client.post("/api/auth/refresh", headers=student)
        assert r.status_code == 200
        assert r.headers["cache-control"].startswith("no-store")
        assert r.json()["accessToken"]
        assert r.json()["user"]["points"] == 0

        r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert r.status_code == 401


def test_admin_user_management_guards(tmp_path, monkeypatch):
    db_path = tmp_path / "test_admin_users.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass123")

    app = create_app()
    with TestClient(app) as client:
        r = _login(client, "admin", "adminpass123")
        admin = {"Authorization": f"Bearer {r.json()['access_token']}"}

        r = client.get("/api/admin/users", headers=admin)
        admin_id = next(u["id"] for u in r.json() if u["username"] == "admin")

        r = client.put(f"/api/admin/users/{admin_id}", headers=admin, json={"isActive": False})
        assert r.status_code == 400
        r = client.put(f"/api/admin/users/{admin_id}", headers=admin, json={"role": "TUTOR"})
        assert r.status_code == 400

        r = client.post(
            "/api/admin/users",
            headers=admin,
            json={"username": "admin", "password": "pass1234"},
        )
        assert r.status_code == 400

        r = client.post(
            "/api/admin/users",
            headers=admin,
            json={"username": "ogrenci", "password": "pass1234", "tutorId": admin_id},
        )
        assert r.status_code == 400

        r = client.post("/api/admin/users", headers=admin, json={"username": "ogrenci", "password": "pass1234"})
        assert r.status_code == 201
        user_id = r.json()["id"]
        assert r.json()["role"] == "STUDENT"

        r = client.put(f"/api/admin/users/{user_id}", headers=admin, json={"isActive": False})
        assert r.status_code == 200
        assert r.json()["isActive"] is False

        r = _login(client, "ogrenci", "pass1234")
        assert r.status_code == 403

        r = client.get("/api/admin/audit-logs", headers=admin, params={"targetId": user_id})
        actions = [x["action"] for x in r.json()]
        assert "admin_user.create" in actions
        assert "admin_user.disable" in actions

        r = client.get("/api/system/info")
        assert r.status_code == 200
        assert r.json()["max_review_points"] == 100


def test_routing_errors_use_error_body(tmp_path, monkeypatch):
    db_path = tmp_path / "test_routing_errors.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    monkeypatch.setenv("ADMIN_USERNAME", "admin")
    monkeypatch.setenv("ADMIN_PASSWORD", "adminpass123")

    app = create_app()
    with TestClient(app) as client:
        r = client.get("/api/nope")
        assert r.status_code == 404
        assert r.json() == {"error": "Not Found"}

        r = client.delete("/api/system/health")
        assert r.status_code == 405
        assert r.json() == {"error": "Method Not Allowed"}
        assert "GET" in r.headers["allow"]

        r = client.get("/api/auth/me")
        assert r.status_code == 401
        assert "error" in r.json()
