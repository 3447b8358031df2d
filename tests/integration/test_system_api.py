"""Integration tests for health reporting, request ids and authentication."""

from unittest.mock import AsyncMock

from app.auth import auth_permissions, auth_service
from app.auth.auth_utils import create_access_token
from app.system import health_router


class TestHealth:
    def test_healthy_database(self, client, fake_db, monkeypatch) -> None:
        monkeypatch.setattr(health_router, "db", fake_db)

        body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["database"]["status"] == "UP"
        assert body["scheduler"] == {"running": False, "jobs": []}

    def test_database_down_is_degraded(self, client, fake_db, monkeypatch) -> None:
        fake_db.command.side_effect = ConnectionError("no route to host")
        monkeypatch.setattr(health_router, "db", fake_db)

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"] == {"status": "DOWN", "error": "no route to host"}


class TestRequestContext:
    def test_request_id_is_echoed(self, client, fake_db, monkeypatch) -> None:
        monkeypatch.setattr(health_router, "db", fake_db)

        response = client.get("/health", headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    def test_request_id_is_generated(self, client, fake_db, monkeypatch) -> None:
        monkeypatch.setattr(health_router, "db", fake_db)

        response = client.get("/health")

        assert len(response.headers["x-request-id"]) == 16


class TestAuthentication:
    def test_valid_token_loads_user(self, client, fake_db, monkeypatch) -> None:
        fake_db.users.find_one.return_value = {
            "user_id": "USR_T", "role": "TEACHER", "name": "Asha", "email": "asha@example.com",
        }
        monkeypatch.setattr(auth_permissions, "db", fake_db)
        get_me = AsyncMock(side_effect=lambda user: {"user_id": user.user_id, "role": user.role})
        monkeypatch.setattr(auth_service, "get_me", get_me)

        token = create_access_token("USR_T", "TEACHER")
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"user_id": "USR_T", "role": "TEACHER"}

    def test_deactivated_account_is_403(self, client, fake_db, monkeypatch) -> None:
        fake_db.users.find_one.return_value = {"user_id": "USR_T", "role": "TEACHER", "is_active": False}
        monkeypatch.setattr(auth_permissions, "db", fake_db)

        token = create_access_token("USR_T", "TEACHER")
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403

    def test_tampered_token_is_401(self, client) -> None:
        token = create_access_token("USR_T", "TEACHER") + "x"

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or Expired Token"
