import asyncio

import pytest

from healthcare_plus.core.exceptions import LastAdminProtected
from healthcare_plus.core.security import Principal
from healthcare_plus.services.auth_service import AuthService
from tests.conftest import ADMIN_LOGIN, PATIENT, register


class TestUserAdministration:

    def test_list_users_hides_password_hash(self, client, admin_headers):
        register(client)

        response = client.get("/api/v1/users", headers=admin_headers)
        assert response.status_code == 200
        users = response.json()
        assert {u["email"] for u in users} == {ADMIN_LOGIN["email"], PATIENT["email"]}
        assert all("password_hash" not in u for u in users)

    def test_list_users_admin_only(self, client, patient_headers):
        assert client.get("/api/v1/users", headers=patient_headers).status_code == 403

    def test_get_user(self, client, admin_headers):
        _, user = register(client)

        response = client.get(f"/api/v1/users/{user['id']}", headers=admin_headers)
        assert response.json()["email"] == PATIENT["email"]
        assert client.get("/api/v1/users/missing", headers=admin_headers).status_code == 404

    def test_deactivated_user_cannot_log_in(self, client, admin_headers):
        headers, user = register(client)

        response = client.patch(
            f"/api/v1/users/{user['id']}/status", json={"is_active": False}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        login = client.post("/api/v1/auth/login", json={"email": PATIENT["email"], "password": PATIENT["password"]})
        assert login.status_code == 401
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401

    def test_last_admin_cannot_be_deactivated(self, store):
        auth = AuthService(store)
        admin = asyncio.run(auth.ensure_admin())
        principal = Principal.from_user(admin)

        with pytest.raises(LastAdminProtected):
            asyncio.run(auth.set_user_active(principal, admin["id"], False))


class TestEnsureAdmin:

    def test_creates_admin_once(self, store):
        auth = AuthService(store)

        first = asyncio.run(auth.ensure_admin())
        second = asyncio.run(auth.ensure_admin())

        assert first["role"] == "admin"
        assert second is None
        assert len(asyncio.run(store.list_all("users"))) == 1
