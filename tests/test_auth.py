"""
Authentication Tests
Tests for login, token refresh and the current-user endpoint
"""

from datetime import datetime

import pytest

from src.config.settings import settings
from src.models.user import User
from src.utils.security import create_refresh_token

TEST_PASSWORD = "testpass123"


class TestAuthentication:
    """Test authentication endpoints"""

    def test_login_wrong_password(self, client, org):
        """Test login with wrong password"""
        response = client.post(
            "/api/auth/login",
            data={"username": "employee@company.com", "password": "wrongpassword"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_login_nonexistent_user(self, client, test_db):
        """Test login with non-existent user"""
        response = client.post(
            "/api/auth/login",
            data={"username": "nobody@company.com", "password": "password123"}
        )
        assert response.status_code == 401

    def test_login_user_without_password(self, client, org):
        response = client.post(
            "/api/auth/login",
            data={"username": "manager@company.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 401

    def test_unauthorized_access(self, client, test_db):
        """Test accessing protected endpoint without token"""
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_invalid_token(self, client, test_db):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    @pytest.mark.parametrize("username", ["employee@company.com", "EMP-EMPLOYEE"])
    def test_login_success(self, client, org, username):
        """Login works with email or employee ID"""
        response = client.post(
            "/api/auth/login",
            data={"username": username, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 30 * 60

    def test_get_current_user(self, client, org):
        """Test getting current user info"""
        login_response = client.post(
            "/api/auth/login",
            data={"username": "employee@company.com", "password": TEST_PASSWORD}
        )
        token = login_response.json()["access_token"]

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "employee@company.com"
        assert data["role"] == "EMPLOYEE"
        assert data["supervisor_id"] == org.supervisor

    def test_refresh_token(self, client, org):
        login_response = client.post(
            "/api/auth/login",
            data={"username": "employee@company.com", "password": TEST_PASSWORD}
        )
        refresh = login_response.json()["refresh_token"]

        response = client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert response.status_code == 200
        new_access = response.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_access}"})
        assert me.status_code == 200

    def test_refresh_rejects_access_token(self, client, org):
        login_response = client.post(
            "/api/auth/login",
            data={"username": "employee@company.com", "password": TEST_PASSWORD}
        )
        access = login_response.json()["access_token"]

        response = client.post("/api/auth/refresh", json={"refresh_token": access})
        assert response.status_code == 401

    def test_refresh_token_not_accepted_as_access(self, client, org):
        token = create_refresh_token({"sub": str(org.employee)})
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deleted_user_is_forbidden(self, client, org, auth, db_session):
        user = db_session.query(User).filter(User.id == org.outsider).first()
        user.deleted_at = datetime.utcnow()
        db_session.commit()

        response = client.get("/api/auth/me", headers=auth(org.outsider))
        assert response.status_code == 403


class TestServiceApiKey:

    @pytest.fixture
    def service_key(self, monkeypatch, org):
        monkeypatch.setattr(settings, "SERVICE_API_KEY", "svc-key")
        monkeypatch.setattr(settings, "SERVICE_ACCOUNT_EMAIL", "admin@company.com")
        return "svc-key"

    def test_key_maps_to_service_account(self, client, org, service_key):
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {service_key}"})
        assert response.status_code == 200
        assert response.json()["id"] == org.admin

    def test_non_ascii_token_is_unauthorized(self, client, service_key):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer café".encode("utf-8")})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
