from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from jose import jwt

import app.auth.auth_utils as auth_utils
import app.auth.permissions as permissions
from app.auth.auth_utils import create_access_token, verify_access_token
from app.auth.permissions import verify_cron_secret
from app.main import app
from app.auth.permissions import get_current_user
from tests.conftest import insert_user

SECRET = "test-secret"


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(auth_utils, "JWT_SECRET_KEY", SECRET)
    return SECRET


class TestAccessTokens:
    def test_valid_token(self, jwt_secret):
        token = create_access_token("user_1", "a@example.com")
        payload = verify_access_token(f"Bearer {token}")
        assert payload["sub"] == "user_1"
        assert payload["email"] == "a@example.com"

    def test_missing_header(self, jwt_secret):
        with pytest.raises(HTTPException) as exc:
            verify_access_token(None)
        assert exc.value.status_code == 401

    def test_wrong_scheme(self, jwt_secret):
        with pytest.raises(HTTPException):
            verify_access_token("Token abc")

    def test_expired_token(self, jwt_secret):
        token = create_access_token("user_1", expires_in_seconds=-10)
        with pytest.raises(HTTPException) as exc:
            verify_access_token(f"Bearer {token}")
        assert exc.value.detail == "Invalid or Expired Token"

    def test_token_without_subject(self, jwt_secret):
        token = jwt.encode({"exp": datetime.utcnow() + timedelta(minutes=5)}, SECRET, algorithm="HS256")
        with pytest.raises(HTTPException) as exc:
            verify_access_token(f"Bearer {token}")
        assert exc.value.status_code == 401

    def test_unconfigured_secret_rejects(self, monkeypatch):
        monkeypatch.setattr(auth_utils, "JWT_SECRET_KEY", None)
        with pytest.raises(HTTPException) as exc:
            verify_access_token("Bearer anything")
        assert exc.value.status_code == 401


class TestCronSecret:
    def test_matching_secret(self, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", "s3cret")
        assert verify_cron_secret("Bearer s3cret") is True

    def test_wrong_secret(self, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", "s3cret")
        with pytest.raises(HTTPException):
            verify_cron_secret("Bearer nope")

    def test_non_ascii_header_is_unauthorized(self, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", "s3cret")
        with pytest.raises(HTTPException) as exc:
            verify_cron_secret("Bearer s\u00e9cret")
        assert exc.value.status_code == 401

    def test_unset_secret_rejects_everything(self, monkeypatch):
        monkeypatch.setattr(permissions, "CRON_SECRET", None)
        with pytest.raises(HTTPException):
            verify_cron_secret("Bearer ")


class TestCurrentUser:
    """Token resolution through the real dependency chain"""

    @pytest.fixture(autouse=True)
    def real_user_resolution(self):
        app.dependency_overrides.pop(get_current_user, None)

    async def test_profile_is_resolved(self, client, db, jwt_secret):
        await insert_user(db, "user_1")
        token = create_access_token("user_1")

        response = await client.get("/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["profile"]["user_id"] == "user_1"

    async def test_missing_profile(self, client, jwt_secret):
        token = create_access_token("ghost")
        response = await client.get("/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404

    async def test_blocked_user(self, client, db, jwt_secret):
        await insert_user(db, "user_2", status="BLOCKED")
        token = create_access_token("user_2")
        response = await client.get("/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403

    async def test_no_token(self, client):
        response = await client.get("/profile")
        assert response.status_code == 401

    async def test_register_creates_student_profile(self, client, db, jwt_secret):
        token = create_access_token("new_user", "new@example.com")
        headers = {"Authorization": f"Bearer {token}"}

        response = await client.post("/auth/register", json={"name": "New User"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["profile"]["role"] == "STUDENT"
        assert await db.user_ranks.count_documents({"user_id": "new_user"}) == 1

        again = await client.post("/auth/register", json={"name": "New User"}, headers=headers)
        assert again.status_code == 409
