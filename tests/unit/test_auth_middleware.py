#  Map Vault - Auth Middleware Tests
#
#  Tests for JWT validation dependencies: _validate_token, get_current_user,
#  require_admin.
#
#  Depends on: mapvault/middleware/auth.py, mapvault/services/auth.py
#  Used by:    pytest

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from mapvault.logging_config import subject_id_var
from mapvault.middleware.auth import _validate_token, get_current_user, require_admin
from mapvault.services.auth import AuthService


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _make_user(auth: AuthService, email="test@example.com",
                     password="testpass123", display_name="Test User"):
    """Register a user and return (user_dict, user_id)."""
    result = await auth.register(email, password, display_name)
    user_id = result["id"]
    user = await auth.get_user(user_id)
    return user, user_id


# ---------------------------------------------------------------------------
# _validate_token
# ---------------------------------------------------------------------------

class TestValidateToken:
    async def test_valid_access_token(self, tmp_db):
        """Valid access token returns (user, payload)."""
        auth = AuthService(db=tmp_db)
        user, user_id = await _make_user(auth)

        token = AuthService.create_access_token(user_id, user["role"])
        result_user, payload = await _validate_token(auth, token, "access")

        assert result_user["id"] == user_id
        assert payload["type"] == "access"
        assert payload["sub"] == user_id

    async def test_malformed_token(self, tmp_db):
        auth = AuthService(db=tmp_db)
        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(auth, "not.a.jwt", "access")
        assert exc_info.value.status_code == 401
        assert "Invalid or expired" in exc_info.value.detail

    async def test_wrong_token_type(self, tmp_db):
        """Refresh token passed as access type raises 401."""
        auth = AuthService(db=tmp_db)
        _, user_id = await _make_user(auth)

        refresh = AuthService.create_refresh_token(user_id)
        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(auth, refresh, "access")
        assert exc_info.value.status_code == 401
        assert "Invalid token type" in exc_info.value.detail

    async def test_user_not_found(self, tmp_db):
        auth = AuthService(db=tmp_db)
        token = AuthService.create_access_token("nonexistent_user", "user")
        with pytest.raises(HTTPException) as exc_info:
            await _validate_token(auth, token, "access")
        assert exc_info.value.status_code == 401
        assert "User not found" in exc_info.value.detail


# ---------------------------------------------------------------------------
# get_current_user
# ---------------------------------------------------------------------------

class TestGetCurrentUser:
    async def test_no_credentials(self, tmp_db):
        auth = AuthService(db=tmp_db)
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, auth=auth)
        assert exc_info.value.status_code == 401
        assert "Not authenticated" in exc_info.value.detail

    async def test_sets_subject_context(self, tmp_db):
        auth = AuthService(db=tmp_db)
        user, user_id = await _make_user(auth)
        creds = HTTPAuthorizationCredentials(
            scheme="Bearer", credentials=AuthService.create_access_token(user_id, user["role"]),
        )

        result = await get_current_user(credentials=creds, auth=auth)
        assert result["id"] == user_id
        assert subject_id_var.get() == user_id


# ---------------------------------------------------------------------------
# require_admin
# ---------------------------------------------------------------------------

class TestRequireAdmin:
    async def test_non_admin(self, tmp_db):
        """A user without an admin row in user_roles gets 403."""
        auth = AuthService(db=tmp_db)
        await _make_user(auth, email="first@example.com")
        user, _ = await _make_user(auth, email="second@example.com")

        with pytest.raises(HTTPException) as exc_info:
            await require_admin(user=user, auth=auth)
        assert exc_info.value.status_code == 403
        assert "Admin access required" in exc_info.value.detail

    async def test_admin(self, tmp_db):
        auth = AuthService(db=tmp_db)
        user, _ = await _make_user(auth)
        result = await require_admin(user=user, auth=auth)
        assert result["role"] == "admin"

    async def test_token_role_claim_is_not_trusted(self, tmp_db):
        """A forged 'admin' claim does not matter; only user_roles does."""
        auth = AuthService(db=tmp_db)
        await _make_user(auth, email="first@example.com")
        user, _ = await _make_user(auth, email="second@example.com")
        user = {**user, "role": "admin"}

        with pytest.raises(HTTPException) as exc_info:
            await require_admin(user=user, auth=auth)
        assert exc_info.value.status_code == 403
