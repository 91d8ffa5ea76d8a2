from __future__ import annotations

from dataclasses import replace

import pytest

from camledger.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
)
from camledger.utils.config import get_settings


def _auth_service(tmp_path, admin_token):
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "auth.db",
        admin_token=admin_token,
    )
    return AuthService(settings=settings)


def test_login_issues_distinct_session_tokens(tmp_path):
    service = _auth_service(tmp_path, "admin-secret")

    first = service.login("admin-secret")
    second = service.login("admin-secret")

    assert first != second
    service.validate_bearer_token(first)
    service.validate_bearer_token(second)


def test_login_with_wrong_token_raises(tmp_path):
    service = _auth_service(tmp_path, "admin-secret")
    with pytest.raises(InvalidAdminTokenError):
        service.login("guess")


def test_login_without_configured_token_raises(tmp_path):
    service = _auth_service(tmp_path, None)
    assert service.auth_enabled is False
    with pytest.raises(AdminTokenNotConfiguredError):
        service.login("anything")


def test_logout_revokes_only_that_session(tmp_path):
    service = _auth_service(tmp_path, "admin-secret")
    kept = service.login("admin-secret")
    revoked = service.login("admin-secret")

    service.logout(revoked)

    service.validate_bearer_token(kept)
    with pytest.raises(InvalidAdminTokenError):
        service.validate_bearer_token(revoked)


def test_unauthorized_error_is_structured(tmp_path):
    service = _auth_service(tmp_path, "admin-secret")
    with pytest.raises(InvalidAdminTokenError) as exc_info:
        service.validate_bearer_token("no-session")
    assert exc_info.value.to_dict()["kind"] == "Unauthorized"
