"""Admin token authentication guarding mutating expense operations."""

from __future__ import annotations

import secrets
from threading import Lock
from typing import Optional

from camledger.domain.errors import UnauthorizedError
from camledger.utils.config import Settings, get_settings


class AuthenticationError(UnauthorizedError):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when CAM_ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class AuthService:
    """Exchanges the admin token for session bearer tokens and validates them."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_tokens: set[str] = set()
        self._lock = Lock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "CAM_ADMIN_TOKEN is not configured. Set CAM_ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_admin_token: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            raise InvalidAdminTokenError("Invalid admin token", field="admin_token")
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._session_tokens.add(token)
        return token

    def logout(self, bearer_token: str) -> None:
        with self._lock:
            self._session_tokens.discard(bearer_token)

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        with self._lock:
            active_tokens = list(self._session_tokens)
        if not active_tokens:
            raise InvalidAdminTokenError("No active session. Login first.")
        if not any(secrets.compare_digest(bearer_token, token) for token in active_tokens):
            raise InvalidAdminTokenError("Invalid bearer token")
