from __future__ import annotations

from pathlib import Path

import pytest

from camledger.utils.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_settings_read_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CAM_DATABASE_PATH", str(tmp_path / "ledger.db"))
    monkeypatch.setenv("CAM_ADMIN_TOKEN", "  admin-secret  ")
    monkeypatch.setenv("CAM_PERMISSIVE_STATUS_TRANSITIONS", "yes")
    monkeypatch.setenv("CAM_DISPLAY_DECIMAL_PLACES", "3")
    monkeypatch.setenv("CAM_SEED_DEMO_DATA", "off")

    settings = get_settings()

    assert settings.database_path == Path(tmp_path / "ledger.db")
    assert settings.admin_token == "admin-secret"
    assert settings.permissive_status_transitions is True
    assert settings.display_decimal_places == 3
    assert settings.seed_demo_data is False


def test_blank_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("CAM_ADMIN_TOKEN", "   ")
    monkeypatch.setenv("CAM_CURRENCY_CODE", "")
    monkeypatch.delenv("CAM_PERMISSIVE_STATUS_TRANSITIONS", raising=False)

    settings = get_settings()

    assert settings.admin_token is None
    assert settings.currency_code == "MMK"
    assert settings.permissive_status_transitions is False


def test_non_numeric_value_is_rejected(monkeypatch):
    monkeypatch.setenv("CAM_DATABASE_TIMEOUT_SECONDS", "soon")
    with pytest.raises(ValueError, match="CAM_DATABASE_TIMEOUT_SECONDS"):
        get_settings()
