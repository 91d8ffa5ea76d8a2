"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_optional_str(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_path: Path
    database_timeout_seconds: float
    log_level: str
    log_format: str
    admin_token: Optional[str]
    display_decimal_places: int
    reconciliation_tolerance: float
    area_tolerance: float
    permissive_status_transitions: bool
    currency_code: str
    seed_demo_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests derive variants with replace()."""
    return Settings(
        app_name=_env_str("CAM_APP_NAME", "CAM Ledger"),
        app_version=_env_str("CAM_APP_VERSION", "1.0.0"),
        database_path=Path(
            _env_str("CAM_DATABASE_PATH", str(PROJECT_ROOT / "data" / "cam_ledger.db"))
        ),
        database_timeout_seconds=_env_float("CAM_DATABASE_TIMEOUT_SECONDS", 10.0),
        log_level=_env_str("CAM_LOG_LEVEL", "INFO"),
        log_format=_env_str(
            "CAM_LOG_FORMAT",
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        ),
        admin_token=_env_optional_str("CAM_ADMIN_TOKEN"),
        display_decimal_places=_env_int("CAM_DISPLAY_DECIMAL_PLACES", 2),
        reconciliation_tolerance=_env_float("CAM_RECONCILIATION_TOLERANCE", 1e-6),
        area_tolerance=_env_float("CAM_AREA_TOLERANCE", 1e-6),
        permissive_status_transitions=_env_bool("CAM_PERMISSIVE_STATUS_TRANSITIONS", False),
        currency_code=_env_str("CAM_CURRENCY_CODE", "MMK"),
        seed_demo_data=_env_bool("CAM_SEED_DEMO_DATA", True),
    )
