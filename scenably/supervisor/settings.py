"""Persistent service settings with environment overrides."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from platformdirs import user_data_dir

from scenably.contracts import SETTINGS_SCHEMA_V1

logger = logging.getLogger("scenably.supervisor.settings")

SETTINGS_PATH = Path.home() / ".scenably" / "settings.json"
DATA_DIR = Path(user_data_dir("scenably", appauthor=False))
DEFAULT_DB_PATH = DATA_DIR / "scenably.db"
ALLOWED_BROWSERS = {"chromium", "firefox", "webkit"}
ALLOWED_DIALECTS = {"python", "javascript"}

# Environment variable -> (setting key, parser)
ENV_OVERRIDES = {
    "SCENABLY_TIMEZONE": ("timezone", str),
    "SCENABLY_TICK_INTERVAL_SECONDS": ("tick_interval_seconds", float),
    "SCENABLY_HEADLESS": ("headless", lambda raw: raw.strip().lower() in {"1", "true", "yes", "on"}),
    "SCENABLY_BROWSER": ("browser", str),
    "SCENABLY_DB_PATH": ("db_path", str),
}


def settings_path() -> Path:
    override = os.getenv("SCENABLY_SETTINGS", "").strip()
    return Path(override).expanduser() if override else SETTINGS_PATH


def default_settings() -> dict[str, Any]:
    return {
        "schema_version": SETTINGS_SCHEMA_V1,
        "timezone": "UTC",
        "tick_interval_seconds": 30.0,
        "session_retention_seconds": 3600.0,
        "recorder_dialect": "python",
        "browser": "chromium",
        "headless": True,
        "debug_slow_mo_ms": 500,
        "action_timeout_ms": 10_000,
        "navigation_timeout_ms": 30_000,
        "readiness_grace_seconds": 1.0,
        "db_path": str(DEFAULT_DB_PATH),
    }


def _positive_number(settings: dict[str, Any], key: str, *, integer: bool = False) -> float | int:
    raw = settings[key]
    if isinstance(raw, bool):
        raise ValueError(f"{key} must be a number")
    try:
        value = int(raw) if integer else float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key} must be a number") from exc
    if value <= 0:
        raise ValueError(f"{key} must be positive")
    return value


def validate_settings(settings: dict[str, Any]) -> dict[str, Any]:
    """Validate settings values and fill in defaults for missing keys."""
    if not isinstance(settings, dict):
        raise ValueError("settings must be object")
    schema_version = settings.get("schema_version", SETTINGS_SCHEMA_V1)
    if schema_version != SETTINGS_SCHEMA_V1:
        raise ValueError("unsupported settings schema_version")

    merged = default_settings()
    merged.update({key: value for key, value in settings.items() if key in merged})

    timezone_name = str(merged["timezone"]).strip()
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"unknown timezone: {timezone_name}") from exc

    browser = str(merged["browser"]).strip().lower()
    if browser not in ALLOWED_BROWSERS:
        raise ValueError(f"unsupported browser: {browser}")
    dialect = str(merged["recorder_dialect"]).strip().lower()
    if dialect not in ALLOWED_DIALECTS:
        raise ValueError(f"unsupported recorder_dialect: {dialect}")

    slow_mo = merged["debug_slow_mo_ms"]
    if isinstance(slow_mo, bool) or not isinstance(slow_mo, int) or slow_mo < 0:
        raise ValueError("debug_slow_mo_ms must be a non-negative integer")

    db_path = str(merged["db_path"]).strip()
    if not db_path:
        raise ValueError("db_path must be non-empty")

    return {
        "schema_version": SETTINGS_SCHEMA_V1,
        "timezone": timezone_name,
        "tick_interval_seconds": _positive_number(merged, "tick_interval_seconds"),
        "session_retention_seconds": _positive_number(merged, "session_retention_seconds"),
        "recorder_dialect": dialect,
        "browser": browser,
        "headless": bool(merged["headless"]),
        "debug_slow_mo_ms": slow_mo,
        "action_timeout_ms": _positive_number(merged, "action_timeout_ms", integer=True),
        "navigation_timeout_ms": _positive_number(merged, "navigation_timeout_ms", integer=True),
        "readiness_grace_seconds": _positive_number(merged, "readiness_grace_seconds"),
        "db_path": db_path,
    }


def apply_env_overrides(settings: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Return settings with SCENABLY_* environment overrides applied and re-validated."""
    env = os.environ if environ is None else environ
    updated = dict(settings)
    for name, (key, parse) in ENV_OVERRIDES.items():
        raw = env.get(name)
        if raw is None or not raw.strip():
            continue
        try:
            updated = validate_settings({**updated, key: parse(raw)})
        except ValueError as exc:
            logger.warning("Ignoring invalid value for %s: %r (%s)", name, raw, exc)
    return validate_settings(updated)


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """Load settings from disk or return defaults on a missing or corrupt file."""
    target = path or settings_path()
    if not target.exists():
        return default_settings()
    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Unreadable settings file %s: %s", target, exc)
        return default_settings()
    try:
        return validate_settings(raw)
    except ValueError as exc:
        logger.warning("Invalid settings file %s: %s", target, exc)
        return default_settings()


def save_settings(settings: dict[str, Any], path: Path | None = None) -> dict[str, Any]:
    """Validate and persist settings to disk."""
    target = path or settings_path()
    validated = validate_settings(settings)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(validated, indent=2), encoding="utf-8")
    return validated


def resolve_settings(path: Path | None = None) -> dict[str, Any]:
    """Settings as the service sees them: file values plus environment overrides."""
    return apply_env_overrides(load_settings(path))
