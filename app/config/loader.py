from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

_CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

_DEFAULT_DATABASE_URL = "sqlite:///./meetline.db"
_DEFAULT_SQLITE = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "busy_timeout_ms": 30000,
}
_DEFAULT_DATABASE_POOL = {
    "pool_size": 20,
    "max_overflow": 40,
    "pool_timeout_seconds": 15,
    "pool_recycle_seconds": 1800,
}
_DEFAULT_SUMMARIZATION = {
    "provider": "gemini",
    "model": "gemini-2.0-flash",
    "base_url": "https://generativelanguage.googleapis.com",
    "timeout_seconds": 30,
    "temperature": 0.2,
}
_DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES = 60


def load_config() -> Dict[str, Any]:
    """Load the application config from YAML, returning an empty mapping on error."""
    try:
        with _CONFIG_PATH.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
            if isinstance(data, dict):
                return data
            logging.warning(
                "Config file %s is not a mapping; using defaults.", _CONFIG_PATH
            )
            return {}
    except FileNotFoundError:
        logging.warning(
            "Configuration file %s not found; using defaults.", _CONFIG_PATH
        )
        return {}
    except Exception as exc:  # noqa: BLE001
        logging.error("Failed to load configuration from %s: %s", _CONFIG_PATH, exc)
        return {}


def _coerce_positive_int(value: Any, fallback: int) -> int:
    try:
        candidate = int(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def _coerce_positive_float(value: Any, fallback: float) -> float:
    try:
        candidate = float(value)
        return candidate if candidate > 0 else fallback
    except Exception:  # noqa: BLE001
        return fallback


def get_database_url() -> str:
    """Return the database URL; MEETLINE_DATABASE_URL wins over config.yaml."""
    env_value = os.getenv("MEETLINE_DATABASE_URL")
    if env_value and env_value.strip():
        return env_value.strip()
    config = load_config()
    url = config.get("database_url")
    return str(url) if url else _DEFAULT_DATABASE_URL


def get_sqlite_settings() -> Dict[str, Any]:
    config = load_config()
    section = config.get("sqlite") or {}
    defaults = _DEFAULT_SQLITE
    return {
        "journal_mode": str(section.get("journal_mode") or defaults["journal_mode"]),
        "synchronous": str(section.get("synchronous") or defaults["synchronous"]),
        "busy_timeout_ms": _coerce_positive_int(
            section.get("busy_timeout_ms"), defaults["busy_timeout_ms"]
        ),
    }


def get_pool_settings() -> Dict[str, int]:
    config = load_config()
    section = config.get("database_pool") or {}
    defaults = _DEFAULT_DATABASE_POOL
    return {
        "pool_size": _coerce_positive_int(
            section.get("pool_size"), defaults["pool_size"]
        ),
        "max_overflow": _coerce_positive_int(
            section.get("max_overflow"), defaults["max_overflow"]
        ),
        "pool_timeout": _coerce_positive_int(
            section.get("pool_timeout_seconds"), defaults["pool_timeout_seconds"]
        ),
        "pool_recycle": _coerce_positive_int(
            section.get("pool_recycle_seconds"), defaults["pool_recycle_seconds"]
        ),
    }


def get_summarization_settings() -> Dict[str, Any]:
    """
    Return Summarization Gateway settings.

    The API key is read from GEMINI_API_KEY first, then from
    config.yaml summarization.api_key. A missing key is returned as None;
    the gateway reports it as a summarization failure at call time.
    """
    config = load_config()
    section = config.get("summarization") or {}
    defaults = dict(_DEFAULT_SUMMARIZATION)

    api_key = os.getenv("GEMINI_API_KEY") or section.get("api_key") or None
    provider = str(section.get("provider") or defaults["provider"]).strip().lower()
    model = str(section.get("model") or defaults["model"]).strip()
    base_url = str(section.get("base_url") or defaults["base_url"]).strip()

    temperature = defaults["temperature"]
    try:
        temperature = max(0.0, min(1.0, float(section.get("temperature"))))
    except Exception:  # noqa: BLE001
        pass

    return {
        "provider": provider or defaults["provider"],
        "model": model or defaults["model"],
        "base_url": base_url.rstrip("/") or defaults["base_url"],
        "timeout_seconds": _coerce_positive_float(
            section.get("timeout_seconds"), defaults["timeout_seconds"]
        ),
        "temperature": temperature,
        "api_key": str(api_key).strip() if api_key else None,
    }


def get_access_token_expire_minutes() -> int:
    """
    Source the access token lifetime from config.yaml, falling back to
    MEETLINE_ACCESS_TOKEN_EXPIRE_MINUTES, then a hard default.
    """
    config = load_config()
    section = config.get("auth") or {}
    config_value = _coerce_positive_int(section.get("access_token_expire_minutes"), 0)
    if config_value:
        return config_value
    env_value = _coerce_positive_int(
        os.getenv("MEETLINE_ACCESS_TOKEN_EXPIRE_MINUTES"), 0
    )
    if env_value:
        return env_value
    return _DEFAULT_ACCESS_TOKEN_EXPIRE_MINUTES
