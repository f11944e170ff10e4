# src/auto_analysis/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Bad values fall back to defaults instead of crashing at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "AUTOAI"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Queue policy ----
    poll_interval_ms: int
    retry_delay_ms: int
    max_retries: int
    wake_on_enqueue: bool

    # ---- LLM (OpenAI-compatible endpoint, DeepSeek by default) ----
    llm_api_key: Optional[str]
    llm_base_url: str
    llm_models: List[str]
    llm_timeout_seconds: float

    # ---- Result storage ----
    backend_base_url: str
    backend_token: Optional[str]
    results_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "auto-analysis").strip() or "auto-analysis"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/auto_analysis"))

        # Never poll faster than 1ms, never retry with a negative delay or budget.
        poll_interval_ms = max(1, _env_int(_k("POLL_INTERVAL_MS"), 2000))
        retry_delay_ms = max(0, _env_int(_k("RETRY_DELAY_MS"), 5000))
        max_retries = max(0, _env_int(_k("MAX_RETRIES"), 3))
        wake_on_enqueue = _env_bool(_k("WAKE_ON_ENQUEUE"), False)

        llm_api_key = _first_env(_k("LLM_API_KEY"), "DEEPSEEK_API_KEY", default=None)
        llm_base_url = _first_env(
            _k("LLM_BASE_URL"),
            "DEEPSEEK_BASE_URL",
            default="https://api.deepseek.com/v1",
        ) or "https://api.deepseek.com/v1"
        llm_models = _env_list(_k("LLM_MODELS"), ["deepseek-reasoner", "deepseek-chat"])
        llm_timeout_seconds = _env_float(_k("LLM_TIMEOUT_SECONDS"), 120.0)

        backend_base_url = _env(_k("BACKEND_BASE_URL"), "").strip().rstrip("/")
        backend_token = _first_env(_k("BACKEND_TOKEN"), default=None)
        results_path = _env_path(_k("RESULTS_PATH"), data_dir / "analysis_results.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            poll_interval_ms=poll_interval_ms,
            retry_delay_ms=retry_delay_ms,
            max_retries=max_retries,
            wake_on_enqueue=wake_on_enqueue,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            llm_timeout_seconds=llm_timeout_seconds,
            backend_base_url=backend_base_url,
            backend_token=backend_token,
            results_path=results_path,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
