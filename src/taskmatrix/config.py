# src/taskmatrix/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKMATRIX"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
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
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


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

    # ---- Scheduler ----
    tick_seconds: float
    heartbeat_seconds: float
    default_task_timeout_seconds: float

    # ---- LLM (OpenAI-compatible) ----
    llm_api_key: Optional[str]
    llm_base_url: str
    llm_models: List[str]
    llm_timeout_seconds: float
    # 0 disables the response cache
    llm_cache_ttl_seconds: float = 300.0

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskmatrix").strip() or "taskmatrix"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskmatrix"))

        # Non-positive values fall back to the defaults; a zero tick would spin the loop.
        tick_seconds = _env_float(_k("TICK_SECONDS"), 0.1)
        if tick_seconds <= 0:
            tick_seconds = 0.1
        heartbeat_seconds = _env_float(_k("HEARTBEAT_SECONDS"), 1.0)
        if heartbeat_seconds <= 0:
            heartbeat_seconds = 1.0
        default_task_timeout_seconds = _env_float(_k("TASK_TIMEOUT_SECONDS"), 30.0)
        if default_task_timeout_seconds <= 0:
            default_task_timeout_seconds = 30.0

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENAI_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://api.openai.com/v1")
        llm_models = _env_list(_k("LLM_MODELS"), ["gpt-4o-mini"])
        llm_timeout_seconds = _env_float(_k("LLM_TIMEOUT_SECONDS"), 30.0)
        llm_cache_ttl_seconds = max(0.0, _env_float(_k("LLM_CACHE_TTL_SECONDS"), 300.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tick_seconds=tick_seconds,
            heartbeat_seconds=heartbeat_seconds,
            default_task_timeout_seconds=default_task_timeout_seconds,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_models=llm_models,
            llm_timeout_seconds=llm_timeout_seconds,
            llm_cache_ttl_seconds=llm_cache_ttl_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
