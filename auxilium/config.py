# -*- coding: utf-8 -*-
# =================================================================================================
# auxilium/config.py — Configuration Management Module
# =================================================================================================
# Configuration for the chat server:
#
#   1. HIERARCHICAL LOADING: Environment variables override YAML, YAML overrides defaults.
#   2. DOTENV: A .env file is loaded into the environment before anything is read.
#   3. TYPE SAFETY: All config values are validated via dataclass fields with explicit types.
#   4. SINGLETON PATTERN: Configuration is loaded once and cached globally.
#   5. SECURITY: Sensitive values (API keys) are never logged.
#
# Environment Variable Precedence (highest to lowest):
# -----------------------------------------------------
#   ENV VAR → auxilium.yaml → Hardcoded Default
#
# Usage:
# ------
#   from auxilium.config import get_settings
#   settings = get_settings()
#   print(settings.max_concurrent_sessions)
#
# =================================================================================================

from __future__ import annotations

import dataclasses
import functools
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

_LOG = logging.getLogger("auxilium.config")

DEFAULT_SYSTEM_ROLE = "You are a helpful assistant."

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
    "http://localhost:63342",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8080",
    "http://127.0.0.1:63342",
]

ENGINE_BACKENDS = ("llama_cpp", "openai")


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Returns an empty dict if the file doesn't exist; a file that fails to
    parse is logged and ignored so that env vars and defaults still apply.
    """
    if not path.exists():
        _LOG.debug("Config file not found: %s (using defaults)", path)
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        _LOG.warning("Failed to parse config file %s: %s", path, e)
        return {}

    if not isinstance(data, dict):
        _LOG.warning("Config file %s must contain a mapping, ignoring it", path)
        return {}

    _LOG.info("Loaded configuration from: %s", path)
    return data


# -----------------------------------------------------------------------------
# Settings Dataclass — Immutable Configuration Container
# -----------------------------------------------------------------------------
@dataclasses.dataclass(frozen=True)
class Settings:
    """
    Immutable application settings.

    Groupings:
    ----------
    1. Application: name, debug flag, logging
    2. Engine: which backend to load and how to reach the model
    3. Sessions: ceiling, queue bound, system role
    4. Reaper: sweep interval and maximum inactivity
    5. API: prefix, CORS, server binding

    Use dataclasses.replace() to derive per-test variants.
    """

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "Auxilium Chat Server"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Engine Settings
    # -------------------------------------------------------------------------
    engine_backend: str = "llama_cpp"
    model_path: Path = dataclasses.field(default_factory=lambda: Path("models") / "model.gguf")
    context_size: int = 4096                 # Tokens per llama.cpp context
    llm_base_url: str = "http://localhost:8080/v1"
    llm_api_key: str = "EMPTY"               # NEVER log this value
    llm_model: str = "default"
    llm_temperature: float = 0.7
    llm_max_tokens: Optional[int] = None
    llm_timeout_s: float = 120.0

    # -------------------------------------------------------------------------
    # Session Settings
    # -------------------------------------------------------------------------
    max_concurrent_sessions: int = 10
    max_queue_size: int = 0                  # 0 = unbounded
    system_role: str = DEFAULT_SYSTEM_ROLE

    # -------------------------------------------------------------------------
    # Reaper Settings
    # -------------------------------------------------------------------------
    cleanup_interval_minutes: float = 30.0
    max_session_age_minutes: float = 60.0

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_prefix: str = "/api/chat"
    cors_origins: List[str] = dataclasses.field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    uvicorn_host: str = "0.0.0.0"
    uvicorn_port: int = 3000

    def __post_init__(self) -> None:
        if self.engine_backend not in ENGINE_BACKENDS:
            raise ValueError(
                f"engine_backend must be one of {ENGINE_BACKENDS}, got {self.engine_backend!r}"
            )
        if self.max_concurrent_sessions < 1:
            raise ValueError("max_concurrent_sessions must be >= 1")
        if self.max_queue_size < 0:
            raise ValueError("max_queue_size must be >= 0")
        if self.cleanup_interval_minutes <= 0:
            raise ValueError("cleanup_interval_minutes must be > 0")
        if self.max_session_age_minutes <= 0:
            raise ValueError("max_session_age_minutes must be > 0")
        if not self.system_role:
            raise ValueError("system_role cannot be empty")


# -----------------------------------------------------------------------------
# Settings Factory — Load and Cache Configuration
# -----------------------------------------------------------------------------
def _load_settings() -> Settings:
    """
    Load settings with hierarchical precedence.

    Loading Order:
    --------------
    1. Hardcoded defaults (in Settings dataclass)
    2. YAML configuration file (auxilium.yaml, or AUXILIUM_CONFIG)
    3. Environment variables, including those from .env (highest priority)
    """
    load_dotenv()

    yaml_path = Path(os.environ.get("AUXILIUM_CONFIG", "auxilium.yaml"))
    yaml_cfg = _load_yaml_file(yaml_path)

    def get_val(env_keys: tuple, yaml_key: str, default: Any, type_: type) -> Any:
        for env_key in env_keys:
            env_val = os.environ.get(env_key)
            if env_val is None:
                continue
            try:
                if type_ == bool:
                    return env_val.lower() in ("true", "1", "yes", "on")
                elif type_ == list:
                    return [s.strip() for s in env_val.split(",") if s.strip()]
                elif type_ == Path:
                    return Path(env_val)
                else:
                    return type_(env_val)
            except (ValueError, TypeError):
                _LOG.warning("Invalid value for %s: %r (ignored)", env_key, env_val)

        yaml_val = yaml_cfg.get(yaml_key)
        if yaml_val is not None:
            try:
                if type_ == Path:
                    return Path(yaml_val)
                elif type_ == bool and isinstance(yaml_val, str):
                    return yaml_val.lower() in ("true", "1", "yes", "on")
                elif type_ == list and isinstance(yaml_val, str):
                    return [s.strip() for s in yaml_val.split(",") if s.strip()]
                else:
                    return type_(yaml_val) if not isinstance(yaml_val, type_) else yaml_val
            except (ValueError, TypeError):
                _LOG.warning("Invalid value for %s in %s: %r (ignored)", yaml_key, yaml_path, yaml_val)
        return default

    # MODEL_PATH wins; otherwise MODEL_NAME is resolved inside MODELS_DIR
    model_path = get_val(("MODEL_PATH",), "model_path", None, Path)
    if model_path is None:
        models_dir = get_val(("MODELS_DIR",), "models_dir", Path("models"), Path)
        model_name = get_val(("MODEL_NAME",), "model_name", "model.gguf", str)
        model_path = models_dir / model_name

    max_tokens = get_val(("LLM_MAX_TOKENS",), "llm_max_tokens", 0, int)

    settings = Settings(
        # Application
        app_name=get_val(("APP_NAME",), "app_name", "Auxilium Chat Server", str),
        debug=get_val(("DEBUG",), "debug", False, bool),
        log_level=get_val(("LOG_LEVEL",), "log_level", "INFO", str),

        # Engine
        engine_backend=get_val(("ENGINE_BACKEND",), "engine_backend", "llama_cpp", str),
        model_path=model_path,
        context_size=get_val(("CONTEXT_SIZE",), "context_size", 4096, int),
        llm_base_url=get_val(("LLM_BASE_URL",), "llm_base_url", "http://localhost:8080/v1", str),
        llm_api_key=get_val(("LLM_API_KEY",), "llm_api_key", "EMPTY", str),
        llm_model=get_val(("LLM_MODEL",), "llm_model", "default", str),
        llm_temperature=get_val(("LLM_TEMPERATURE",), "llm_temperature", 0.7, float),
        llm_max_tokens=max_tokens or None,
        llm_timeout_s=get_val(("LLM_TIMEOUT_S",), "llm_timeout_s", 120.0, float),

        # Sessions
        max_concurrent_sessions=get_val(("MAX_CONCURRENT_SESSIONS",), "max_concurrent_sessions", 10, int),
        max_queue_size=get_val(("MAX_QUEUE_SIZE",), "max_queue_size", 0, int),
        system_role=get_val(("AI_SYSTEM_ROLE",), "system_role", DEFAULT_SYSTEM_ROLE, str),

        # Reaper
        cleanup_interval_minutes=get_val(("CLEANUP_INTERVAL_MINUTES",), "cleanup_interval_minutes", 30.0, float),
        max_session_age_minutes=get_val(("MAX_SESSION_AGE_MINUTES",), "max_session_age_minutes", 60.0, float),

        # API
        api_prefix=get_val(("API_PREFIX",), "api_prefix", "/api/chat", str),
        cors_origins=get_val(("CORS_ORIGINS", "ALLOWED_ORIGINS"), "cors_origins", list(DEFAULT_CORS_ORIGINS), list),
        uvicorn_host=get_val(("UVICORN_HOST",), "uvicorn_host", "0.0.0.0", str),
        uvicorn_port=get_val(("UVICORN_PORT", "PORT"), "uvicorn_port", 3000, int),
    )

    _LOG.info(
        "Configuration loaded: engine=%s, max_sessions=%d, api_prefix=%s",
        settings.engine_backend, settings.max_concurrent_sessions, settings.api_prefix
    )

    return settings


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings (singleton pattern).

    First call initializes settings; subsequent calls return the cached instance.
    """
    return _load_settings()


def clear_settings_cache() -> None:
    """Clear settings cache (useful for testing)."""
    get_settings.cache_clear()
