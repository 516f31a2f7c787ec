"""Load and validate configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        pattern = re.compile(r"\$\{([^}]+)\}")
        match = pattern.search(value)
        if match:
            env_key = match.group(1)
            env_val = os.environ.get(env_key, "")
            # If the entire string is a single env var, return the resolved value
            if match.group(0) == value:
                return env_val
            return pattern.sub(lambda m: os.environ.get(m.group(1), ""), value)
        return value
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/newsdesk.db")


def get_adapter_config(config: dict, adapter_key: str) -> dict:
    """Per-adapter overrides (enabled flag, feed list)."""
    return config.get("sources", {}).get(adapter_key, {}) or {}


def get_telegram_config(config: dict) -> dict:
    cfg = config.get("deliver", {}).get("telegram", {}) or {}
    return {
        "enabled": cfg.get("enabled", False),
        "bot_token": cfg.get("bot_token", ""),
        "chat_id": str(cfg.get("chat_id", "") or ""),
        "max_message_length": int(cfg.get("max_message_length", 4096)),
        "timeout": float(cfg.get("timeout", 35)),
    }


def get_push_config(config: dict) -> dict:
    cfg = config.get("push", {}) or {}
    return {
        "max_retries": int(cfg.get("max_retries", 3)),
        "base_delay": float(cfg.get("base_delay", 1.0)),
        "send_delay": float(cfg.get("send_delay", 1.0)),
    }


def get_routing_config(config: dict) -> dict:
    cfg = config.get("routing", {}) or {}
    return {
        "urgent_threshold": float(cfg.get("urgent_threshold", 10.0)),
        "upgrade_delta": float(cfg.get("upgrade_delta", 2.0)),
    }


def get_scoring_context_defaults(config: dict) -> dict:
    """Tracked symbols and weighting hints applied to every scored article."""
    cfg = config.get("scoring", {}) or {}
    return {
        "symbols": [str(s).upper() for s in cfg.get("tracked_symbols", []) or []],
        "has_holdings": bool(cfg.get("has_holdings", False)),
        "market_hours_aware": bool(cfg.get("market_hours_aware", True)),
    }


def get_scheduler_config(config: dict) -> dict:
    cfg = config.get("scheduler", {}) or {}
    return {
        "enabled": cfg.get("enabled", True),
        "ingestion_interval_minutes": cfg.get("ingestion_interval_minutes"),
        "ingestion_lookback_minutes": int(cfg.get("ingestion_lookback_minutes", 60)),
        "digest_interval_hours": float(cfg.get("digest_interval_hours", 2)),
        "digest_lookback_hours": float(cfg.get("digest_lookback_hours", 12)),
        "digest_limit": int(cfg.get("digest_limit", 10)),
        "cleanup_interval_hours": float(cfg.get("cleanup_interval_hours", 6)),
    }


def get_ingest_api_config(config: dict) -> dict:
    cfg = config.get("api", {}) or {}
    return {
        "host": cfg.get("host", "0.0.0.0"),
        "port": int(cfg.get("port", 8080)),
        "secret": cfg.get("ingestion_secret", "") or "",
    }
