# src/forth/runtime/chain_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from forth.ledger.constants import DEFAULT_CHAIN_ID

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    if v is None:
        return int(default)
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    mode: str  # "dev" | "testnet" | "prod"

    # Unix seconds of block 0; 0 means "wall clock at boot".
    genesis_timestamp: int

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}
_ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_chain_config(cfg: ChainConfig) -> None:
    """Fail-fast validation for operator config."""

    if int(cfg.chain_id) <= 0:
        raise ValueError(f"chain_id must be > 0; got: {cfg.chain_id}")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.genesis_timestamp) < 0:
        raise ValueError(f"genesis_timestamp must be >= 0; got: {cfg.genesis_timestamp}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if str(cfg.log_level or "").strip().upper() not in _ALLOWED_LOG_LEVELS:
        raise ValueError(f"log_level must be one of {_ALLOWED_LOG_LEVELS}; got: {cfg.log_level!r}")


def default_chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id=DEFAULT_CHAIN_ID,
        # Without an explicit config file, do not drop into a permissive posture.
        mode="prod",
        genesis_timestamp=0,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def read_chain_config_file(path: str) -> ChainConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("chain config must be a JSON object")

    d = default_chain_config()

    cfg = ChainConfig(
        chain_id=_as_int(raw.get("chain_id"), d.chain_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        genesis_timestamp=_as_int(raw.get("genesis_timestamp"), d.genesis_timestamp),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
    )

    validate_chain_config(cfg)
    return cfg


def load_chain_config(*, config_path: Optional[str] = None) -> ChainConfig:
    p = config_path or os.environ.get("FORTH_CHAIN_CONFIG_PATH")
    if p:
        return read_chain_config_file(p)

    cfg = default_chain_config()
    validate_chain_config(cfg)
    return cfg


def apply_chain_config_to_env(cfg: ChainConfig) -> None:
    validate_chain_config(cfg)
    os.environ["FORTH_CHAIN_ID"] = str(int(cfg.chain_id))
    os.environ["FORTH_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["FORTH_API_HOST"] = cfg.api_host
    os.environ["FORTH_API_PORT"] = str(int(cfg.api_port))
    os.environ["FORTH_LOG_LEVEL"] = cfg.log_level
