# src/forth/runtime/deploy_config.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from forth.crypto.sig import normalize_address

Json = Dict[str, Any]

DEFAULT_MINTING_DELAY_S: int = 60 * 60


@dataclass(frozen=True, slots=True)
class DeploymentConfig:
    """Constructor parameters for one token deployment.

    Exactly one of `minting_allowed_after` (absolute unix seconds) or
    `minting_delay_s` (relative to the deploy block) is used; the absolute
    value wins when both are present.
    """

    deployer: str
    account: str
    minter: str
    minting_allowed_after: Optional[int] = None
    minting_delay_s: int = DEFAULT_MINTING_DELAY_S

    def resolve_minting_allowed_after(self, now_s: int) -> int:
        if self.minting_allowed_after is not None:
            return int(self.minting_allowed_after)
        return int(now_s) + int(self.minting_delay_s)


def _read_mapping(p: Path) -> Json:
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        obj = yaml.safe_load(text)
    else:
        obj = json.loads(text)
    if not isinstance(obj, dict):
        raise ValueError("deployment config must be a mapping")
    return obj


def deployment_from_mapping(obj: Json) -> DeploymentConfig:
    """
    Supported input shape:
      { "deployer": "0x...", "account": "0x...", "minter": "0x...",
        "minting_allowed_after": 1700000000 }            # or "minting_delay_s": 3600

    `account` and `minter` default to the deployer.
    """
    deployer_raw = obj.get("deployer")
    if deployer_raw is None:
        raise ValueError("deployment config requires 'deployer'")
    deployer = normalize_address(deployer_raw)

    account = normalize_address(obj.get("account") or deployer)
    minter = normalize_address(obj.get("minter") or deployer)

    allowed_after = obj.get("minting_allowed_after")
    if allowed_after is not None:
        allowed_after = int(allowed_after)
        if allowed_after < 0:
            raise ValueError("minting_allowed_after must be >= 0")

    delay = int(obj.get("minting_delay_s", DEFAULT_MINTING_DELAY_S))
    if delay < 0:
        raise ValueError("minting_delay_s must be >= 0")

    return DeploymentConfig(
        deployer=deployer,
        account=account,
        minter=minter,
        minting_allowed_after=allowed_after,
        minting_delay_s=delay,
    )


def load_deployment(path: str) -> DeploymentConfig:
    """Load a DeploymentConfig from a JSON or YAML file."""
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(str(p))
    return deployment_from_mapping(_read_mapping(p))
