# src/forth/runtime/executor_boot.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from forth.runtime.chain_config import ChainConfig, load_chain_config
from forth.runtime.deploy_config import DeploymentConfig, load_deployment
from forth.runtime.executor import ChainExecutor, ExecutorError
from forth.runtime.runtime_logging import log_event

log = logging.getLogger("forth.boot")


@dataclass
class ExecutorBootConfig:
    chain: ChainConfig
    deployment: Optional[DeploymentConfig] = None


def boot_config_from_env() -> ExecutorBootConfig:
    chain = load_chain_config()
    dep_path = (os.environ.get("FORTH_DEPLOYMENT_PATH") or "").strip()
    deployment = load_deployment(dep_path) if dep_path else None
    return ExecutorBootConfig(chain=chain, deployment=deployment)


def build_executor(cfg: Optional[ExecutorBootConfig] = None) -> ChainExecutor:
    """
    Build a ChainExecutor from an explicit boot config or, if omitted,
    from environment variables. When a deployment is configured the token is
    deployed in block 1 and boot fails if the constructor reverts.
    """
    c = cfg or boot_config_from_env()
    ex = ChainExecutor(chain_id=c.chain.chain_id, genesis_timestamp=c.chain.genesis_timestamp or None)

    if c.deployment is not None:
        d = c.deployment
        receipt = ex.deploy_token(
            deployer=d.deployer,
            account=d.account,
            minter=d.minter,
            minting_allowed_after=d.resolve_minting_allowed_after(ex.head.timestamp),
        )
        if not receipt.ok:
            raise ExecutorError(f"token deployment failed: {receipt.reason}")
        log_event(log, "token_deployed", address=receipt.to, deployer=d.deployer, minter=d.minter)

    return ex
