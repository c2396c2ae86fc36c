from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from forth.ledger.constants import INITIAL_SUPPLY
from forth.runtime.chain_config import (
    ChainConfig,
    apply_chain_config_to_env,
    default_chain_config,
    load_chain_config,
    read_chain_config_file,
    validate_chain_config,
)
from forth.runtime.deploy_config import DEFAULT_MINTING_DELAY_S, deployment_from_mapping, load_deployment
from forth.runtime.executor_boot import ExecutorBootConfig, boot_config_from_env, build_executor
from forth.testing.sigtools import deterministic_wallet


def test_default_chain_config_is_prod(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FORTH_CHAIN_CONFIG_PATH", raising=False)
    cfg = load_chain_config()
    assert cfg == default_chain_config()
    assert cfg.mode == "prod"
    assert cfg.chain_id == 1


def test_read_chain_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = tmp_path / "chain.json"
    p.write_text(
        json.dumps({"chain_id": 31337, "mode": "DEV", "api_port": 9000, "log_level": "debug", "genesis_timestamp": 1_600_000_000}),
        encoding="utf-8",
    )

    cfg = read_chain_config_file(str(p))
    assert cfg.chain_id == 31337
    assert cfg.mode == "dev"
    assert cfg.api_port == 9000
    assert cfg.api_host == "127.0.0.1"
    assert cfg.log_level == "DEBUG"
    assert cfg.genesis_timestamp == 1_600_000_000

    monkeypatch.setenv("FORTH_CHAIN_CONFIG_PATH", str(p))
    assert load_chain_config() == cfg


@pytest.mark.parametrize(
    "raw",
    [
        {"chain_id": 0},
        {"mode": "yolo"},
        {"api_port": 70000},
        {"log_level": "LOUD"},
        {"genesis_timestamp": -1},
    ],
)
def test_invalid_chain_config_fails_fast(tmp_path: Path, raw: dict) -> None:
    p = tmp_path / "chain.json"
    p.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ValueError):
        read_chain_config_file(str(p))


def test_chain_config_must_be_an_object(tmp_path: Path) -> None:
    p = tmp_path / "chain.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_chain_config_file(str(p))


def test_apply_chain_config_to_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in ("FORTH_CHAIN_ID", "FORTH_MODE", "FORTH_API_HOST", "FORTH_API_PORT", "FORTH_LOG_LEVEL"):
        monkeypatch.setenv(k, "unset")

    cfg = ChainConfig(chain_id=5, mode="testnet", genesis_timestamp=0, api_host="0.0.0.0", api_port=8081, log_level="WARNING")
    validate_chain_config(cfg)
    apply_chain_config_to_env(cfg)

    assert os.environ["FORTH_CHAIN_ID"] == "5"
    assert os.environ["FORTH_MODE"] == "testnet"
    assert os.environ["FORTH_API_PORT"] == "8081"
    assert os.environ["FORTH_LOG_LEVEL"] == "WARNING"


def test_deployment_from_yaml(tmp_path: Path) -> None:
    deployer = deterministic_wallet(label="deployer").address
    minter = deterministic_wallet(label="timelock").address
    p = tmp_path / "deploy.yaml"
    p.write_text(
        f"deployer: '{deployer.lower()}'\nminter: '{minter}'\nminting_delay_s: 120\n",
        encoding="utf-8",
    )

    d = load_deployment(str(p))
    assert d.deployer == deployer
    assert d.account == deployer
    assert d.minter == minter
    assert d.minting_allowed_after is None
    assert d.resolve_minting_allowed_after(1_000) == 1_120


def test_deployment_from_json_with_absolute_time(tmp_path: Path) -> None:
    deployer = deterministic_wallet(label="deployer").address
    account = deterministic_wallet(label="treasury").address
    p = tmp_path / "deploy.json"
    p.write_text(
        json.dumps({"deployer": deployer, "account": account, "minting_allowed_after": 5_000, "minting_delay_s": 1}),
        encoding="utf-8",
    )

    d = load_deployment(str(p))
    assert d.account == account
    assert d.resolve_minting_allowed_after(1_000) == 5_000


def test_deployment_rejects_bad_input(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        deployment_from_mapping({})
    with pytest.raises(ValueError):
        deployment_from_mapping({"deployer": "not-an-address"})
    with pytest.raises(ValueError):
        deployment_from_mapping({"deployer": deterministic_wallet(label="d").address, "minting_delay_s": -1})
    with pytest.raises(FileNotFoundError):
        load_deployment(str(tmp_path / "missing.yaml"))

    assert deployment_from_mapping({"deployer": deterministic_wallet(label="d").address}).minting_delay_s == DEFAULT_MINTING_DELAY_S


def test_build_executor_deploys_configured_token(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    deployer = deterministic_wallet(label="deployer").address
    p = tmp_path / "deploy.json"
    p.write_text(json.dumps({"deployer": deployer}), encoding="utf-8")

    monkeypatch.delenv("FORTH_CHAIN_CONFIG_PATH", raising=False)
    monkeypatch.setenv("FORTH_DEPLOYMENT_PATH", str(p))

    cfg = boot_config_from_env()
    assert cfg.deployment is not None

    ex = build_executor(cfg)
    (address,) = ex.contracts()
    view = ex.view(address)
    assert view.balance_of(deployer) == INITIAL_SUPPLY
    assert view.minting_allowed_after == ex.block(0).timestamp + DEFAULT_MINTING_DELAY_S


def test_build_executor_without_deployment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FORTH_DEPLOYMENT_PATH", raising=False)
    ex = build_executor(ExecutorBootConfig(chain=default_chain_config()))
    assert ex.contracts() == []
    assert ex.chain_id == 1
