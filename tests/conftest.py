from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure local "src/" takes precedence over any globally-installed "forth" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from forth.crypto.sig import contract_address  # noqa: E402
from forth.runtime.contract import TokenContract  # noqa: E402
from forth.runtime.executor import ChainExecutor  # noqa: E402
from forth.testing.sigtools import TestWallet, deterministic_wallet  # noqa: E402

# Frozen wall clock: chain time only moves through mine_block(timestamp).
NOW = 1_700_000_000


@pytest.fixture
def wallet() -> TestWallet:
    return deterministic_wallet(label="wallet")


@pytest.fixture
def other0() -> TestWallet:
    return deterministic_wallet(label="other0")


@pytest.fixture
def other1() -> TestWallet:
    return deterministic_wallet(label="other1")


@pytest.fixture
def executor() -> ChainExecutor:
    return ChainExecutor(chain_id=1, genesis_timestamp=NOW, clock=lambda: NOW)


@pytest.fixture
def forth(executor: ChainExecutor, wallet: TestWallet) -> TokenContract:
    """Governance fixture: full supply to the deployer, minter = future timelock."""
    now = executor.head.timestamp
    timelock_address = contract_address(deployer=wallet.address, nonce=1)
    return TokenContract.deploy(
        executor,
        deployer=wallet,
        account=wallet,
        minter=timelock_address,
        minting_allowed_after=now + 60 * 60,
    )


@pytest.fixture
def forth_self_minted(executor: ChainExecutor, wallet: TestWallet) -> TokenContract:
    """A deployment where the deployer is also the minter."""
    now = executor.head.timestamp
    return TokenContract.deploy(
        executor,
        deployer=wallet,
        account=wallet,
        minter=wallet,
        minting_allowed_after=now + 60 * 60,
    )
