# src/forth/ledger/constants.py
"""Forth token constants.

- Name "Ampleforth Governance", symbol FORTH, 18 decimals
- Initial supply: 15,000,000 FORTH credited to the deployment account
- Mint cap: 2% of total supply per mint
- At most one mint per 365 days
"""

from __future__ import annotations

TOKEN_NAME: str = "Ampleforth Governance"
TOKEN_SYMBOL: str = "FORTH"
TOKEN_DECIMALS: int = 18

UNIT: int = 10**TOKEN_DECIMALS

INITIAL_SUPPLY_FORTH: int = 15_000_000
INITIAL_SUPPLY: int = INITIAL_SUPPLY_FORTH * UNIT

# Percent of current total supply
MINT_CAP_PERCENT: int = 2

MINIMUM_TIME_BETWEEN_MINTS: int = 365 * 24 * 60 * 60

# Word sizes
UINT256_MAX: int = 2**256 - 1
UINT96_MAX: int = 2**96 - 1
UINT32_MAX: int = 2**32 - 1

# uint256(-1) approvals map to this and are never decremented
INFINITE_ALLOWANCE: int = UINT96_MAX

# ganache reports chainId 1 to contracts
DEFAULT_CHAIN_ID: int = 1


def expand_to_18_decimals(n: int) -> int:
    return int(n) * UNIT
