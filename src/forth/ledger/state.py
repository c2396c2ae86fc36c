# src/forth/ledger/state.py
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from forth.crypto.eip712 import domain_separator
from forth.crypto.sig import ZERO_ADDRESS, normalize_address
from forth.runtime.errors import ApplyError

Json = Dict[str, Any]


@dataclass(frozen=True, slots=True)
class TokenView:
    """
    Immutable read-only view of one token contract's state.
    """

    address: str
    name: str = ""
    symbol: str = ""
    decimals: int = 0
    chain_id: int = 0

    total_supply: int = 0
    minter: str = ZERO_ADDRESS
    minting_allowed_after: int = 0
    mint_cap: int = 0
    minimum_time_between_mints: int = 0

    balances: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    nonces_by_account: Dict[str, int] = field(default_factory=dict)
    delegates_by_account: Dict[str, str] = field(default_factory=dict)
    checkpoints: Dict[str, List[Json]] = field(default_factory=dict)

    @classmethod
    def from_state(cls, tok: Json) -> "TokenView":
        return cls(
            address=str(tok.get("address", "")),
            name=str(tok.get("name", "")),
            symbol=str(tok.get("symbol", "")),
            decimals=int(tok.get("decimals", 0)),
            chain_id=int(tok.get("chain_id", 0)),
            total_supply=int(tok.get("total_supply", 0)),
            minter=str(tok.get("minter") or ZERO_ADDRESS),
            minting_allowed_after=int(tok.get("minting_allowed_after", 0)),
            mint_cap=int(tok.get("mint_cap", 0)),
            minimum_time_between_mints=int(tok.get("minimum_time_between_mints", 0)),
            balances=copy.deepcopy(tok.get("balances") or {}),
            allowances=copy.deepcopy(tok.get("allowances") or {}),
            nonces_by_account=copy.deepcopy(tok.get("nonces") or {}),
            delegates_by_account=copy.deepcopy(tok.get("delegates") or {}),
            checkpoints=copy.deepcopy(tok.get("checkpoints") or {}),
        )

    def balance_of(self, account: str) -> int:
        return int(self.balances.get(normalize_address(account), 0))

    def allowance(self, owner: str, spender: str) -> int:
        row = self.allowances.get(normalize_address(owner)) or {}
        return int(row.get(normalize_address(spender), 0))

    def nonces(self, account: str) -> int:
        return int(self.nonces_by_account.get(normalize_address(account), 0))

    def delegates(self, account: str) -> str:
        return str(self.delegates_by_account.get(normalize_address(account)) or ZERO_ADDRESS)

    def num_checkpoints(self, account: str) -> int:
        return len(self.checkpoints.get(normalize_address(account)) or [])

    def checkpoint(self, account: str, index: int) -> Optional[Json]:
        cps = self.checkpoints.get(normalize_address(account)) or []
        if 0 <= int(index) < len(cps):
            return dict(cps[int(index)])
        return None

    def get_current_votes(self, account: str) -> int:
        cps = self.checkpoints.get(normalize_address(account)) or []
        if not cps:
            return 0
        return int(cps[-1]["votes"])

    def get_prior_votes(self, account: str, block_number: int, *, pending_block: int) -> int:
        """Votes `account` had at the end of `block_number`.

        `block_number` must be finalized, i.e. strictly below the pending block.
        """
        if int(block_number) >= int(pending_block):
            raise ApplyError("not_determined", "Forth::getPriorVotes: not yet determined", {"block": int(block_number)})

        cps = self.checkpoints.get(normalize_address(account)) or []
        if not cps:
            return 0

        # Most recent balance
        if int(cps[-1]["from_block"]) <= int(block_number):
            return int(cps[-1]["votes"])

        # Implicit zero balance
        if int(cps[0]["from_block"]) > int(block_number):
            return 0

        lower = 0
        upper = len(cps) - 1
        while upper > lower:
            center = upper - (upper - lower) // 2
            cp = cps[center]
            if int(cp["from_block"]) == int(block_number):
                return int(cp["votes"])
            if int(cp["from_block"]) < int(block_number):
                lower = center
            else:
                upper = center - 1
        return int(cps[lower]["votes"])

    def domain_separator(self) -> bytes:
        return domain_separator(name=self.name, chain_id=self.chain_id, verifying_contract=self.address)

    def metadata(self) -> Json:
        return {
            "address": self.address,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "chain_id": self.chain_id,
            "total_supply": self.total_supply,
            "minter": self.minter,
            "minting_allowed_after": self.minting_allowed_after,
            "mint_cap": self.mint_cap,
            "minimum_time_between_mints": self.minimum_time_between_mints,
        }
