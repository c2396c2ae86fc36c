"""Caller-facing handle for one deployed Forth token.

Mirrors how a client talks to the contract: bind a sender with `connect()`,
send state-changing calls (raising ApplyError with the revert reason when the
transaction reverts), and read through the view methods.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from forth.crypto.sig import normalize_address
from forth.runtime.errors import ApplyError
from forth.runtime.executor import ChainExecutor
from forth.runtime.tx_types import TxEnvelope, TxReceipt

Json = Dict[str, Any]


def _address_of(who: Any) -> str:
    """Accept a bare address or any object exposing `.address`."""
    return normalize_address(getattr(who, "address", who))


class TokenContract:
    def __init__(self, executor: ChainExecutor, address: str, sender: Any) -> None:
        self.executor = executor
        self.address = normalize_address(address)
        self.sender = _address_of(sender)

    @classmethod
    def deploy(
        cls,
        executor: ChainExecutor,
        *,
        deployer: Any,
        account: Any,
        minter: Any,
        minting_allowed_after: int,
    ) -> "TokenContract":
        receipt = executor.deploy_token(
            deployer=_address_of(deployer),
            account=_address_of(account),
            minter=_address_of(minter),
            minting_allowed_after=int(minting_allowed_after),
        )
        if not receipt.ok:
            raise ApplyError.from_receipt(receipt)
        return cls(executor, receipt.result["contract_address"], deployer)

    def connect(self, sender: Any) -> "TokenContract":
        return TokenContract(self.executor, self.address, sender)

    def _send(self, tx_type: str, payload: Json) -> TxReceipt:
        receipt = self.executor.submit(
            TxEnvelope(tx_type=tx_type, signer=self.sender, payload=payload, to=self.address)
        )
        if not receipt.ok:
            raise ApplyError.from_receipt(receipt)
        return receipt

    # ----------------------------
    # State-changing calls
    # ----------------------------

    def transfer(self, to: Any, amount: int) -> TxReceipt:
        return self._send("TRANSFER", {"to": _address_of(to), "amount": int(amount)})

    def transfer_from(self, src: Any, to: Any, amount: int) -> TxReceipt:
        return self._send("TRANSFER_FROM", {"src": _address_of(src), "to": _address_of(to), "amount": int(amount)})

    def approve(self, spender: Any, amount: int) -> TxReceipt:
        return self._send("APPROVE", {"spender": _address_of(spender), "amount": int(amount)})

    def permit(self, owner: Any, spender: Any, value: int, deadline: int, v: int, r: str, s: str) -> TxReceipt:
        return self._send(
            "PERMIT",
            {
                "owner": _address_of(owner),
                "spender": _address_of(spender),
                "value": int(value),
                "deadline": int(deadline),
                "v": int(v),
                "r": r,
                "s": s,
            },
        )

    def delegate(self, delegatee: Any) -> TxReceipt:
        return self._send("DELEGATE", {"delegatee": _address_of(delegatee)})

    def delegate_by_sig(self, delegatee: Any, nonce: int, expiry: int, v: int, r: str, s: str) -> TxReceipt:
        return self._send(
            "DELEGATE_BY_SIG",
            {"delegatee": _address_of(delegatee), "nonce": int(nonce), "expiry": int(expiry), "v": int(v), "r": r, "s": s},
        )

    def mint(self, to: Any, amount: int) -> TxReceipt:
        return self._send("MINT", {"to": _address_of(to), "amount": int(amount)})

    def set_minter(self, minter: Any) -> TxReceipt:
        return self._send("SET_MINTER", {"minter": _address_of(minter)})

    def burn(self, amount: int) -> TxReceipt:
        return self._send("BURN", {"amount": int(amount)})

    def burn_from(self, account: Any, amount: int) -> TxReceipt:
        return self._send("BURN_FROM", {"account": _address_of(account), "amount": int(amount)})

    # ----------------------------
    # Views
    # ----------------------------

    def _call(self, query: str, *args: Any) -> Any:
        return self.executor.call(self.address, query, *args)

    def name(self) -> str:
        return self._call("name")

    def symbol(self) -> str:
        return self._call("symbol")

    def decimals(self) -> int:
        return self._call("decimals")

    def total_supply(self) -> int:
        return self._call("totalSupply")

    def balance_of(self, account: Any) -> int:
        return self._call("balanceOf", _address_of(account))

    def allowance(self, owner: Any, spender: Any) -> int:
        return self._call("allowance", _address_of(owner), _address_of(spender))

    def nonces(self, account: Any) -> int:
        return self._call("nonces", _address_of(account))

    def delegates(self, account: Any) -> str:
        return self._call("delegates", _address_of(account))

    def num_checkpoints(self, account: Any) -> int:
        return self._call("numCheckpoints", _address_of(account))

    def checkpoints(self, account: Any, index: int) -> Optional[Json]:
        return self._call("checkpoints", _address_of(account), index)

    def get_current_votes(self, account: Any) -> int:
        return self._call("getCurrentVotes", _address_of(account))

    def get_prior_votes(self, account: Any, block_number: int) -> int:
        return self._call("getPriorVotes", _address_of(account), block_number)

    def minter(self) -> str:
        return self._call("minter")

    def minting_allowed_after(self) -> int:
        return self._call("mintingAllowedAfter")

    def mint_cap(self) -> int:
        return self._call("mintCap")

    def minimum_time_between_mints(self) -> int:
        return self._call("minimumTimeBetweenMints")

    def domain_separator(self) -> bytes:
        return self._call("DOMAIN_SEPARATOR")
