# src/forth/runtime/executor.py
from __future__ import annotations

import copy
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from forth.crypto.sig import contract_address, keccak256, normalize_address
from forth.ledger.amounts import as_uint256
from forth.ledger.constants import DEFAULT_CHAIN_ID, INITIAL_SUPPLY, MINIMUM_TIME_BETWEEN_MINTS, MINT_CAP_PERCENT
from forth.ledger.state import TokenView
from forth.runtime.apply.token import new_token_state
from forth.runtime.domain_dispatch import apply_tx, resolve_contract
from forth.runtime.errors import ApplyError
from forth.runtime.runtime_logging import log_event
from forth.runtime.state_invariants import ensure_state
from forth.runtime.tx_types import BlockContext, TxEnvelope, TxReceipt

Json = Dict[str, Any]

log = logging.getLogger("forth.executor")

# Contract view names -> TokenView members.
_QUERIES: Dict[str, str] = {
    "name": "name",
    "symbol": "symbol",
    "decimals": "decimals",
    "totalSupply": "total_supply",
    "balanceOf": "balance_of",
    "allowance": "allowance",
    "nonces": "nonces",
    "delegates": "delegates",
    "numCheckpoints": "num_checkpoints",
    "checkpoints": "checkpoint",
    "getCurrentVotes": "get_current_votes",
    "getPriorVotes": "get_prior_votes",
    "minter": "minter",
    "mintingAllowedAfter": "minting_allowed_after",
    "mintCap": "mint_cap",
    "minimumTimeBetweenMints": "minimum_time_between_mints",
    "DOMAIN_SEPARATOR": "domain_separator",
}
_QUERY_METHODS = frozenset(_QUERIES.values())


def _wall_clock_s() -> int:
    return int(time.time())


def _canon_json(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def _hex(b: bytes) -> str:
    return "0x" + b.hex()


@dataclass(frozen=True)
class Block:
    number: int
    timestamp: int
    hash: str
    parent_hash: str
    tx_hashes: Tuple[str, ...] = ()

    def to_json(self) -> Json:
        return {
            "number": self.number,
            "timestamp": self.timestamp,
            "hash": self.hash,
            "parent_hash": self.parent_hash,
            "tx_hashes": list(self.tx_hashes),
        }


class ExecutorError(RuntimeError):
    pass


class ChainExecutor:
    """In-process chain simulator executing Forth token transactions.

    Every submitted transaction is mined into its own block (automine). State
    changes are applied to a deep copy and committed only on success; a
    reverted transaction is still included and still consumes the sender's
    transaction nonce.
    """

    def __init__(
        self,
        *,
        chain_id: int = DEFAULT_CHAIN_ID,
        genesis_timestamp: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if int(chain_id) <= 0:
            raise ExecutorError(f"chain_id must be > 0; got {chain_id}")

        self.chain_id = int(chain_id)
        self._clock: Callable[[], int] = clock or _wall_clock_s
        self._lock = threading.RLock()

        genesis_ts = int(genesis_timestamp) if genesis_timestamp else int(self._clock())
        # Chain time = clock() + offset; mine_block(timestamp) moves the offset.
        self._time_offset = genesis_ts - int(self._clock())

        self.state: Json = {"chain_id": self.chain_id, "contracts": {}, "tx_nonces": {}}
        ensure_state(self.state)

        self._blocks: List[Block] = []
        self._receipts: Dict[str, TxReceipt] = {}
        self._snapshots: Dict[int, Tuple[Json, List[Block], Dict[str, TxReceipt], int]] = {}
        self._next_snapshot_id = 1

        self._blocks.append(self._seal(BlockContext(number=0, timestamp=genesis_ts), parent_hash=_hex(b"\x00" * 32), tx_hashes=()))

    # ----------------------------
    # Blocks + time
    # ----------------------------

    @property
    def head(self) -> Block:
        return self._blocks[-1]

    @property
    def pending_block_number(self) -> int:
        return self.head.number + 1

    def block(self, number: int) -> Optional[Block]:
        n = int(number)
        if 0 <= n < len(self._blocks):
            return self._blocks[n]
        return None

    def _now(self) -> int:
        return int(self._clock()) + int(self._time_offset)

    def _next_context(self) -> BlockContext:
        head = self.head
        return BlockContext(number=head.number + 1, timestamp=max(self._now(), head.timestamp))

    def _seal(self, ctx: BlockContext, *, parent_hash: str, tx_hashes: Tuple[str, ...]) -> Block:
        header = {
            "chain_id": self.chain_id,
            "number": int(ctx.number),
            "timestamp": int(ctx.timestamp),
            "parent_hash": parent_hash,
            "tx_hashes": list(tx_hashes),
        }
        block_hash = _hex(keccak256(_canon_json(header).encode("utf-8")))
        return Block(
            number=int(ctx.number),
            timestamp=int(ctx.timestamp),
            hash=block_hash,
            parent_hash=parent_hash,
            tx_hashes=tuple(tx_hashes),
        )

    def _append_block(self, ctx: BlockContext, tx_hashes: Tuple[str, ...]) -> Block:
        blk = self._seal(ctx, parent_hash=self.head.hash, tx_hashes=tx_hashes)
        self._blocks.append(blk)
        return blk

    def mine_block(self, timestamp: Optional[int] = None) -> Block:
        """Mine an empty block, optionally at `timestamp` (unix seconds).

        Later blocks continue from the new time; timestamps never decrease.
        """
        with self._lock:
            if timestamp is not None:
                ts = int(timestamp)
                if ts < self.head.timestamp:
                    raise ExecutorError(f"timestamp {ts} is before head timestamp {self.head.timestamp}")
                self._time_offset = ts - int(self._clock())
            blk = self._append_block(self._next_context(), ())
            log_event(log, "block_mined", number=blk.number, timestamp=blk.timestamp, txs=0)
            return blk

    # ----------------------------
    # Accounts
    # ----------------------------

    def tx_nonce(self, account: str) -> int:
        return int(self.state["tx_nonces"].get(normalize_address(account), 0))

    def contract_address(self, deployer: str, nonce: Optional[int] = None) -> str:
        n = self.tx_nonce(deployer) if nonce is None else int(nonce)
        return contract_address(deployer=deployer, nonce=n)

    # ----------------------------
    # Reads
    # ----------------------------

    def read_state(self) -> Json:
        return self.state

    def contracts(self) -> List[str]:
        return sorted(self.state["contracts"].keys())

    def view(self, address: str) -> TokenView:
        with self._lock:
            try:
                tok = resolve_contract(self.state, address)
            except ApplyError as e:
                raise ExecutorError(f"{e.reason}: {address}") from e
            return TokenView.from_state(tok)

    def call(self, address: str, query: str, *args: Any) -> Any:
        """Read-only query against the pending block, by contract function name.

        Accepts the contract's camelCase names (`balanceOf`, `getPriorVotes`,
        `DOMAIN_SEPARATOR`, ...) or their snake_case equivalents.
        """
        name = _QUERIES.get(query, query)
        if name not in _QUERY_METHODS:
            raise ExecutorError(f"unknown query: {query}")
        with self._lock:
            view = self.view(address)
            if name == "get_prior_votes":
                return view.get_prior_votes(*args, pending_block=self.pending_block_number)
            target = getattr(view, name)
            return target(*args) if callable(target) else target

    def receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        return self._receipts.get(str(tx_hash))

    # ----------------------------
    # Transactions
    # ----------------------------

    def deploy_token(
        self,
        *,
        deployer: str,
        account: str,
        minter: str,
        minting_allowed_after: int,
        initial_supply: int = INITIAL_SUPPLY,
        mint_cap: int = MINT_CAP_PERCENT,
        minimum_time_between_mints: int = MINIMUM_TIME_BETWEEN_MINTS,
    ) -> TxReceipt:
        env = TxEnvelope(
            tx_type="DEPLOY",
            signer=deployer,
            payload={
                "account": account,
                "minter": minter,
                "minting_allowed_after": int(minting_allowed_after),
                "initial_supply": int(initial_supply),
                "mint_cap": int(mint_cap),
                "minimum_time_between_mints": int(minimum_time_between_mints),
            },
        )
        return self.submit(env)

    def submit(self, env: Any) -> TxReceipt:
        """Admit, execute and mine one transaction.

        Raises ApplyError only for admission failures (malformed sender or
        nonce mismatch); those are never mined. Execution failures come back
        as a receipt with ok=False.
        """
        env_norm = TxEnvelope.from_json(env)

        with self._lock:
            try:
                sender = normalize_address(env_norm.signer)
            except ValueError:
                raise ApplyError("invalid_tx", "bad_signer", {"signer": env_norm.signer})

            expected = self.tx_nonce(sender)
            if env_norm.nonce is not None and int(env_norm.nonce) != expected:
                raise ApplyError("invalid_tx", "bad_nonce", {"expected": expected, "got": int(env_norm.nonce)})

            tx_type = str(env_norm.tx_type or "").strip().upper()
            ctx = self._next_context()
            tx_hash = _hex(
                keccak256(
                    _canon_json(
                        {
                            "chain_id": self.chain_id,
                            "sender": sender,
                            "nonce": expected,
                            "tx_type": tx_type,
                            "to": env_norm.to,
                            "payload": env_norm.payload,
                        }
                    ).encode("utf-8")
                )
            )

            working: Json = copy.deepcopy(self.state)
            result: Json = {}
            events: List[Json] = []
            err: Optional[ApplyError] = None
            to = str(env_norm.to or "")

            try:
                if tx_type == "DEPLOY":
                    to = contract_address(deployer=sender, nonce=expected)
                    result, events = self._apply_deploy(working, sender, to, env_norm.payload, ctx)
                else:
                    out = apply_tx(working, env_norm, ctx)
                    events = list(out.pop("events", []) or [])
                    result = out
            except ApplyError as e:
                err = e

            if err is None:
                self.state = working

            # Included either way: the sender pays for reverted txs too.
            self.state["tx_nonces"][sender] = expected + 1

            receipt = TxReceipt(
                ok=err is None,
                tx_hash=tx_hash,
                tx_type=tx_type,
                sender=sender,
                to=to,
                nonce=expected,
                block_number=ctx.number,
                block_timestamp=ctx.timestamp,
                code=(err.code if err else ""),
                reason=(err.reason if err else ""),
                details=(err.details if err else None),
                result=result,
                events=events if err is None else [],
            )
            self._receipts[tx_hash] = receipt
            self._append_block(ctx, (tx_hash,))

            if err is None:
                log_event(log, "tx_applied", tx_hash=tx_hash, tx_type=tx_type, sender=sender, to=to, block=ctx.number)
            else:
                log_event(
                    log,
                    "tx_reverted" if err.is_revert else "tx_rejected",
                    level=logging.WARNING,
                    tx_hash=tx_hash,
                    tx_type=tx_type,
                    sender=sender,
                    to=to,
                    block=ctx.number,
                    **err.to_json(),
                )
            return receipt

    def _apply_deploy(
        self,
        working: Json,
        sender: str,
        address: str,
        payload: Json,
        ctx: BlockContext,
    ) -> Tuple[Json, List[Json]]:
        p = payload if isinstance(payload, dict) else {}
        if address in working["contracts"]:
            raise ApplyError("invalid_state", "contract_address_in_use", {"address": address})

        try:
            tok, events = new_token_state(
                address=address,
                chain_id=self.chain_id,
                account=p.get("account") or sender,
                minter=p.get("minter") or sender,
                minting_allowed_after=as_uint256(p.get("minting_allowed_after", 0), field="minting_allowed_after"),
                block=ctx,
                initial_supply=as_uint256(p.get("initial_supply", INITIAL_SUPPLY), field="initial_supply"),
                mint_cap=as_uint256(p.get("mint_cap", MINT_CAP_PERCENT), field="mint_cap"),
                minimum_time_between_mints=as_uint256(
                    p.get("minimum_time_between_mints", MINIMUM_TIME_BETWEEN_MINTS),
                    field="minimum_time_between_mints",
                ),
            )
        except (TypeError, ValueError) as e:
            raise ApplyError("invalid_payload", "bad_deploy_params", {"error": str(e)}) from e

        working["contracts"][address] = tok
        return {"applied": "DEPLOY", "contract_address": address}, events

    # ----------------------------
    # Snapshots (test fixtures)
    # ----------------------------

    def snapshot(self) -> int:
        with self._lock:
            sid = self._next_snapshot_id
            self._next_snapshot_id += 1
            self._snapshots[sid] = (
                copy.deepcopy(self.state),
                list(self._blocks),
                dict(self._receipts),
                int(self._time_offset),
            )
            return sid

    def revert(self, snapshot_id: int) -> None:
        """Restore a snapshot. Later snapshots are discarded; this one stays usable."""
        with self._lock:
            snap = self._snapshots.get(int(snapshot_id))
            if snap is None:
                raise ExecutorError(f"unknown snapshot: {snapshot_id}")
            state, blocks, receipts, offset = snap
            self.state = copy.deepcopy(state)
            self._blocks = list(blocks)
            self._receipts = dict(receipts)
            self._time_offset = int(offset)
            for sid in [s for s in self._snapshots if s > int(snapshot_id)]:
                del self._snapshots[sid]
