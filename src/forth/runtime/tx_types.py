# src/forth/runtime/tx_types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class BlockContext:
    """The block a transaction executes in (block.number / block.timestamp)."""

    number: int
    timestamp: int


@dataclass(frozen=True)
class TxEnvelope:
    tx_type: str
    signer: str
    payload: Dict[str, Any]
    to: str = ""
    nonce: Optional[int] = None

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        nonce = j.get("nonce")
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")),
            signer=str(j.get("signer", "")),
            payload=dict(j.get("payload", {}) or {}),
            to=str(j.get("to", "") or ""),
            nonce=(None if nonce is None else int(nonce)),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "payload": self.payload,
            "to": self.to,
            "nonce": self.nonce,
        }


@dataclass
class TxReceipt:
    ok: bool
    tx_hash: str
    tx_type: str
    sender: str
    to: str
    nonce: int
    block_number: int
    block_timestamp: int
    code: str = ""
    reason: str = ""
    details: Any = None
    result: Dict[str, Any] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ok": self.ok,
            "tx_hash": self.tx_hash,
            "tx_type": self.tx_type,
            "sender": self.sender,
            "to": self.to,
            "nonce": self.nonce,
            "block_number": self.block_number,
            "block_timestamp": self.block_timestamp,
            "result": self.result,
            "events": self.events,
        }
        if not self.ok:
            out["error"] = {"code": self.code, "reason": self.reason, "details": self.details}
        return out
