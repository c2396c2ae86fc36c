# src/forth/runtime/apply/delegation.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from forth.crypto.eip712 import delegation_digest
from forth.crypto.sig import ZERO_ADDRESS, normalize_address, recover_address
from forth.ledger.amounts import add96, as_uint256, safe32, sub96
from forth.runtime.errors import ApplyError
from forth.runtime.state_invariants import ensure_token_state
from forth.runtime.tx_types import BlockContext, TxEnvelope

Json = Dict[str, Any]


def emit(events: List[Json], tok: Json, name: str, **args: Any) -> None:
    events.append({"event": name, "address": str(tok.get("address", "")), "args": args})


def _checkpoints(tok: Json, account: str) -> List[Json]:
    cps = tok["checkpoints"].get(account)
    if not isinstance(cps, list):
        cps = []
        tok["checkpoints"][account] = cps
    return cps


def _current_votes(tok: Json, account: str) -> int:
    cps = tok["checkpoints"].get(account) or []
    return int(cps[-1]["votes"]) if cps else 0


def _write_checkpoint(
    tok: Json,
    delegatee: str,
    old_votes: int,
    new_votes: int,
    block: BlockContext,
    events: List[Json],
) -> None:
    block_number = safe32(int(block.number), "Forth::_writeCheckpoint: block number exceeds 32 bits")
    cps = _checkpoints(tok, delegatee)

    # One checkpoint per block: later writes in the same block overwrite it.
    if cps and int(cps[-1]["from_block"]) == block_number:
        cps[-1]["votes"] = int(new_votes)
    else:
        cps.append({"from_block": block_number, "votes": int(new_votes)})

    emit(events, tok, "DelegateVotesChanged", delegate=delegatee, previousBalance=int(old_votes), newBalance=int(new_votes))


def move_delegates(
    tok: Json,
    src_rep: str,
    dst_rep: str,
    amount: int,
    block: BlockContext,
    events: List[Json],
) -> None:
    """Move `amount` of vote weight from one delegate to another.

    The zero address stands for "nobody": weight leaving it is minted voting
    power, weight sent to it stops counting.
    """
    if src_rep == dst_rep or int(amount) <= 0:
        return

    if src_rep != ZERO_ADDRESS:
        src_old = _current_votes(tok, src_rep)
        src_new = sub96(src_old, amount, "Forth::_moveVotes: vote amount underflows")
        _write_checkpoint(tok, src_rep, src_old, src_new, block, events)

    if dst_rep != ZERO_ADDRESS:
        dst_old = _current_votes(tok, dst_rep)
        dst_new = add96(dst_old, amount, "Forth::_moveVotes: vote amount overflows")
        _write_checkpoint(tok, dst_rep, dst_old, dst_new, block, events)


def delegate(tok: Json, delegator: str, delegatee: str, block: BlockContext, events: List[Json]) -> None:
    """Point `delegator`'s edge at `delegatee` and move its own balance along.

    Weight that other accounts delegated to `delegator` stays where it is.
    """
    current = str(tok["delegates"].get(delegator) or ZERO_ADDRESS)
    balance = int(tok["balances"].get(delegator, 0))

    tok["delegates"][delegator] = delegatee
    emit(events, tok, "DelegateChanged", delegator=delegator, fromDelegate=current, toDelegate=delegatee)

    move_delegates(tok, current, delegatee, balance, block, events)


def delegate_of(tok: Json, account: str) -> str:
    return str(tok["delegates"].get(account) or ZERO_ADDRESS)


def payload_address(payload: Json, key: str) -> str:
    try:
        return normalize_address(payload.get(key))
    except ValueError:
        raise ApplyError("invalid_payload", f"bad_{key}", {key: payload.get(key)})


def _apply_delegate(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    payload = env.payload if isinstance(env.payload, dict) else {}
    delegatee = payload_address(payload, "delegatee")
    signer = normalize_address(env.signer)

    events: List[Json] = []
    delegate(tok, signer, delegatee, block, events)
    return {"applied": "DELEGATE", "delegator": signer, "delegatee": delegatee, "events": events}


def _apply_delegate_by_sig(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    payload = env.payload if isinstance(env.payload, dict) else {}
    delegatee = payload_address(payload, "delegatee")
    nonce = as_uint256(payload.get("nonce"), field="nonce")
    expiry = as_uint256(payload.get("expiry"), field="expiry")

    digest = delegation_digest(
        name=str(tok["name"]),
        chain_id=int(tok["chain_id"]),
        verifying_contract=str(tok["address"]),
        delegatee=delegatee,
        nonce=nonce,
        expiry=expiry,
    )
    signatory = recover_address(digest=digest, v=payload.get("v"), r=payload.get("r"), s=payload.get("s"))
    if signatory == ZERO_ADDRESS:
        raise ApplyError("invalid_signature", "Forth::delegateBySig: invalid signature", {"delegatee": delegatee})

    current_nonce = int(tok["nonces"].get(signatory, 0))
    if nonce != current_nonce:
        raise ApplyError("invalid_nonce", "Forth::delegateBySig: invalid nonce", {"expected": current_nonce, "got": nonce})
    tok["nonces"][signatory] = current_nonce + 1

    if int(block.timestamp) > expiry:
        raise ApplyError("expired", "Forth::delegateBySig: signature expired", {"expiry": expiry, "now": int(block.timestamp)})

    events: List[Json] = []
    delegate(tok, signatory, delegatee, block, events)
    return {"applied": "DELEGATE_BY_SIG", "delegator": signatory, "delegatee": delegatee, "events": events}


DELEGATION_TX_TYPES: Set[str] = {"DELEGATE", "DELEGATE_BY_SIG"}


def apply_delegation(tok: Json, env: TxEnvelope, block: BlockContext) -> Optional[Json]:
    """
    Returns:
      - dict: applied result, including emitted events
      - None: tx_type not in the delegation domain
    """
    t = str(env.tx_type).strip().upper()
    if t not in DELEGATION_TX_TYPES:
        return None

    ensure_token_state(tok)

    if t == "DELEGATE":
        return _apply_delegate(tok, env, block)

    if t == "DELEGATE_BY_SIG":
        return _apply_delegate_by_sig(tok, env, block)

    return None


__all__ = ["apply_delegation", "delegate", "delegate_of", "emit", "move_delegates", "payload_address"]
