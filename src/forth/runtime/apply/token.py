# src/forth/runtime/apply/token.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set, Tuple

from forth.crypto.eip712 import permit_digest
from forth.crypto.sig import ZERO_ADDRESS, normalize_address, recover_address
from forth.ledger.amounts import add96, as_uint256, safe96, sub96
from forth.ledger.constants import (
    INFINITE_ALLOWANCE,
    INITIAL_SUPPLY,
    MINIMUM_TIME_BETWEEN_MINTS,
    MINT_CAP_PERCENT,
    TOKEN_DECIMALS,
    TOKEN_NAME,
    TOKEN_SYMBOL,
    UINT256_MAX,
)
from forth.runtime.apply.delegation import delegate_of, emit, move_delegates, payload_address
from forth.runtime.errors import ApplyError
from forth.runtime.state_invariants import ensure_token_state
from forth.runtime.tx_types import BlockContext, TxEnvelope

Json = Dict[str, Any]


def _payload(env: TxEnvelope) -> Json:
    return env.payload if isinstance(env.payload, dict) else {}


def _allowance_amount(raw: int, reason: str) -> int:
    """uint256(-1) means "unlimited"; anything else must fit in 96 bits."""
    if raw == UINT256_MAX:
        return INFINITE_ALLOWANCE
    return safe96(raw, reason)


def _set_allowance(tok: Json, owner: str, spender: str, amount: int, events: List[Json]) -> None:
    row = tok["allowances"].get(owner)
    if not isinstance(row, dict):
        row = {}
        tok["allowances"][owner] = row
    row[spender] = int(amount)
    emit(events, tok, "Approval", owner=owner, spender=spender, amount=int(amount))


def _spend_allowance(tok: Json, owner: str, spender: str, amount: int, reason: str, events: List[Json]) -> None:
    """Consume `spender`'s allowance from `owner` unless it is unlimited or self-spend."""
    current = int((tok["allowances"].get(owner) or {}).get(spender, 0))
    if spender == owner or current == INFINITE_ALLOWANCE:
        return
    remaining = sub96(current, amount, reason, code="insufficient_allowance")
    _set_allowance(tok, owner, spender, remaining, events)


def _transfer_tokens(tok: Json, src: str, dst: str, amount: int, block: BlockContext, events: List[Json]) -> None:
    if src == ZERO_ADDRESS:
        raise ApplyError("zero_address", "Forth::_transferTokens: cannot transfer from the zero address", {"from": src})
    if dst == ZERO_ADDRESS:
        raise ApplyError("zero_address", "Forth::_transferTokens: cannot transfer to the zero address", {"to": dst})

    balances = tok["balances"]
    balances[src] = sub96(
        int(balances.get(src, 0)),
        amount,
        "Forth::_transferTokens: transfer amount exceeds balance",
        code="insufficient_balance",
    )
    balances[dst] = add96(int(balances.get(dst, 0)), amount, "Forth::_transferTokens: transfer amount overflows")
    emit(events, tok, "Transfer", src=src, dst=dst, amount=int(amount))

    move_delegates(tok, delegate_of(tok, src), delegate_of(tok, dst), amount, block, events)


def _burn(tok: Json, account: str, amount: int, block: BlockContext, events: List[Json]) -> None:
    if account == ZERO_ADDRESS:
        raise ApplyError("zero_address", "Forth::_burn: burn from the zero address", {"account": account})

    tok["total_supply"] = sub96(
        int(tok["total_supply"]),
        amount,
        "Forth::_burn: amount exceeds totalSupply",
        code="insufficient_supply",
    )
    balances = tok["balances"]
    balances[account] = sub96(
        int(balances.get(account, 0)),
        amount,
        "Forth::_burn: amount exceeds balance",
        code="insufficient_balance",
    )
    emit(events, tok, "Transfer", src=account, dst=ZERO_ADDRESS, amount=int(amount))

    move_delegates(tok, delegate_of(tok, account), ZERO_ADDRESS, amount, block, events)


def new_token_state(
    *,
    address: str,
    chain_id: int,
    account: str,
    minter: str,
    minting_allowed_after: int,
    block: BlockContext,
    initial_supply: int = INITIAL_SUPPLY,
    mint_cap: int = MINT_CAP_PERCENT,
    minimum_time_between_mints: int = MINIMUM_TIME_BETWEEN_MINTS,
) -> Tuple[Json, List[Json]]:
    """Constructor: build a fresh token state with the whole supply on `account`.

    Returns (token_state, events).
    """
    if int(initial_supply) < 0:
        raise ApplyError("invalid_payload", "bad_initial_supply", {"initial_supply": initial_supply})
    if not 0 <= int(mint_cap) <= 100:
        raise ApplyError("invalid_payload", "bad_mint_cap", {"mint_cap": mint_cap})
    if int(minimum_time_between_mints) < 0:
        raise ApplyError(
            "invalid_payload",
            "bad_minimum_time_between_mints",
            {"minimum_time_between_mints": minimum_time_between_mints},
        )

    if int(minting_allowed_after) < int(block.timestamp):
        raise ApplyError(
            "time_locked",
            "Forth::constructor: minting can only begin after deployment",
            {"minting_allowed_after": int(minting_allowed_after), "now": int(block.timestamp)},
        )

    account_n = normalize_address(account)
    minter_n = normalize_address(minter)
    supply = safe96(int(initial_supply), "Forth::constructor: initial supply exceeds 96 bits")

    tok: Json = {
        "address": normalize_address(address),
        "name": TOKEN_NAME,
        "symbol": TOKEN_SYMBOL,
        "decimals": TOKEN_DECIMALS,
        "chain_id": int(chain_id),
        "total_supply": supply,
        "minter": minter_n,
        "minting_allowed_after": int(minting_allowed_after),
        "mint_cap": int(mint_cap),
        "minimum_time_between_mints": int(minimum_time_between_mints),
    }
    ensure_token_state(tok)

    events: List[Json] = []
    tok["balances"][account_n] = supply
    emit(events, tok, "Transfer", src=ZERO_ADDRESS, dst=account_n, amount=supply)
    emit(events, tok, "MinterChanged", minter=ZERO_ADDRESS, newMinter=minter_n)
    return tok, events


def _apply_transfer(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    dst = payload_address(p, "to")
    amount = safe96(as_uint256(p.get("amount"), field="amount"), "Forth::transfer: amount exceeds 96 bits")
    src = normalize_address(env.signer)

    events: List[Json] = []
    _transfer_tokens(tok, src, dst, amount, block, events)
    return {"applied": "TRANSFER", "from": src, "to": dst, "amount": amount, "events": events}


def _apply_transfer_from(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    src = payload_address(p, "src")
    dst = payload_address(p, "to")
    amount = safe96(as_uint256(p.get("amount"), field="amount"), "Forth::transferFrom: amount exceeds 96 bits")
    spender = normalize_address(env.signer)

    events: List[Json] = []
    _spend_allowance(
        tok,
        src,
        spender,
        amount,
        "Forth::transferFrom: transfer amount exceeds spender allowance",
        events,
    )
    _transfer_tokens(tok, src, dst, amount, block, events)
    return {"applied": "TRANSFER_FROM", "from": src, "to": dst, "spender": spender, "amount": amount, "events": events}


def _apply_approve(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    spender = payload_address(p, "spender")
    amount = _allowance_amount(as_uint256(p.get("amount"), field="amount"), "Forth::approve: amount exceeds 96 bits")
    owner = normalize_address(env.signer)

    events: List[Json] = []
    _set_allowance(tok, owner, spender, amount, events)
    return {"applied": "APPROVE", "owner": owner, "spender": spender, "amount": amount, "events": events}


def _apply_permit(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    """
    EIP-2612 permit. Anyone may relay it; authorization comes from the
    signature alone. The owner's nonce is consumed by the digest.
    """
    p = _payload(env)
    owner = payload_address(p, "owner")
    spender = payload_address(p, "spender")
    raw_value = as_uint256(p.get("value"), field="value")
    deadline = as_uint256(p.get("deadline"), field="deadline")
    amount = _allowance_amount(raw_value, "Forth::permit: amount exceeds 96 bits")

    nonce = int(tok["nonces"].get(owner, 0))
    tok["nonces"][owner] = nonce + 1

    digest = permit_digest(
        name=str(tok["name"]),
        chain_id=int(tok["chain_id"]),
        verifying_contract=str(tok["address"]),
        owner=owner,
        spender=spender,
        value=raw_value,
        nonce=nonce,
        deadline=deadline,
    )
    signatory = recover_address(digest=digest, v=p.get("v"), r=p.get("r"), s=p.get("s"))
    if signatory == ZERO_ADDRESS:
        raise ApplyError("invalid_signature", "Forth::permit: invalid signature", {"owner": owner})
    if signatory != owner:
        raise ApplyError("unauthorized", "Forth::permit: unauthorized", {"owner": owner, "signatory": signatory})
    if int(block.timestamp) > deadline:
        raise ApplyError("expired", "Forth::permit: signature expired", {"deadline": deadline, "now": int(block.timestamp)})

    events: List[Json] = []
    _set_allowance(tok, owner, spender, amount, events)
    return {"applied": "PERMIT", "owner": owner, "spender": spender, "amount": amount, "nonce": nonce, "events": events}


def _apply_mint(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    signer = normalize_address(env.signer)

    if signer != str(tok["minter"]):
        raise ApplyError("unauthorized", "Forth::mint: only the minter can mint", {"signer": signer})

    now = int(block.timestamp)
    if now < int(tok["minting_allowed_after"]):
        raise ApplyError(
            "time_locked",
            "Forth::mint: minting not allowed yet",
            {"until": int(tok["minting_allowed_after"]), "now": now},
        )

    dst = payload_address(p, "to")
    if dst == ZERO_ADDRESS:
        raise ApplyError("zero_address", "Forth::mint: cannot transfer to the zero address", {"to": dst})

    # Gate closes before the cap check; a failing mint reverts both anyway.
    tok["minting_allowed_after"] = now + int(tok["minimum_time_between_mints"])

    amount = safe96(as_uint256(p.get("amount"), field="amount"), "Forth::mint: amount exceeds 96 bits")
    cap = int(tok["total_supply"]) * int(tok["mint_cap"]) // 100
    if amount > cap:
        raise ApplyError("cap_exceeded", "Forth::mint: exceeded mint cap", {"amount": amount, "cap": cap})

    tok["total_supply"] = safe96(int(tok["total_supply"]) + amount, "Forth::mint: totalSupply exceeds 96 bits")
    balances = tok["balances"]
    balances[dst] = add96(int(balances.get(dst, 0)), amount, "Forth::mint: transfer amount overflows")

    events: List[Json] = []
    emit(events, tok, "Transfer", src=ZERO_ADDRESS, dst=dst, amount=amount)
    move_delegates(tok, ZERO_ADDRESS, delegate_of(tok, dst), amount, block, events)
    return {
        "applied": "MINT",
        "to": dst,
        "amount": amount,
        "minting_allowed_after": int(tok["minting_allowed_after"]),
        "events": events,
    }


def _apply_set_minter(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    signer = normalize_address(env.signer)
    if signer != str(tok["minter"]):
        raise ApplyError(
            "unauthorized",
            "Forth::setMinter: only the minter can change the minter address",
            {"signer": signer},
        )

    new_minter = payload_address(p, "minter")
    events: List[Json] = []
    emit(events, tok, "MinterChanged", minter=str(tok["minter"]), newMinter=new_minter)
    tok["minter"] = new_minter
    return {"applied": "SET_MINTER", "minter": new_minter, "events": events}


def _apply_burn(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    amount = safe96(as_uint256(p.get("amount"), field="amount"), "Forth::burn: amount exceeds 96 bits")
    account = normalize_address(env.signer)

    events: List[Json] = []
    _burn(tok, account, amount, block, events)
    return {"applied": "BURN", "account": account, "amount": amount, "events": events}


def _apply_burn_from(tok: Json, env: TxEnvelope, block: BlockContext) -> Json:
    p = _payload(env)
    account = payload_address(p, "account")
    amount = safe96(as_uint256(p.get("amount"), field="amount"), "Forth::burnFrom: amount exceeds 96 bits")
    spender = normalize_address(env.signer)

    events: List[Json] = []
    _spend_allowance(tok, account, spender, amount, "Forth::burnFrom: amount exceeds allowance", events)
    _burn(tok, account, amount, block, events)
    return {"applied": "BURN_FROM", "account": account, "spender": spender, "amount": amount, "events": events}


TOKEN_TX_TYPES: Set[str] = {
    "TRANSFER",
    "TRANSFER_FROM",
    "APPROVE",
    "PERMIT",
    "MINT",
    "SET_MINTER",
    "BURN",
    "BURN_FROM",
}


def apply_token(tok: Json, env: TxEnvelope, block: BlockContext) -> Optional[Json]:
    """
    Returns:
      - dict: applied result, including emitted events
      - None: tx_type not in the token domain
    """
    t = str(env.tx_type).strip().upper()
    if t not in TOKEN_TX_TYPES:
        return None

    ensure_token_state(tok)

    if t == "TRANSFER":
        return _apply_transfer(tok, env, block)

    if t == "TRANSFER_FROM":
        return _apply_transfer_from(tok, env, block)

    if t == "APPROVE":
        return _apply_approve(tok, env, block)

    if t == "PERMIT":
        return _apply_permit(tok, env, block)

    if t == "MINT":
        return _apply_mint(tok, env, block)

    if t == "SET_MINTER":
        return _apply_set_minter(tok, env, block)

    if t == "BURN":
        return _apply_burn(tok, env, block)

    if t == "BURN_FROM":
        return _apply_burn_from(tok, env, block)

    return None


__all__ = ["TOKEN_TX_TYPES", "apply_token", "new_token_state"]
