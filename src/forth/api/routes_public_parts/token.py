from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from forth.api.errors import ApiError
from forth.api.routes_public_parts.common import _address, _executor, _token_view
from forth.runtime.errors import ApplyError

router = APIRouter()

Json = Dict[str, Any]


@router.get("/token/{address}")
def token_get(address: str, request: Request) -> Json:
    view = _token_view(request, address)
    out = view.metadata()
    out["domain_separator"] = "0x" + view.domain_separator().hex()
    return {"ok": True, "token": out}


@router.get("/token/{address}/accounts/{account}")
def token_account(address: str, account: str, request: Request) -> Json:
    view = _token_view(request, address)
    acct = _address(account, field="account")
    return {
        "ok": True,
        "account": acct,
        "balance": view.balance_of(acct),
        "nonce": view.nonces(acct),
        "delegate": view.delegates(acct),
        "current_votes": view.get_current_votes(acct),
        "num_checkpoints": view.num_checkpoints(acct),
    }


@router.get("/token/{address}/allowance/{owner}/{spender}")
def token_allowance(address: str, owner: str, spender: str, request: Request) -> Json:
    view = _token_view(request, address)
    o = _address(owner, field="owner")
    s = _address(spender, field="spender")
    return {"ok": True, "owner": o, "spender": s, "allowance": view.allowance(o, s)}


@router.get("/token/{address}/votes/{account}/prior/{block_number}")
def token_prior_votes(address: str, account: str, block_number: int, request: Request) -> Json:
    ex = _executor(request)
    view = _token_view(request, address)
    acct = _address(account, field="account")
    try:
        votes = view.get_prior_votes(acct, block_number, pending_block=ex.pending_block_number)
    except ApplyError as e:
        raise ApiError.bad_request(e.code, e.reason, {"block_number": block_number})
    return {"ok": True, "account": acct, "block_number": block_number, "votes": votes}
