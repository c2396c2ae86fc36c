from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from forth.api.errors import ApiError
from forth.api.routes_public_parts.common import _executor, _mode
from forth.api.schemas import MineRequest
from forth.runtime.executor import ExecutorError

router = APIRouter()

Json = Dict[str, Any]


@router.get("/chain/head")
def chain_head(request: Request) -> Json:
    ex = _executor(request)
    return {"ok": True, "block": ex.head.to_json(), "pending_block_number": ex.pending_block_number}


@router.get("/chain/blocks/{number}")
def chain_block(number: int, request: Request) -> Json:
    blk = _executor(request).block(number)
    if blk is None:
        raise ApiError.not_found("block_not_found", "no block at that height", {"number": number})
    return {"ok": True, "block": blk.to_json()}


@router.post("/chain/mine")
def chain_mine(body: MineRequest, request: Request) -> Json:
    """Mine an empty block. Time travel is a dev/testnet facility only."""
    if _mode() == "prod":
        raise ApiError.forbidden("mine_forbidden", "manual mining is disabled in prod mode", {})

    ex = _executor(request)
    try:
        blk = ex.mine_block(body.timestamp)
    except ExecutorError as e:
        raise ApiError.bad_request("bad_timestamp", str(e), {"timestamp": body.timestamp})
    return {"ok": True, "block": blk.to_json()}
