from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Request

from forth.api.errors import ApiError
from forth.api.routes_public_parts.common import _executor
from forth.api.schemas import TxSubmitRequest
from forth.runtime.errors import ApplyError
from forth.runtime.runtime_logging import log_event
from forth.runtime.tx_types import TxEnvelope

router = APIRouter()

Json = Dict[str, Any]

log = logging.getLogger("forth.api.tx")


@router.post("/tx/submit")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Execute and mine one tx.

    A reverted tx is still mined, so it comes back as HTTP 200 with ok=false
    and the revert reason. Txs that cannot be admitted at all (bad sender,
    wrong nonce) are 400 and leave the chain untouched.
    """
    ex = _executor(request)
    env = TxEnvelope(
        tx_type=body.tx_type,
        signer=body.signer,
        payload=body.payload,
        to=body.to,
        nonce=body.nonce,
    )
    try:
        receipt = ex.submit(env)
    except ApplyError as e:
        log_event(log, "tx_rejected", level=logging.WARNING, tx_type=body.tx_type, signer=body.signer, **e.to_json())
        raise ApiError.bad_request(e.code, e.reason, e.details if isinstance(e.details, dict) else {})
    return receipt.to_json()


@router.get("/tx/{tx_hash}")
def tx_receipt(tx_hash: str, request: Request) -> Json:
    receipt = _executor(request).receipt(tx_hash)
    if receipt is None:
        raise ApiError.not_found("tx_not_found", "unknown tx hash", {"tx_hash": tx_hash})
    return {"ok": True, "receipt": receipt.to_json()}
