from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from forth.api.routes_public_parts.common import _executor, _mode

router = APIRouter()

Json = Dict[str, Any]


@router.get("/health")
def health(request: Request) -> Json:
    ex = _executor(request)
    head = ex.head
    return {
        "ok": True,
        "mode": _mode(),
        "chain_id": ex.chain_id,
        "head": {"number": head.number, "timestamp": head.timestamp},
        "contracts": len(ex.contracts()),
    }
