from __future__ import annotations

import os
from typing import Any, Dict

from fastapi import Request

from forth.api.errors import ApiError
from forth.crypto.sig import normalize_address
from forth.ledger.state import TokenView
from forth.runtime.executor import ChainExecutor, ExecutorError

Json = Dict[str, Any]


def _executor(request: Request) -> ChainExecutor:
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _address(v: str, *, field: str) -> str:
    try:
        return normalize_address(v)
    except ValueError:
        raise ApiError.bad_request("bad_address", f"{field} is not an address", {field: v})


def _token_view(request: Request, address: str) -> TokenView:
    ex = _executor(request)
    addr = _address(address, field="address")
    try:
        return ex.view(addr)
    except ExecutorError:
        raise ApiError.not_found("contract_not_found", "no token deployed at address", {"address": addr})


def _mode() -> str:
    return (os.environ.get("FORTH_MODE") or "prod").strip().lower()
