# src/forth/runtime/runtime_logging.py
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict

Json = Dict[str, Any]


def _encode(v: Any) -> Any:
    # Hashes and signatures travel as bytes; logs carry them 0x-hex.
    if isinstance(v, (bytes, bytearray)):
        return "0x" + bytes(v).hex()
    return str(v)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit one JSONL line: {"event": ..., "ts_ms": ..., **fields}.

    Used by the executor (block_mined, tx_applied, tx_reverted, tx_rejected),
    boot (token_deployed) and the HTTP layer (http_request, tx_rejected).
    Token amounts are plain ints, which json writes at full precision.
    """
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": int(time.time() * 1000), "event": str(event)}
    payload.update(fields)
    logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_encode))
