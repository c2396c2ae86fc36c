# src/forth/ledger/amounts.py
"""Fixed-width unsigned arithmetic for token amounts.

Balances, allowances, supply and votes are uint96; checkpoint block numbers
are uint32. Every helper raises ApplyError carrying the caller's revert
reason, so the failure surfaces exactly like a contract `require`.
"""

from __future__ import annotations

from typing import Any

from forth.ledger.constants import UINT32_MAX, UINT96_MAX, UINT256_MAX
from forth.runtime.errors import ApplyError


def as_uint256(v: Any, *, field: str) -> int:
    """Coerce a payload value to a uint256 or reject the payload.

    Accepts ints and decimal or 0x-hex strings. Floats, bools and anything
    else are rejected rather than truncated.
    """
    if isinstance(v, bool) or not isinstance(v, (int, str)):
        raise ApplyError("invalid_payload", f"bad_{field}", {field: v})
    try:
        if isinstance(v, str):
            s = v.strip()
            n = int(s, 16) if s.lower().startswith("0x") else int(s)
        else:
            n = int(v)
    except (TypeError, ValueError):
        raise ApplyError("invalid_payload", f"bad_{field}", {field: v})
    if n < 0 or n > UINT256_MAX:
        raise ApplyError("invalid_payload", f"bad_{field}", {field: v})
    return n


def safe32(n: int, reason: str) -> int:
    if n > UINT32_MAX:
        raise ApplyError("overflow", reason, {"value": n})
    return n


def safe96(n: int, reason: str) -> int:
    if n > UINT96_MAX:
        raise ApplyError("overflow", reason, {"value": n})
    return n


def add96(a: int, b: int, reason: str) -> int:
    c = int(a) + int(b)
    if c > UINT96_MAX:
        raise ApplyError("overflow", reason, {"a": a, "b": b})
    return c


def sub96(a: int, b: int, reason: str, *, code: str = "underflow") -> int:
    if int(b) > int(a):
        raise ApplyError(code, reason, {"have": a, "need": b})
    return int(a) - int(b)
