# src/forth/runtime/state_invariants.py
"""State invariants / normalization helpers.

Chain state is a nested JSON-like dict:

  state["contracts"][address] -> token state dict (see ensure_token_state)

Token appliers mutate the token dict in place; the executor hands them a deep
copy and only commits it when every precondition passed.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Dict

Json = Dict[str, Any]

_TOKEN_CONTAINERS = ("balances", "allowances", "nonces", "delegates", "checkpoints")


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains the contracts map.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    contracts = st.get("contracts")
    if contracts is None:
        st["contracts"] = {}
    elif not isinstance(contracts, dict):
        raise TypeError(f"state['contracts'] must be dict, got {type(contracts)}")

    return st  # type: ignore[return-value]


def ensure_token_state(tok: Any) -> Json:
    """Ensure a token state dict carries every per-account container."""
    if not isinstance(tok, MutableMapping):
        raise TypeError(f"token state must be MutableMapping, got {type(tok)}")

    for key in _TOKEN_CONTAINERS:
        v = tok.get(key)
        if v is None:
            tok[key] = {}
        elif not isinstance(v, dict):
            raise TypeError(f"token state[{key!r}] must be dict, got {type(v)}")

    return tok  # type: ignore[return-value]


def supply_matches_balances(tok: Json) -> bool:
    """sum(balances) == totalSupply."""
    balances = tok.get("balances") or {}
    return sum(int(b) for b in balances.values()) == int(tok.get("total_supply", 0))


__all__ = ["ensure_state", "ensure_token_state", "supply_matches_balances"]
