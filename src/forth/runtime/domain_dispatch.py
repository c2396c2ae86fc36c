# src/forth/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from forth.crypto.sig import normalize_address
from forth.runtime.apply.delegation import apply_delegation
from forth.runtime.apply.token import apply_token
from forth.runtime.errors import ApplyError
from forth.runtime.state_invariants import ensure_state
from forth.runtime.tx_types import BlockContext, TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[[Json, TxEnvelope, BlockContext], Optional[Json]]


def _get(env: Any, key: str, default: Any = None) -> Any:
    """Read a field from either a TxEnvelope-like object or a dict."""

    if isinstance(env, dict):
        return env.get(key, default)
    return getattr(env, key, default)


def _tx_type(env: Any) -> str:
    return str(_get(env, "tx_type", "") or "").strip().upper()


_APPLIERS: tuple[ApplyFn, ...] = (
    apply_token,
    apply_delegation,
)


def resolve_contract(state: Json, to: Any) -> Json:
    """Return the token state dict deployed at `to`."""
    try:
        addr = normalize_address(to)
    except ValueError:
        raise ApplyError("invalid_tx", "bad_contract_address", {"to": to})

    tok = state["contracts"].get(addr)
    if not isinstance(tok, dict):
        raise ApplyError("not_found", "contract_not_deployed", {"to": addr})
    return tok


def apply_tx(state: Json, env: Any, block: BlockContext) -> Json:
    """Dispatch a TxEnvelope to the first domain applier that claims it.

    Mutates `state` in place. Callers that need all-or-nothing semantics pass
    a copy and discard it when this raises.
    """

    ensure_state(state)

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})

    try:
        normalize_address(env_norm.signer)
    except ValueError:
        raise ApplyError("invalid_tx", "bad_signer", {"signer": env_norm.signer})

    tok = resolve_contract(state, env_norm.to)

    for fn in _APPLIERS:
        try:
            out = fn(tok, env_norm, block)
        except ApplyError:
            raise
        except Exception as e:
            raise ApplyError(
                "domain_error",
                type(e).__name__,
                {"tx_type": t, "domain": fn.__name__, "error": str(e)},
            ) from e

        if out is not None:
            return out

    raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})
