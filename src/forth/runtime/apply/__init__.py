# src/forth/runtime/apply/__init__.py
"""Domain-specific apply modules.

These modules implement deterministic token state transitions for subsets
of tx types:

  - token: transfers, allowances, permit, mint, burn, minter rotation
  - delegation: vote delegation and checkpoint bookkeeping

NOTE: Keep this package import-safe (no imports of the executor or dispatcher).
"""

from __future__ import annotations

__all__ = [
    "token",
    "delegation",
]
