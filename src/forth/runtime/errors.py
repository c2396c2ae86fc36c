# src/forth/runtime/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

REVERT_PREFIX = "Forth::"


@dataclass
class ApplyError(Exception):
    """A transaction that cannot be applied.

    `reason` is the contract's revert string (e.g. "Forth::mint: exceeded mint cap")
    or, for envelopes rejected before any contract code runs, a short slug such
    as "bad_amount". `code` groups reasons into categories.
    """

    code: str
    reason: str
    details: Any | None = None

    @property
    def is_revert(self) -> bool:
        """True when the failure is a contract `require`, not a malformed tx."""
        return self.reason.startswith(REVERT_PREFIX)

    def to_json(self) -> Dict[str, Any]:
        return {"code": self.code, "reason": self.reason, "details": self.details}

    @classmethod
    def from_receipt(cls, receipt: Any) -> "ApplyError":
        return cls(str(receipt.code), str(receipt.reason), receipt.details)

    def __str__(self) -> str:  # pragma: no cover
        if self.is_revert:
            return self.reason
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"
