"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; the token appliers validate
payload fields themselves.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., description="TRANSFER, APPROVE, PERMIT, DELEGATE, MINT, BURN, DEPLOY, ...")
    signer: str = Field(..., description="Sender address (msg.sender)")
    to: str = Field(default="", description="Token contract address; empty for DEPLOY")
    payload: Dict[str, Any] = Field(default_factory=dict)
    nonce: Optional[int] = Field(default=None, ge=0, description="Sender tx nonce; omitted means next")

    model_config = {"extra": "forbid"}


class MineRequest(BaseModel):
    timestamp: Optional[int] = Field(default=None, ge=0, description="Target block timestamp (unix seconds)")
