from __future__ import annotations

from fastapi import APIRouter

from forth.api.routes_public_parts.chain import router as chain_router
from forth.api.routes_public_parts.health import router as health_router
from forth.api.routes_public_parts.token import router as token_router
from forth.api.routes_public_parts.tx import router as tx_router

public_router = APIRouter()

public_router.include_router(health_router, prefix="/v1", tags=["health"])
public_router.include_router(chain_router, prefix="/v1", tags=["chain"])
public_router.include_router(token_router, prefix="/v1", tags=["token"])
public_router.include_router(tx_router, prefix="/v1", tags=["tx"])
