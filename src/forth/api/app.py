from __future__ import annotations

import os

from fastapi import FastAPI

from forth.api.errors import install_error_handlers
from forth.api.routes_public import public_router
from forth.api.structured_logging import RequestLogMiddleware, configure_structured_logging
from forth.runtime.chain_config import apply_chain_config_to_env, load_chain_config
from forth.runtime.executor_boot import build_executor as _build_executor


def build_executor():
    """Build a ChainExecutor for API runtime.

    This wrapper exists so tests can monkeypatch `forth.api.app.build_executor`
    without reaching into runtime modules.
    """
    return _build_executor()


def create_app(*, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load chain config, export it to FORTH_* env, attach executor
      - False: keep lightweight for unit tests / import-time validation
    """
    if boot_runtime:
        apply_chain_config_to_env(load_chain_config())

    configure_structured_logging()
    mode = os.environ.get("FORTH_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Forth Token Node API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Forth Token Node API")

    app.state.executor = build_executor() if boot_runtime else None

    app.add_middleware(RequestLogMiddleware)
    install_error_handlers(app)
    app.include_router(public_router)

    return app
