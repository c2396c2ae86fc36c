# src/forth/api/__main__.py
from __future__ import annotations

import argparse
import os
from typing import List, Optional

import uvicorn

from forth.env import load_dotenv_if_present


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(prog="forth-node", description="Forth token chain simulator + HTTP API")
    ap.add_argument("--dotenv", default=None, help="Path to a .env file (default: FORTH_DOTENV_PATH or ./.env)")
    ap.add_argument("--chain-config", default=None, help="Chain config JSON (sets FORTH_CHAIN_CONFIG_PATH)")
    ap.add_argument("--deployment", default=None, help="Token deployment JSON/YAML (sets FORTH_DEPLOYMENT_PATH)")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = _parse_args(argv)
    load_dotenv_if_present(args.dotenv)

    # CLI flags win over .env and the inherited environment.
    if args.chain_config:
        os.environ["FORTH_CHAIN_CONFIG_PATH"] = args.chain_config
    if args.deployment:
        os.environ["FORTH_DEPLOYMENT_PATH"] = args.deployment

    from forth.api.app import create_app

    # create_app exports host/port/log level from the chain config.
    app = create_app()
    uvicorn.run(
        app,
        host=os.environ["FORTH_API_HOST"],
        port=int(os.environ["FORTH_API_PORT"]),
        log_level=os.environ["FORTH_LOG_LEVEL"].lower(),
    )


if __name__ == "__main__":
    main()
