#!/usr/bin/env python3
"""Command-line interface for the card gateway.

Usage:
    card-gateway serve
    card-gateway serve --port 8080
    card-gateway init-db
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv

from .config import GatewayConfig, ConfigurationError
from .store import SQLDocumentStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_config() -> GatewayConfig:
    """Load .env and the environment; exit the process if a required secret is missing."""
    load_dotenv()
    try:
        return GatewayConfig.from_env()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
        logger.critical(f"FATAL ERROR: {e}")
        sys.exit(1)


def serve(config: GatewayConfig, args: argparse.Namespace) -> int:
    from .api import create_app

    host = args.host or config.host
    port = args.port or config.port
    logger.info(f"Server running on {host}:{port}")
    uvicorn.run(
        create_app(config),
        host=host,
        port=port,
        log_level=config.log_level.lower(),
    )
    return 0


async def init_db(config: GatewayConfig) -> int:
    if config.store_backend != "sql":
        logger.error(f"init-db only applies to the sql store, STORE_BACKEND is '{config.store_backend}'")
        return 1
    store = SQLDocumentStore(config.database_url)
    try:
        await store.initialize(create_tables=True)
    finally:
        await store.close()
    logger.info(f"Documents table ready at {store.db.database_url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Payment card gateway: save, charge and list cards for sale",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Listen address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Listen port (default: PORT or 3001)")

    subparsers.add_parser("init-db", help="Create the documents table for the sql store")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format=LOG_FORMAT,
    )

    if args.command == "serve":
        return serve(config, args)
    if args.command == "init-db":
        return asyncio.run(init_db(config))
    return 1
