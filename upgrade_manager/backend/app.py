"""Wiring of the services and the HTTP application, and the server command."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Any

import aiosqlite
import uvicorn
from dotenv import find_dotenv, load_dotenv
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from upgrade_manager.backend import api
from upgrade_manager.backend.builder import ProgramBuilder
from upgrade_manager.backend.clients import AnchorClient
from upgrade_manager.backend.config import Config
from upgrade_manager.backend.db import init_pool, run_migrations
from upgrade_manager.backend.migration import MigrationManager
from upgrade_manager.backend.multisig import MultisigCoordinator
from upgrade_manager.backend.rollback import RollbackHandler
from upgrade_manager.backend.timelock import TimelockManager

logger = logging.getLogger(__name__)


class Services:
    """Everything the HTTP handlers work with, sharing one database connection."""

    def __init__(self, db_pool: aiosqlite.Connection, anchor_client: AnchorClient) -> None:
        self.db_pool = db_pool
        self.anchor_client = anchor_client
        self.multisig_coordinator = MultisigCoordinator(db_pool)
        self.timelock_manager = TimelockManager(db_pool)
        self.program_builder = ProgramBuilder()
        self.migration_manager = MigrationManager(db_pool)
        self.rollback_handler = RollbackHandler(db_pool)


def create_app(services: Any) -> Starlette:
    """The HTTP application serving ``services``."""
    routes = [
        Route("/health", api.health, methods=["GET"]),
        Route("/proposals", api.list_proposals, methods=["GET"]),
        Route("/proposals/propose", api.propose_upgrade, methods=["POST"]),
        Route("/proposals/{id}", api.get_proposal, methods=["GET"]),
        Route("/proposals/{id}/approve", api.approve_upgrade, methods=["POST"]),
        Route("/proposals/{id}/execute", api.execute_upgrade, methods=["POST"]),
        Route("/proposals/{id}/cancel", api.cancel_upgrade, methods=["POST"]),
        Route("/migration/start", api.start_migration, methods=["POST"]),
        Route("/migration/{id}/progress", api.get_progress, methods=["GET"]),
    ]
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )
    ]
    app = Starlette(routes=routes, middleware=middleware)
    app.state.services = services
    return app


async def serve(config: Config) -> None:
    """Connect everything described by ``config`` and serve HTTP until stopped."""
    db_pool = await init_pool(config.database_url)
    try:
        await run_migrations(db_pool)
        anchor_client = AnchorClient(
            config.rpc_url, config.program_id, config.payer_keypair_path
        )
        services = Services(db_pool, anchor_client)
        app = create_app(services)
        server = uvicorn.Server(uvicorn.Config(app, host=config.host, port=config.port))
        logger.info("Server listening on %s:%d", config.host, config.port)
        await server.serve()
    finally:
        await db_pool.close()


def main(argv: list[str] | None = None) -> int:
    """Run the upgrade manager server configured from the environment."""
    parser = argparse.ArgumentParser(
        prog="upgrade-manager",
        description="Serve the upgrade manager HTTP API.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path)
    config = Config.from_env()
    asyncio.run(serve(config))
    return 0