"""Command line entry point: ``python -m cinecatalog`` or ``cinecatalog``."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

import uvicorn

from app.config import settings
from app.database import Database
from app.kv_store import SQLKeyValueStore
from app.repository import CatalogRepository
from app.services.catalog import CatalogService

logger = logging.getLogger("cinecatalog")


def _serve(args: argparse.Namespace) -> int:
    uvicorn.run(
        "app.main:app",
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        reload=settings.environment == "development",
        log_level="info",
    )
    return 0


async def _refresh_releases() -> int:
    database = Database(settings.database_url)
    try:
        await database.create_all()
        repository = CatalogRepository(SQLKeyValueStore(database.session_factory))
        return await CatalogService(settings, repository).refresh_release_categories()
    finally:
        await database.dispose()


def _refresh(_: argparse.Namespace) -> int:
    updated = asyncio.run(_refresh_releases())
    logger.info("Release categories refreshed on %d titles", updated)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cinecatalog")
    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="run the HTTP API (default)")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(handler=_serve)

    refresh = commands.add_parser(
        "refresh-releases",
        help="re-evaluate the release category of every title, for cron jobs",
    )
    refresh.set_defaults(handler=_refresh)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        args = parser.parse_args(["serve"])
    return args.handler(args)


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    raise SystemExit(main())
