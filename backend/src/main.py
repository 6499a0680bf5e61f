#!/usr/bin/env python3
"""
Transfermarkt Value Signals - Refresh Entry Point

Rebuilds the published snapshots: the canonical player dataset and the
market value movers for both directions. A failed run leaves every previously
published snapshot untouched.

Usage:
    python3 src/main.py players
    python3 src/main.py movers --direction losers
    python3 src/main.py all --data-dir data --parser mypkg.parsers:TransfermarktParser
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Load .env from backend directory before Config() is used
from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from models.movers import DIRECTIONS
from refresh.errors import RefreshError
from refresh.movers import MoversRefresher
from refresh.player_stats import PlayerStatsRefresher
from storage.artifact_store import FileArtifactStore
from tm_api.client import TransfermarktClient
from tm_api.parsers import load_parser
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


class RefreshService:
    """Runs one refresh of the requested snapshots."""

    def __init__(self, config: Config):
        if not config.page_parser:
            raise ValueError("PAGE_PARSER is required (e.g. 'mypkg.parsers:TransfermarktParser')")
        self.config = config
        self.parser = load_parser(config.page_parser)
        self.store = FileArtifactStore.from_config(config)

    async def refresh_players(self, client: TransfermarktClient, resume: bool = True):
        refresher = PlayerStatsRefresher(client, self.parser, self.store, self.config)
        dataset, version = await refresher.refresh(resume=resume)
        logger.info("Player dataset refreshed", extra={
            "players": len(dataset),
            "version": version.version
        })

    async def refresh_movers(self, client: TransfermarktClient, directions: List[str]):
        refresher = MoversRefresher(client, self.parser, self.store, self.config)
        for direction in directions:
            result = await refresher.refresh(direction)
            logger.info("Movers refreshed", extra={
                "direction": direction,
                "repeat_groups": len(result.repeat_movers)
            })

    async def run(self, target: str, directions: List[str], resume: bool = True):
        logger.info("Starting refresh", extra={
            "target": target,
            "environment": self.config.environment,
            "data_dir": self.config.data_dir
        })
        async with TransfermarktClient(self.config) as client:
            if target in ("players", "all"):
                await self.refresh_players(client, resume=resume)
            if target in ("movers", "all"):
                await self.refresh_movers(client, directions)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Refresh Transfermarkt value snapshots"
    )
    parser.add_argument(
        "target",
        choices=["players", "movers", "all"],
        help="Which snapshots to rebuild"
    )
    parser.add_argument(
        "--direction",
        choices=list(DIRECTIONS),
        help="Only this movers direction (default: both)"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Snapshot directory (default: DATA_DIR)"
    )
    parser.add_argument(
        "--parser",
        type=str,
        help="Page parser as module:attribute (default: PAGE_PARSER)"
    )
    parser.add_argument(
        "--no-resume",
        action="store_true",
        default=False,
        help="Ignore a partial stats cache from an interrupted run"
    )
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_arg_parser().parse_args(argv)

    config = Config()
    if args.data_dir:
        config.data_dir = args.data_dir
    if args.parser:
        config.page_parser = args.parser
    setup_logging(config)

    directions = [args.direction] if args.direction else list(DIRECTIONS)
    try:
        service = RefreshService(config)
        await service.run(args.target, directions, resume=not args.no_resume)
    except RefreshError as e:
        logger.error("Refresh aborted, published snapshots left untouched", extra={
            "error": str(e),
            "error_type": type(e).__name__
        })
        return 1
    except KeyboardInterrupt:
        logger.info("Refresh interrupted by user")
        return 130
    except Exception as e:
        logger.error("Refresh crashed", extra={"error": str(e)}, exc_info=True)
        return 1
    return 0


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
