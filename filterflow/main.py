import argparse
import asyncio
import sys
from pathlib import Path

import aiosqlite

from filterflow.config import load_config, settings
from filterflow.exceptions import ConfigError
from filterflow.services.database import DedupStore
from filterflow.services.logger import logger, setup_logging
from filterflow.workflows.orchestrator import CycleOrchestrator


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FilterFlow: news filtering agent for local LLMs")
    parser.add_argument("--config", type=Path, default=None, help="Path to the TOML configuration file")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity",
    )
    return parser.parse_args(argv)


async def run(config_path: Path, once: bool = False) -> int:
    try:
        snapshot = load_config(config_path)
    except ConfigError as e:
        logger.critical(f"[FATAL] Failed to load initial configuration '{config_path}': {e}")
        return 1

    logger.info(f"Configuration loaded. Model: {snapshot.general.model}")
    logger.info(f"Polling interval: {snapshot.general.interval_minutes} minutes")
    logger.info(f"Relevance indicators: {list(snapshot.filter.relevance_indicators)}")
    logger.info(f"Irrelevance indicators: {list(snapshot.filter.irrelevance_indicators)}")

    settings.ensure_dirs()
    try:
        store = await DedupStore.open(settings.db_path)
    except (aiosqlite.Error, OSError) as e:
        logger.critical(f"[FATAL] Cannot open dedup store at {settings.db_path}: {e}")
        return 1

    async with store:
        orchestrator = CycleOrchestrator(
            config_path,
            store,
            snapshot,
            sitemap_max_depth=settings.SITEMAP_MAX_DEPTH,
        )
        await orchestrator.run(max_cycles=1 if once else None)
    return 0


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.log_level or settings.LOG_LEVEL, settings.DATA_DIR, settings.LOG_TO_FILE)
    logger.info("--- FilterFlow: news agent for local LLMs ---")
    try:
        code = asyncio.run(run(args.config or settings.CONFIG_FILE, once=args.once))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        code = 0
    sys.exit(code)

if __name__ == "__main__":
    main()
