import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx

from filterflow.config import load_config
from filterflow.exceptions import ConfigError, FilterFlowError, ProxyConstructionError
from filterflow.models.config import ConfigSnapshot, SourceConfig
from filterflow.services.database import DedupStore
from filterflow.services.fetcher import build_client
from filterflow.services.llm import RelevanceOracle
from filterflow.services.logger import logger
from filterflow.tools.base_adapter import SourceAdapter
from filterflow.tools.feed_adapter import FeedAdapter
from filterflow.tools.sitemap_adapter import SitemapAdapter
from filterflow.workflows.pipeline import ItemPipeline

BANNER = "=" * 50


class CycleOrchestrator:
    """
    Long-running polling loop. The dedup store is opened by the caller and
    lives as long as the process; configuration, HTTP client and oracle are
    rebuilt every cycle from a fresh snapshot.
    """

    def __init__(
        self,
        config_path: Path,
        store: DedupStore,
        snapshot: ConfigSnapshot,
        *,
        sitemap_max_depth: int = 8,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config_path = config_path
        self.store = store
        self.snapshot = snapshot
        self.sitemap_max_depth = sitemap_max_depth
        self.transport = transport
        self._sleep = sleep
        self.sleep_seconds = snapshot.general.interval_seconds

    def reload(self) -> bool:
        """Swaps in a fresh snapshot; on failure the previous one stays."""
        try:
            snapshot = load_config(self.config_path)
        except ConfigError as e:
            logger.error(f"[CONFIG] Could not reload configuration: {e}. Keeping the previous one.")
            return False

        new_sleep = snapshot.general.interval_seconds
        if new_sleep != self.sleep_seconds:
            logger.info(f"Polling interval changed to {snapshot.general.interval_minutes} minutes.")
            self.sleep_seconds = new_sleep
        self.snapshot = snapshot
        return True

    async def _run_source(self, adapter: SourceAdapter, source: SourceConfig) -> int:
        try:
            return await adapter.process(source)
        except FilterFlowError as e:
            logger.error(f"[FETCH] Failed to process source '{source.name}': {e}")
        except Exception as e:  # noqa: BLE001
            logger.exception(f"Unexpected error while processing source '{source.name}': {e}")
        return 0

    async def run_cycle(self, snapshot: ConfigSnapshot) -> int:
        """One pass over every feed, then every sitemap. Returns the number of new relevant items."""
        client = build_client(snapshot.general.user_agent, snapshot.proxy, transport=self.transport)

        logger.info(BANNER)
        logger.info("Starting scan cycle...")
        logger.info(datetime.now().strftime("Date: %d/%m/%Y - Time: %H:%M:%S"))
        logger.info(BANNER)
        started = time.perf_counter()

        total = 0
        async with client:
            oracle = RelevanceOracle(client, snapshot.general, snapshot.filter)
            pipeline = ItemPipeline(self.store, oracle)

            feeds = FeedAdapter(client, pipeline)
            for feed in snapshot.feeds:
                total += await self._run_source(feeds, feed)

            sitemaps = SitemapAdapter(client, pipeline, max_depth=self.sitemap_max_depth)
            for sitemap in snapshot.sitemaps:
                total += await self._run_source(sitemaps, sitemap)

        elapsed = time.perf_counter() - started
        logger.success(f"***** CYCLE COMPLETE ***** total time: {elapsed:.2f}s, new relevant items: {total}")
        return total

    async def run(self, max_cycles: Optional[int] = None):
        """Polls forever, or for max_cycles iterations (no trailing sleep after the last one)."""
        cycle = 0
        while max_cycles is None or cycle < max_cycles:
            cycle += 1
            last = max_cycles is not None and cycle >= max_cycles

            if self.reload():
                try:
                    await self.run_cycle(self.snapshot)
                except ProxyConstructionError as e:
                    logger.error(f"[PROXY] {e}. Check the proxy address; skipping this cycle.")
                else:
                    logger.info(f"Waiting {self.snapshot.general.interval_minutes} minutes until the next check...")

            if not last:
                await self._sleep(self.sleep_seconds)
