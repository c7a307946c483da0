import httpx

from filterflow.exceptions import OracleProtocolError
from filterflow.models.items import CandidateItem, ItemOutcome
from filterflow.services.database import DedupStore
from filterflow.services.llm import RelevanceOracle
from filterflow.services.logger import logger


class ItemPipeline:
    """
    Per-item state machine shared by the feed and sitemap adapters:

        New -> cached irrelevant? -> already processed? -> filter
            -> irrelevant: cache it
            -> relevant: summarize (best effort) -> mark processed

    A failed filter call counts as "not relevant" for this occurrence only and
    is not cached, so the link is retried the next time it shows up.
    StoreReadError from the dedup checks propagates to the caller.
    """

    def __init__(self, store: DedupStore, oracle: RelevanceOracle):
        self.store = store
        self.oracle = oracle

    async def process(self, item: CandidateItem) -> ItemOutcome:
        if await self.store.is_irrelevant(item.link):
            return ItemOutcome.CACHED_IRRELEVANT
        if await self.store.is_processed(item.link):
            return ItemOutcome.ALREADY_PROCESSED

        try:
            relevant = await self.oracle.is_relevant(item)
        except (OracleProtocolError, httpx.HTTPError) as e:
            logger.error(f"[ORACLE] Filter call failed for '{item.title}': {e!r}")
            logger.error(f"[ORACLE] Check that the inference server is running at {self.oracle.general.endpoint}")
            return ItemOutcome.FILTER_FAILED

        if not relevant:
            await self.store.mark_irrelevant(item.link)
            return ItemOutcome.IRRELEVANT

        logger.success(f"[NEW & RELEVANT] {item.title}")
        logger.success(f"Link: {item.link}")

        try:
            summary = await self.oracle.summarize(item)
            logger.success(f"Summary (model: {self.oracle.general.model}):\n{summary}")
        except (OracleProtocolError, httpx.HTTPError) as e:
            logger.error(f"[ORACLE] Summary call failed for '{item.title}': {e!r}")

        await self.store.mark_processed(item.link)
        return ItemOutcome.PROCESSED

    async def discard_expired(self, item: CandidateItem) -> ItemOutcome:
        """Records an expired alert as irrelevant without asking the oracle."""
        if await self.store.is_irrelevant(item.link):
            return ItemOutcome.CACHED_IRRELEVANT
        if await self.store.is_processed(item.link):
            return ItemOutcome.ALREADY_PROCESSED
        logger.debug(f"Expired alert skipped: {item.title}")
        await self.store.mark_irrelevant(item.link)
        return ItemOutcome.EXPIRED
