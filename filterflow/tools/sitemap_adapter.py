import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

import httpx

from filterflow.exceptions import ParseError, SourceFetchError, StoreReadError
from filterflow.models.config import SourceConfig
from filterflow.models.items import CandidateItem, ItemOutcome, SourceKind
from filterflow.services.fetcher import SITEMAP_TIMEOUT, fetch_bytes
from filterflow.services.logger import logger
from filterflow.tools.base_adapter import SourceAdapter
from filterflow.workflows.pipeline import ItemPipeline

NO_LASTMOD = "[N/A]"


class EntryKind(Enum):
    URL = "url"
    SITEMAP = "sitemap"


@dataclass(frozen=True, slots=True)
class SitemapEntry:
    kind: EntryKind
    loc: Optional[str]
    lastmod: Optional[str] = None


def _local_name(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    child = element.find(f"{{*}}{name}")
    if child is None or not child.text or not child.text.strip():
        return None
    return child.text.strip()


def parse_sitemap(payload: bytes) -> List[SitemapEntry]:
    """
    Reads a <urlset> or <sitemapindex> document into entries, namespace
    agnostic. Children that are neither <url> nor <sitemap> are dropped.
    """
    try:
        root = ET.fromstring(payload)
    except ET.ParseError as e:
        raise ParseError(f"Malformed sitemap XML: {e}") from e

    entries: List[SitemapEntry] = []
    for child in root:
        name = _local_name(child.tag)
        if name == "url":
            entries.append(SitemapEntry(EntryKind.URL, _child_text(child, "loc"), _child_text(child, "lastmod")))
        elif name == "sitemap":
            entries.append(SitemapEntry(EntryKind.SITEMAP, _child_text(child, "loc")))
    return entries


def format_lastmod(value: Optional[str]) -> str:
    """W3C datetime to ISO 8601; anything absent or unreadable becomes '[N/A]'."""
    if not value:
        return NO_LASTMOD
    try:
        return datetime.fromisoformat(value).isoformat()
    except ValueError:
        return NO_LASTMOD


class SitemapAdapter(SourceAdapter):
    """
    Resolves a sitemap tree depth first. A failing subtree counts as zero and
    never stops its siblings. Each traversal remembers the sitemap URLs it has
    visited and stops descending past max_depth, so cyclic or absurdly deep
    indexes terminate.
    """

    def __init__(self, client: httpx.AsyncClient, pipeline: ItemPipeline, max_depth: int = 8):
        super().__init__(client, pipeline)
        self.max_depth = max_depth

    async def process(self, source: SourceConfig) -> int:
        logger.info(f"--- Processing source: {source.name} ---")
        new_items = await self.resolve(source, source.url, depth=0, visited=set())
        if new_items:
            logger.success(f"*** {new_items} NEW RELEVANT ITEMS FOUND FOR {source.name} ***")
        else:
            logger.info(f"{source.name}: up to date ✅")
        return new_items

    async def resolve(self, source: SourceConfig, url: str, *, depth: int, visited: Set[str]) -> int:
        if url in visited:
            logger.warning(f"[SITEMAP] {url} already visited in this traversal; skipping")
            return 0
        if depth > self.max_depth:
            logger.warning(f"[SITEMAP] Max depth {self.max_depth} exceeded at {url}; skipping subtree")
            return 0
        visited.add(url)

        logger.info(f"[SITEMAP] Downloading: {url}")
        try:
            payload = await fetch_bytes(self.client, url, timeout=SITEMAP_TIMEOUT)
            entries = parse_sitemap(payload)
        except (SourceFetchError, ParseError) as e:
            logger.error(f"[SITEMAP] Failed to load {url}: {e}")
            return 0

        processed = 0
        for entry in entries:
            if entry.kind is EntryKind.SITEMAP:
                if not entry.loc:
                    logger.error(f"[SITEMAP] Sitemap index entry without a valid <loc> in {url}")
                    continue
                processed += await self.resolve(source, entry.loc, depth=depth + 1, visited=visited)
                continue

            if not entry.loc:
                logger.error(f"[SITEMAP] URL entry without a valid <loc> in {url}")
                continue

            item = CandidateItem(
                link=entry.loc,
                title=f"[Sitemap] {entry.loc}",
                description=f"Last modified: {format_lastmod(entry.lastmod)}",
                source_kind=SourceKind.SITEMAP,
                source_name=source.name,
            )
            try:
                outcome = await self.pipeline.process(item)
            except StoreReadError as e:
                logger.error(f"[STORE] Item '{item.title}' skipped: {e}")
                continue
            except Exception as e:  # noqa: BLE001
                logger.exception(f"Unexpected error on item '{item.title}': {e}")
                continue
            if outcome is ItemOutcome.PROCESSED:
                processed += 1

        return processed
