import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import feedparser

from filterflow.exceptions import ParseError, StoreReadError
from filterflow.models.config import SourceConfig
from filterflow.models.items import CandidateItem, ItemOutcome, SourceKind
from filterflow.services.fetcher import FEED_TIMEOUT, fetch_bytes
from filterflow.services.logger import logger
from filterflow.tools.base_adapter import SourceAdapter

# Sources whose name contains this marker publish time-boxed weather alerts
ALERT_SOURCE_MARKER = "INMET"
ALERT_MAX_AGE = timedelta(hours=72)

_TAG_RE = re.compile(r"<[^>]*>")
_SPACES_RE = re.compile(r" {2,}")
_ALERT_END_RE = re.compile(r"Fim</th>.*?<td>(.*?)</td>", re.DOTALL)


def clean_html_content(html: str) -> str:
    text = _TAG_RE.sub(" ", html)
    text = text.replace("\n", " ").replace("\r", " ")
    text = text.replace("📎", "").replace("https://", "").replace("http://", "")
    return _SPACES_RE.sub(" ", text).strip()


def _parse_alert_end(raw: str) -> Optional[datetime]:
    value = raw.strip().replace(" ", "T").removesuffix(".0")
    # Date and time are both required
    if "T" not in value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_pub_date(raw: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_inmet_alert_expired(title: str, description: str, pub_date: Optional[str], now: Optional[datetime] = None) -> bool:
    """
    Decides whether a meteorological alert is past its validity window.

    1. The 'Fim' (end) cell of the alert table, when present and parsable.
    2. Otherwise the publication date: alerts older than 72 hours are expired.
    3. With neither signal the alert is kept.
    """
    now = now or datetime.now(timezone.utc)

    match = _ALERT_END_RE.search(description or "")
    if match:
        end = _parse_alert_end(match.group(1))
        if end is not None:
            return end < now
        logger.warning(f"[PARSE] Could not parse alert end '{match.group(1).strip()}' for '{title}'")

    logger.debug(f"INMET alert '{title}' has no usable 'Fim' field; falling back to pubDate")

    if pub_date:
        published = _parse_pub_date(pub_date)
        if published is not None:
            return now - published > ALERT_MAX_AGE
        logger.warning(f"[PARSE] Could not parse pubDate '{pub_date}' for '{title}'. Treated as valid.")

    return False


class FeedAdapter(SourceAdapter):
    async def process(self, source: SourceConfig) -> int:
        logger.info(f"--- Processing source: {source.name} ---")
        payload = await fetch_bytes(self.client, source.url, timeout=FEED_TIMEOUT)

        feed = feedparser.parse(payload)
        if feed.bozo and not feed.entries:
            raise ParseError(f"Invalid feed '{source.name}' ({source.url}): {feed.get('bozo_exception')}")

        is_alert_source = ALERT_SOURCE_MARKER in source.name
        new_items = 0

        for entry in feed.entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue

            title = entry.get("title") or link
            raw_description = entry.get("description") or ""

            contents = entry.get("content")
            if contents:
                description_raw = contents[0].get("value") or raw_description
            else:
                description_raw = raw_description

            if description_raw.strip().startswith("<ol>"):
                description = ""
            else:
                description = clean_html_content(description_raw)

            item = CandidateItem(
                link=link,
                title=title,
                description=description,
                source_kind=SourceKind.FEED,
                source_name=source.name,
            )

            try:
                if is_alert_source and is_inmet_alert_expired(title, raw_description, entry.get("published")):
                    await self.pipeline.discard_expired(item)
                    continue

                outcome = await self.pipeline.process(item)
            except StoreReadError as e:
                logger.error(f"[STORE] Item '{title}' skipped: {e}")
                continue
            except Exception as e:  # noqa: BLE001
                logger.exception(f"Unexpected error on item '{title}': {e}")
                continue

            if outcome is ItemOutcome.PROCESSED:
                new_items += 1

        if new_items:
            logger.success(f"*** {new_items} NEW RELEVANT ITEMS FOUND IN {source.name} ***")
        else:
            logger.info(f"{source.name}: up to date ✅")
        return new_items
