from pathlib import Path
from typing import Optional, Tuple

import aiosqlite
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from filterflow.exceptions import StoreReadError, StoreWriteError
from filterflow.services.logger import logger

IRRELEVANT_TABLE = "irrelevant_links"
PROCESSED_TABLE = "processed_links"

INIT_SQL = """
CREATE TABLE IF NOT EXISTS irrelevant_links (
    link TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS processed_links (
    link TEXT PRIMARY KEY,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

class DedupStore:
    """
    Durable record of links already judged.

    Two independent tables hold the 'irrelevant' and 'processed' link sets.
    Rows are only ever inserted, so a link keeps the first status it gets.
    One connection is held for the lifetime of the process.
    """

    def __init__(self, conn: aiosqlite.Connection, path: Path):
        self._conn = conn
        self.path = path

    @classmethod
    async def open(cls, path: Path | str) -> "DedupStore":
        db_path = Path(path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(db_path)
        await conn.executescript(INIT_SQL)
        await conn.commit()
        logger.info(f"Dedup store opened at {db_path}")
        return cls(conn, db_path)

    async def close(self):
        await self._conn.close()

    async def __aenter__(self) -> "DedupStore":
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # ---- reads: failures propagate to the caller ----

    async def _contains(self, table: str, link: str) -> bool:
        try:
            cursor = await self._conn.execute(f"SELECT 1 FROM {table} WHERE link = ?", (link,))
            row = await cursor.fetchone()
            await cursor.close()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreReadError(f"Lookup in {table} failed for {link}: {e}") from e
        return row is not None

    async def is_irrelevant(self, link: str) -> bool:
        return await self._contains(IRRELEVANT_TABLE, link)

    async def is_processed(self, link: str) -> bool:
        return await self._contains(PROCESSED_TABLE, link)

    # ---- writes: best effort, never block the cycle ----

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.2),
        retry=retry_if_exception_type(StoreWriteError),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            f"[STORE] Write failed, retrying (attempt {retry_state.attempt_number}): {retry_state.outcome.exception()}"
        )
    )
    async def _insert(self, table: str, link: str):
        try:
            await self._conn.execute(f"INSERT OR IGNORE INTO {table} (link) VALUES (?)", (link,))
            await self._conn.commit()
        except (aiosqlite.Error, ValueError) as e:
            raise StoreWriteError(f"Insert into {table} failed for {link}: {e}") from e

    async def _record(self, table: str, link: str) -> bool:
        try:
            await self._insert(table, link)
            return True
        except StoreWriteError as e:
            logger.error(f"[STORE] {e}")
            return False

    async def mark_irrelevant(self, link: str) -> bool:
        return await self._record(IRRELEVANT_TABLE, link)

    async def mark_processed(self, link: str) -> bool:
        return await self._record(PROCESSED_TABLE, link)

    # ---- inspection ----

    async def counts(self) -> Tuple[int, int]:
        """Returns (irrelevant, processed) row counts."""
        totals = []
        for table in (IRRELEVANT_TABLE, PROCESSED_TABLE):
            cursor = await self._conn.execute(f"SELECT COUNT(*) FROM {table}")
            row = await cursor.fetchone()
            await cursor.close()
            totals.append(row[0])
        return totals[0], totals[1]

    async def status(self, link: str) -> Optional[str]:
        if await self.is_processed(link):
            return "processed"
        if await self.is_irrelevant(link):
            return "irrelevant"
        return None
