import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

import aiosqlite

from filterflow.exceptions import StoreReadError
from filterflow.services.database import DedupStore

LINK = "https://news.test/articles/1"


class TestDedupStore(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "nested" / "store.db"
        self.store = await DedupStore.open(self.path)

    async def asyncTearDown(self):
        await self.store.close()
        self._tmp.cleanup()

    async def test_unknown_link(self):
        self.assertFalse(await self.store.is_irrelevant(LINK))
        self.assertFalse(await self.store.is_processed(LINK))
        self.assertIsNone(await self.store.status(LINK))

    async def test_partitions_are_independent(self):
        self.assertTrue(await self.store.mark_irrelevant(LINK))
        self.assertTrue(await self.store.is_irrelevant(LINK))
        self.assertFalse(await self.store.is_processed(LINK))

        other = LINK + "?page=2"
        self.assertTrue(await self.store.mark_processed(other))
        self.assertTrue(await self.store.is_processed(other))
        self.assertFalse(await self.store.is_irrelevant(other))

    async def test_marking_twice_is_a_noop(self):
        await self.store.mark_processed(LINK)
        self.assertTrue(await self.store.mark_processed(LINK))
        self.assertEqual(await self.store.counts(), (0, 1))

    async def test_survives_reopen(self):
        await self.store.mark_irrelevant(LINK)
        await self.store.mark_processed("https://news.test/articles/2")
        await self.store.close()

        self.store = await DedupStore.open(self.path)
        self.assertTrue(await self.store.is_irrelevant(LINK))
        self.assertTrue(await self.store.is_processed("https://news.test/articles/2"))
        self.assertEqual(await self.store.status(LINK), "irrelevant")

    async def test_write_failure_is_swallowed(self):
        failing = AsyncMock(side_effect=aiosqlite.OperationalError("database is locked"))
        with patch.object(self.store._conn, "execute", failing):
            self.assertFalse(await self.store.mark_irrelevant(LINK))
        self.assertEqual(failing.await_count, 3)
        self.assertFalse(await self.store.is_irrelevant(LINK))

    async def test_read_failure_is_raised(self):
        failing = AsyncMock(side_effect=aiosqlite.OperationalError("disk I/O error"))
        with patch.object(self.store._conn, "execute", failing):
            with self.assertRaises(StoreReadError):
                await self.store.is_irrelevant(LINK)
            with self.assertRaises(StoreReadError):
                await self.store.is_processed(LINK)


if __name__ == "__main__":
    unittest.main()
