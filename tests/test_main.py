import tempfile
import unittest
from pathlib import Path

from filterflow.main import parse_args, run


class TestCli(unittest.TestCase):
    def test_defaults(self):
        args = parse_args([])
        self.assertIsNone(args.config)
        self.assertFalse(args.once)
        self.assertIsNone(args.log_level)

    def test_flags(self):
        args = parse_args(["--config", "custom.toml", "--once", "--log-level", "DEBUG"])
        self.assertEqual(args.config, Path("custom.toml"))
        self.assertTrue(args.once)
        self.assertEqual(args.log_level, "DEBUG")


class TestStartup(unittest.IsolatedAsyncioTestCase):
    async def test_missing_initial_config_exits_with_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            self.assertEqual(await run(Path(tmp) / "absent.toml", once=True), 1)

    async def test_invalid_initial_config_exits_with_error(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.toml"
            path.write_text("[general]\ninterval_minutes = 1\n", encoding="utf-8")
            self.assertEqual(await run(path, once=True), 1)


if __name__ == "__main__":
    unittest.main()
