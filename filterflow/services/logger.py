import sys
from pathlib import Path

from loguru import logger

def setup_logging(level: str = "INFO", data_dir: Path | None = None, to_file: bool = True):
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    # Add file logging
    if to_file and data_dir is not None:
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.add(data_dir / "filterflow.log", rotation="10 MB", level="DEBUG")
