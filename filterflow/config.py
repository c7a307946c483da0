import tomllib
from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from filterflow.exceptions import ConfigError
from filterflow.models.config import ConfigSnapshot
from filterflow.services.logger import logger


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # System
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True
    DATA_DIR: Path = Path("./data")
    DB_FILE: str = "filterflow.db"

    # Operator configuration (re-read every cycle)
    CONFIG_FILE: Path = Path("filterflow_config.toml")

    # Sitemap traversal bound
    SITEMAP_MAX_DEPTH: int = 8

    @property
    def db_path(self) -> Path:
        return self.DATA_DIR / self.DB_FILE

    def ensure_dirs(self):
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)

settings = Settings()


def load_config(path: Path | str) -> ConfigSnapshot:
    """
    Reads and validates the TOML configuration file into a frozen snapshot.
    Any I/O, syntax or validation problem is raised as ConfigError.
    """
    config_path = Path(path)
    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        snapshot = ConfigSnapshot.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}: {e}") from e

    template = snapshot.general.summary_user_prompt_template
    if template.count("{}") != 2:
        logger.warning(
            f"[CONFIG] summary_user_prompt_template should contain exactly 2 '{{}}' placeholders "
            f"(title and description). Current: {template!r}"
        )
    return snapshot
