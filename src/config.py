"""Application configuration loaded from environment variables."""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from pydantic_settings import BaseSettings

_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s - %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Variables use the ``CYCLESENSE_`` prefix, e.g. ``CYCLESENSE_LOG_LEVEL``.
    """

    # --- App ---
    app_name: str = "Cyclesense"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Engine ---
    # Override for the bundled engine_config.yaml (absolute path)
    engine_config_path: str | None = None

    model_config = {
        "env_prefix": "CYCLESENSE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Install the root logging handler used by host applications.

    The analytics engine only ever obtains loggers; calling this is left to
    whichever process embeds it.
    """
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_LOG_DATEFMT,
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("cyclesense").debug(
        "Logging configured for %s v%s [%s]",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )
