import logging
import os
from pathlib import Path

from pydantic import BaseModel

ENV_PREFIX = "NAVHUB_"


class Settings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765
    data_dir: Path = Path(".navhub-data")
    cache_file: Path = Path("navhub_cache.json")
    remote_url: str = "http://127.0.0.1:8765"
    password_expiry_days: int = 7  # 0 = never expires
    favicon_ttl_seconds: int = 30 * 24 * 60 * 60
    request_timeout: float = 5.0
    log_level: str = "INFO"


def load_settings(environ=None) -> Settings:
    """Defaults overridden by NAVHUB_<FIELD> environment variables."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in Settings.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return Settings.model_validate(overrides)


def setup_logging(level="INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
