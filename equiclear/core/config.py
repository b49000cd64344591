"""
Indexer configuration parameters.

Defines storage location, logging and query defaults. Values come from
the environment (optionally a .env file) with the defaults below.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from equiclear.utils.logger import resolve_level

ENV_PREFIX = "EQUICLEAR_"


@dataclass
class IndexerConfig:
    """Indexer-wide configuration parameters"""

    # Storage
    data_dir: Path = Path("data")
    db_name: str = "indexer.db"

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[Path] = None

    # Query defaults
    page_limit: int = 100  # Default page size for auction listings
    price_curve_samples: int = 20  # Points per price curve

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    def ensure_dirs(self) -> None:
        """Create data and log directories"""
        self.data_dir.mkdir(exist_ok=True, parents=True)
        if self.log_dir is not None:
            self.log_dir.mkdir(exist_ok=True, parents=True)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be positive, got {value}")
    return value


def load_config(env_file: Optional[str] = None) -> IndexerConfig:
    """
    Load configuration from the environment.

    Args:
        env_file: Optional path to a .env file. Variables already set in
            the process environment take precedence.

    Returns:
        IndexerConfig instance

    Raises:
        ValueError: malformed integer or unknown log level
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    defaults = IndexerConfig()
    log_dir = os.getenv(ENV_PREFIX + "LOG_DIR")
    log_level = os.getenv(ENV_PREFIX + "LOG_LEVEL") or defaults.log_level
    resolve_level(log_level)

    return IndexerConfig(
        data_dir=Path(os.getenv(ENV_PREFIX + "DATA_DIR", str(defaults.data_dir))),
        db_name=os.getenv(ENV_PREFIX + "DB_NAME", defaults.db_name),
        log_level=log_level.strip().upper(),
        log_dir=Path(log_dir) if log_dir else None,
        page_limit=_env_int("PAGE_LIMIT", defaults.page_limit),
        price_curve_samples=_env_int("CURVE_SAMPLES", defaults.price_curve_samples),
    )
