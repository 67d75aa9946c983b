"""
Central configuration loader.
Reads from environment variables (via .env) and falls back to defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Load .env from repo root (if present)
# ---------------------------------------------------------------------------
_REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_REPO_ROOT / ".env")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    val = os.getenv(key, default)
    if required and not val:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return val


def _get_int(key: str, default: int) -> int:
    raw = _get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise EnvironmentError(f"Environment variable {key} must be an integer, got {raw!r}")


# ---------------------------------------------------------------------------
# Store config
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreConfig:
    db_path: Path
    log_level: str
    # Inclusive bounds for the random batch writer
    min_items: int = 8
    max_items: int = 16
    min_batch: int = 3
    max_batch: int = 6

    @property
    def item_range(self) -> tuple[int, int]:
        return (self.min_items, self.max_items)

    @property
    def batch_range(self) -> tuple[int, int]:
        return (self.min_batch, self.max_batch)


def get_store_config() -> StoreConfig:
    db_path = _get("ITEMSTORE_DB_PATH")
    return StoreConfig(
        db_path=Path(db_path) if db_path else get_db_path(),
        log_level=_get("ITEMSTORE_LOG_LEVEL", default="INFO"),  # type: ignore[arg-type]
        min_items=_get_int("ITEMSTORE_MIN_ITEMS", 8),
        max_items=_get_int("ITEMSTORE_MAX_ITEMS", 16),
        min_batch=_get_int("ITEMSTORE_MIN_BATCH", 3),
        max_batch=_get_int("ITEMSTORE_MAX_BATCH", 6),
    )


def get_log_level(name: Optional[str] = None) -> int:
    """Map a level name (default: configured level) to a ``logging`` constant."""
    name = name or _get("ITEMSTORE_LOG_LEVEL", default="INFO")
    return getattr(logging, name.upper(), logging.INFO)  # type: ignore[union-attr]


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(level=get_log_level(level), format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def get_repo_root() -> Path:
    return _REPO_ROOT


def get_db_path() -> Path:
    return _REPO_ROOT / "data" / "test.db"
