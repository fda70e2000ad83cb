"""Environment-driven settings for the prize pool."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .db.utils import resolve_sqlite_url

logger = logging.getLogger(__name__)

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./dev.db"
DEFAULT_WIN_RATE = 0.15
DEFAULT_MAX_PRIZES = 10
DEFAULT_POOL_SIZE = 10


@dataclass(frozen=True)
class Settings:
    """Runtime configuration read from the environment.

    Attributes
    ----------
    database_url : str
        SQLAlchemy URL of the shared store. Relative SQLite paths are
        resolved against the project root.
    default_win_rate : float
        Gate probability used when a request does not supply one.
    max_prizes : int
        Informational pool size reported by state queries. The binding cap
        is the number of seeded token rows.
    pool_size : int
        Number of tokens created when an empty pool is seeded.
    echo : bool
        Whether SQLAlchemy should log emitted SQL.
    """

    database_url: str = DEFAULT_DB_URL
    default_win_rate: float = DEFAULT_WIN_RATE
    max_prizes: int = DEFAULT_MAX_PRIZES
    pool_size: int = DEFAULT_POOL_SIZE
    echo: bool = False


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}; using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default


def _env_bool(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Build :class:`Settings` from the process environment.

    Parameters
    ----------
    env_file : Optional[Path], default: None
        Explicit ``.env`` file to load. When omitted, ``python-dotenv``
        searches for one starting from the current directory. Values that
        are already present in the environment are never overridden.

    Returns
    -------
    Settings
        Settings with defaults applied for missing or malformed values.
    """
    if env_file is not None:
        load_dotenv(env_file)
    else:
        load_dotenv()

    return Settings(
        database_url=resolve_sqlite_url(
            os.getenv("DB_URL", DEFAULT_DB_URL), ROOT_DIR
        ),
        default_win_rate=_env_float("DEFAULT_WIN_RATE", DEFAULT_WIN_RATE),
        max_prizes=_env_int("MAX_PRIZES", DEFAULT_MAX_PRIZES),
        pool_size=_env_int("POOL_SIZE", DEFAULT_POOL_SIZE),
        echo=_env_bool("DB_ECHO"),
    )


__all__ = ["Settings", "load_settings", "ROOT_DIR"]
