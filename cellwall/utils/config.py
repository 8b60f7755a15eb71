"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_cache_dir() -> Path:
    base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "adopt-a-cell"


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    source_url: str
    cell_price: int
    allocation_epsilon: float
    poll_interval_seconds: float
    fetch_timeout_seconds: float
    cache_dir: Path
    result_path: Path
    export_has_header: bool
    export_delimiter: str
    incremental_exports: bool
    anonymous_column: int
    first_name_column: int
    last_name_column: int
    pledge_column: int
    log_level: str
    log_file: Optional[Path]
    host: str
    port: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    log_file = os.getenv("CELLWALL_LOG_FILE")
    return Settings(
        app_name="cellwall",
        app_version="0.1.0",
        source_url=_env_str("CELLWALL_SOURCE_URL", ""),
        cell_price=_env_int("CELLWALL_CELL_PRICE", 50),
        allocation_epsilon=_env_float("CELLWALL_ALLOCATION_EPSILON", 1e-6),
        poll_interval_seconds=_env_float("CELLWALL_POLL_INTERVAL_SECONDS", 300.0),
        fetch_timeout_seconds=_env_float("CELLWALL_FETCH_TIMEOUT_SECONDS", 30.0),
        cache_dir=Path(_env_str("CELLWALL_CACHE_DIR", str(_default_cache_dir()))),
        result_path=Path(_env_str("CELLWALL_RESULT_PATH", "data/data.json")),
        export_has_header=_env_bool("CELLWALL_EXPORT_HAS_HEADER", True),
        export_delimiter=os.getenv("CELLWALL_EXPORT_DELIMITER") or ",",
        incremental_exports=_env_bool("CELLWALL_INCREMENTAL_EXPORTS", False),
        anonymous_column=_env_int("CELLWALL_ANONYMOUS_COLUMN", 2),
        first_name_column=_env_int("CELLWALL_FIRST_NAME_COLUMN", 5),
        last_name_column=_env_int("CELLWALL_LAST_NAME_COLUMN", 7),
        pledge_column=_env_int("CELLWALL_PLEDGE_COLUMN", 30),
        log_level=_env_str("CELLWALL_LOG_LEVEL", "INFO"),
        log_file=Path(log_file) if log_file and log_file.strip() else None,
        host=_env_str("CELLWALL_HOST", "127.0.0.1"),
        port=_env_int("CELLWALL_PORT", 8080),
    )
