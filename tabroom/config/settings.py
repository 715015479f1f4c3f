"""
Runtime Settings

All settings are loaded from environment variables (a local .env file is
read first when present). Nothing here opens a connection; the database
engine is built from these values by tabroom.database.
"""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_float_env(key: str, default: float) -> float:
    """Get a numeric value from environment variable."""
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{key} must be numeric, got {value!r}")


class Settings:
    """
    Application settings.

    Allocation weights here are only defaults; a caller may still pass
    explicit weights per allocation run. The per-judge load weight and the
    per-round judge capacity are fixed constants in
    tabroom.services.judge_allocation.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.DATABASE_URL: str = database_url or os.getenv(
            "DATABASE_URL", "sqlite+aiosqlite:///./tabroom.db"
        )
        self.DB_ECHO: bool = get_bool_env("DB_ECHO", False)
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        self.ALLOCATION_STRENGTH_MISMATCH_WEIGHT: float = get_float_env(
            "ALLOCATION_STRENGTH_MISMATCH_WEIGHT", 10
        )
        self.ALLOCATION_CONFLICT_PENALTY: float = get_float_env(
            "ALLOCATION_CONFLICT_PENALTY", 1000
        )

        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is not set")

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.DATABASE_URL.lower()

    def to_dict(self):
        return {
            "database_backend": "sqlite" if self.is_sqlite else "server",
            "db_echo": self.DB_ECHO,
            "log_level": self.LOG_LEVEL,
            "allocation_strength_mismatch_weight": self.ALLOCATION_STRENGTH_MISMATCH_WEIGHT,
            "allocation_conflict_penalty": self.ALLOCATION_CONFLICT_PENALTY,
        }


@lru_cache()
def get_settings() -> Settings:
    load_dotenv()
    return Settings()
