from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.constants import MAX_HISTORY

ROOT_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Pivot dashboard configuration, read from PIVOT_* environment variables or .env."""

    model_config = SettingsConfigDict(env_prefix="PIVOT_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    data_dir: Path = Field(default=ROOT_DIR / "data")
    metadata_dir: Path = Field(default=ROOT_DIR / "metadata")
    default_dataset: Optional[str] = None
    max_history: int = Field(default=MAX_HISTORY, ge=1)
    cors_origins: str = Field(default="http://localhost:3000,http://127.0.0.1:3000")
    log_level: str = "INFO"


def parse_origins(value: str) -> List[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
