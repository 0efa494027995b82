"""
Central configuration for the crawler.

Database: MySQL-compatible server. Configure via environment variables:
  - CHURCH_DB_HOST (default: 127.0.0.1)
  - CHURCH_DB_PORT (default: 3306)
  - CHURCH_DB_USER (default: root)
  - CHURCH_DB_PASSWORD (default: empty)
  - CHURCH_DB_DATABASE (default: church_crawler)

Structure analyzer:
  - CRAWLER_LLM_MODEL (default: gemini-2.5-flash)
  - CRAWLER_LLM_FALLBACK_MODEL (optional)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .constants import DEFAULT_DELAY_MS, DEFAULT_MAX_DEPTH, DEFAULT_MAX_PAGES
from .models import ProgressCallback


def get_log_dir() -> Path:
    """
    Get the directory for crawl log files.

    Uses CRAWLER_LOG_DIR if set, otherwise logs/ next to the package.
    """
    env_path = os.environ.get("CRAWLER_LOG_DIR")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).parent.parent / "logs"


def get_db_config() -> dict:
    """Get database connection settings from the environment."""
    return {
        "host": os.environ.get("CHURCH_DB_HOST", "127.0.0.1"),
        "port": int(os.environ.get("CHURCH_DB_PORT", "3306")),
        "user": os.environ.get("CHURCH_DB_USER", "root"),
        "password": os.environ.get("CHURCH_DB_PASSWORD", ""),
        "database": os.environ.get("CHURCH_DB_DATABASE", "church_crawler"),
    }


def get_llm_models() -> tuple[str, list[str]]:
    """Get (primary, fallbacks) for the structure analyzer."""
    primary = os.environ.get("CRAWLER_LLM_MODEL", "gemini-2.5-flash")
    fallback = os.environ.get("CRAWLER_LLM_FALLBACK_MODEL")
    return primary, [fallback] if fallback else []


@dataclass
class CrawlOptions:
    """Per-crawl settings. Zero or negative budgets are rejected."""

    max_depth: int = DEFAULT_MAX_DEPTH
    max_pages: int = DEFAULT_MAX_PAGES
    delay_ms: int = DEFAULT_DELAY_MS
    extract_contacts: bool = True
    extract_media: bool = True
    extract_people: bool = False
    deep_crawl: bool = False
    on_progress: Optional[ProgressCallback] = None

    def __post_init__(self):
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")
        if self.max_pages < 1:
            raise ValueError(f"max_pages must be >= 1, got {self.max_pages}")
        if self.delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {self.delay_ms}")

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    @property
    def crawl_type(self) -> str:
        """Crawl-log type label."""
        return "deep" if self.deep_crawl else "full"
