"""Application-wide configuration defaults and helpers."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

# Base directory for resolving relative paths (repository root in a checkout).
BASE_DIR = Path(__file__).resolve().parents[3]

# Freshness windows per data category, in seconds.
DEFAULT_FRESHNESS_WINDOWS: Dict[str, int] = {
    "financials": 5 * 60,
    "fundamentals": 60 * 60,
    "news": 15 * 60,
    "highlights": 30 * 60,
    "docs": 4 * 60 * 60,
    "calendar": 2 * 60 * 60,
    "ratings": 24 * 60 * 60,
    "sentiment": 24 * 60 * 60,
}


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse truthy environment values like '1' or 'true'."""
    if value is None:
        return default
    if not isinstance(value, str):
        value = str(value)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str]) -> Optional[int]:
    """Safely parse an integer env var, returning None on failure."""
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _to_float(value: Optional[str]) -> Optional[float]:
    """Safely parse a float env var, returning None on failure."""
    if value is None:
        return None
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass
class Config:
    """Runtime configuration loaded from environment variables."""

    debug: bool = False
    database_path: Path = BASE_DIR / "data" / "ooh_terminal.db"
    sqlite_echo: bool = False
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.poe.com/v1"
    gemini_model: str = "gemini-2.5-flash"
    proxy_url: Optional[str] = None
    llm_web_search: Optional[bool] = None
    llm_thinking_budget: Optional[int] = None
    llm_timeout: float = 60.0
    retry_max: int = 3
    retry_initial_delay: float = 1.5
    snapshot_key: str = "ooh_terminal_snapshot"
    freshness_windows: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_FRESHNESS_WINDOWS)
    )

    @classmethod
    def from_env(cls) -> "Config":
        """Build a configuration instance using environment overrides."""
        db_path = Path(os.getenv("DATABASE_PATH", BASE_DIR / "data" / "ooh_terminal.db"))

        windows = dict(DEFAULT_FRESHNESS_WINDOWS)
        for category in windows:
            override = _to_int(os.getenv(f"TTL_{category.upper()}"))
            if override is not None and override >= 0:
                windows[category] = override

        retry_max = _to_int(os.getenv("RETRY_MAX"))
        retry_delay = _to_float(os.getenv("RETRY_INITIAL_DELAY"))
        timeout = _to_float(os.getenv("LLM_TIMEOUT"))

        config = cls(
            debug=_to_bool(os.getenv("APP_DEBUG")),
            database_path=db_path,
            sqlite_echo=_to_bool(os.getenv("SQLITE_ECHO")),
            llm_api_key=os.getenv("GEMINI_API_KEY") or os.getenv("POE_API_KEY"),
            llm_base_url=os.getenv("LLM_BASE_URL", "https://api.poe.com/v1"),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            proxy_url=os.getenv("PROXY_URL"),
            llm_web_search=_to_bool(os.getenv("LLM_WEB_SEARCH"))
            if os.getenv("LLM_WEB_SEARCH") is not None
            else None,
            llm_thinking_budget=_to_int(os.getenv("LLM_THINKING_BUDGET")),
            llm_timeout=timeout if timeout is not None else 60.0,
            retry_max=retry_max if retry_max is not None else 3,
            retry_initial_delay=retry_delay if retry_delay is not None else 1.5,
            snapshot_key=os.getenv("SNAPSHOT_KEY", "ooh_terminal_snapshot"),
            freshness_windows=windows,
        )
        config.ensure_directories()
        return config

    @property
    def database_uri(self) -> str:
        return f"sqlite:///{self.database_path}"

    def ensure_directories(self) -> None:
        """Create directories needed for runtime artifacts."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
