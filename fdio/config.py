"""Centralised settings for fdio.

Process-level configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).

Per-crawl values (endpoints, query templates, filename rules) live on the
immutable :class:`CrawlConfig`, built once per crawl and passed to every
crawler component.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

from dotenv import load_dotenv

# Load .env from the project root (one level up from this package)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FDIO_WORKSPACE", Path.home() / ".fdio_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "fdio.db"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # GitHub access
    # ------------------------------------------------------------------
    github_token: str = field(
        default_factory=lambda: os.environ.get("GITHUB_TOKEN", "")
    )

    # ------------------------------------------------------------------
    # HTTP / crawl pacing
    # ------------------------------------------------------------------
    connect_timeout: float = field(
        default_factory=lambda: float(os.environ.get("FDIO_CONNECT_TIMEOUT", "10.0"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("FDIO_REQUEST_TIMEOUT", "30.0"))
    )
    page_delay: float = field(
        default_factory=lambda: float(os.environ.get("FDIO_PAGE_DELAY", "5.0"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("FDIO_LOG_LEVEL", "INFO")
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton, import this everywhere:
#   from fdio.config import settings
settings = Settings()


# ---------------------------------------------------------------------------
# Per-crawl configuration
# ---------------------------------------------------------------------------

ACTIVITY_QUERY = "sort=indexed&order=desc&q=filename%3Aactivity.json+flogo"
TRIGGER_QUERY = "sort=indexed&order=desc&q=filename%3Atrigger.json+flogo"

# Known metadata filenames and how many trailing characters to strip from a
# hit's path to get the contribution directory (the filename itself).
SOURCE_FILES: Mapping[str, int] = MappingProxyType(
    {"activity.json": len("activity.json"), "trigger.json": len("trigger.json")}
)


@dataclass(frozen=True)
class CrawlConfig:
    """Immutable endpoint and parsing configuration for one crawl run."""

    api_root: str = "https://api.github.com"
    search_endpoint: str = "/search/code"
    activity_query: str = ACTIVITY_QUERY
    trigger_query: str = TRIGGER_QUERY

    web_host: str = "github.com"
    raw_host: str = "raw.githubusercontent.com"
    default_branch: str = "master"
    tree_marker: str = "/tree"
    blob_marker: str = "/blob"

    source_files: Mapping[str, int] = field(default_factory=lambda: SOURCE_FILES)
    type_prefix: str = "flogo:"

    time_tags: tuple[str, ...] = ("time-ago", "relative-time")
    date_format: str = "%b %d, %Y"

    connect_timeout: float = 10.0
    request_timeout: float = 30.0
    page_delay: float = 5.0

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> CrawlConfig:
        """Build a config whose timeouts and pacing come from *source*."""
        source = source or settings
        return cls(
            connect_timeout=source.connect_timeout,
            request_timeout=source.request_timeout,
            page_delay=source.page_delay,
        )

    def query_for(self, contribution_type: str) -> str:
        """Return the search query for *contribution_type*.

        ``"Trigger"`` selects the trigger query; any other value selects the
        activity query.
        """
        if contribution_type == "Trigger":
            return self.trigger_query
        return self.activity_query

    def page_url(self, query: str, page: Optional[int] = None) -> str:
        """Return the search URL for *query*, optionally for a given page."""
        url = f"{self.api_root}{self.search_endpoint}?{query}"
        if page is not None:
            url += f"&page={page}"
        return url
