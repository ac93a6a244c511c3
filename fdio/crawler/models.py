"""Data models for the crawl engine."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

from fdio.config import CrawlConfig
from fdio.crawler.errors import ItemParseError

UNKNOWN_AUTHOR = "Unknown"


class ContributionType(str, Enum):
    """Which kind of Flogo contribution a crawl searches for."""

    TRIGGER = "Trigger"
    ACTIVITY = "Activity"


def dedup_key(author: str, name: str) -> str:
    """Return the key downstream consumers use to recognise the same entity."""
    return f"{author.lower()}/{name.replace(' ', '').lower()}"


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

@dataclass
class FetchResponse:
    """The result of a single GET issued by the request executor."""

    url: str
    status_code: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)
    links: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON.  Raises :class:`ValueError` on bad input."""
        return json.loads(self.body)


# ---------------------------------------------------------------------------
# Search results and file content
# ---------------------------------------------------------------------------

def _require_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ItemParseError(f"{where} is missing string field {key!r}")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ItemParseError(
            f"metadata field {key!r} must be a string, got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class SearchHit:
    """One matched file from a code-search results page."""

    full_name: str
    path: str
    html_url: str

    @classmethod
    def from_item(cls, item: Any) -> SearchHit:
        """Validate one entry of the envelope's ``items`` array."""
        if not isinstance(item, dict):
            raise ItemParseError("search hit is not a JSON object")
        repository = item.get("repository")
        if not isinstance(repository, dict):
            raise ItemParseError("search hit has no repository object")
        return cls(
            full_name=_require_str(repository, "full_name", "repository"),
            path=_require_str(item, "path", "search hit"),
            html_url=_require_str(item, "html_url", "search hit"),
        )


@dataclass(frozen=True)
class ItemContent:
    """Typed view of a fetched ``activity.json`` / ``trigger.json`` file.

    Only ``type`` is required for a file to count as well formed; ``name`` is
    checked later because a missing name drops the item silently rather than
    being an error.
    """

    type: str
    name: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_json(cls, body: bytes | str) -> ItemContent:
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise ItemParseError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ItemParseError("metadata file is not a JSON object")
        if not data.get("type"):
            raise ItemParseError("metadata file has no 'type' field")
        return cls(
            type=_require_str(data, "type", "metadata file"),
            name=_optional_str(data, "name"),
            author=_optional_str(data, "author"),
            description=_optional_str(data, "description"),
        )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass
class CanonicalRecord:
    """A normalised, storage-ready contribution."""

    name: str
    type: str
    url: str
    description: str = ""
    author: str = UNKNOWN_AUTHOR
    uploadedon: str = ""
    showcase: str = ""

    @property
    def dedup_key(self) -> str:
        return dedup_key(self.author, self.name)

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Crawl state
# ---------------------------------------------------------------------------

@dataclass
class PageCursor:
    """Pagination state for one crawl run."""

    query: str
    page: int = 1
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def advance(self) -> int:
        self.page += 1
        return self.page

    def url(self, config: CrawlConfig) -> str:
        """Search URL for the current page.  Page 1 carries no ``page`` parameter."""
        return config.page_url(self.query, self.page if self.page > 1 else None)


@dataclass
class PageResult:
    """Records normalised from one page, plus the hits that were skipped."""

    page: int
    records: List[CanonicalRecord] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def last_record(self) -> Optional[CanonicalRecord]:
        return self.records[-1] if self.records else None


@dataclass
class CrawlReport:
    """Summary of a finished crawl."""

    contribution_type: str
    total_pages: int = 1
    pages_fetched: int = 0
    records_submitted: int = 0
    skipped: List[Tuple[str, str]] = field(default_factory=list)
    stopped_early: bool = False
    last_update_hours: Optional[float] = None
