"""Staleness oracle: how long ago was a repository last touched?

GitHub renders the date of the most recent commit on a repository's landing
page inside a time element (``<time-ago>`` on older layouts,
``<relative-time>`` on newer ones).  The crawler reads that element from the
HTML page rather than spending a call on the REST API.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from bs4 import BeautifulSoup

from fdio.config import CrawlConfig
from fdio.crawler.errors import StalenessNotFoundError
from fdio.crawler.fetcher import fetch
from fdio.crawler.models import FetchResponse

logger = logging.getLogger(__name__)


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_last_update(html: str, config: Optional[CrawlConfig] = None) -> datetime:
    """Return the last-update instant rendered in a repository page.

    The element text is parsed with ``config.date_format`` (e.g.
    ``"Jan 02, 2006"``).  When the text is in another shape but the element
    carries a machine-readable ``datetime`` attribute, that is used instead.

    Raises:
        StalenessNotFoundError: If no time element exists or no date can be
            read from it.
    """
    config = config or CrawlConfig()
    soup = BeautifulSoup(html, "html.parser")
    element = soup.find(list(config.time_tags))
    if element is None:
        raise StalenessNotFoundError("no last-update element on repository page")

    text = element.get_text(strip=True)
    try:
        return datetime.strptime(text, config.date_format).replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    attr = element.get("datetime")
    if isinstance(attr, str):
        parsed = _parse_iso(attr)
        if parsed is not None:
            return parsed

    raise StalenessNotFoundError(f"unreadable last-update date {text!r}")


def last_update_hours(
    repository_url: str,
    headers: Optional[Mapping[str, str]] = None,
    *,
    config: Optional[CrawlConfig] = None,
    fetcher: Callable[..., FetchResponse] = fetch,
    now: Optional[datetime] = None,
) -> float:
    """Return the hours elapsed since *repository_url* was last updated.

    Args:
        repository_url: Browsable URL of the repository, e.g.
            ``https://github.com/owner/repo``.
        headers: Optional request headers, forwarded verbatim.
        config: Crawl configuration (tags, date format, timeouts).
        fetcher: Request executor used to load the page.
        now: Reference instant; defaults to the current UTC time.

    Raises:
        StalenessNotFoundError: If the page carries no readable timestamp.
        TransportError: If the page could not be fetched.
    """
    config = config or CrawlConfig()
    response = fetcher(repository_url, headers, config=config)
    try:
        updated = extract_last_update(response.text, config)
    except StalenessNotFoundError as exc:
        exc.url = repository_url
        raise

    now = now or datetime.now(timezone.utc)
    hours = (now - updated).total_seconds() / 3600
    logger.debug("%s last updated %s (%.1f hours ago)", repository_url, updated.date(), hours)
    return hours
