"""Item normalizer: turns code-search hits into :class:`CanonicalRecord` objects.

Each hit points at an ``activity.json`` or ``trigger.json`` file.  The file is
fetched from the raw-content host, parsed, and mapped to a canonical record.
Problems with a single hit are logged and the hit is skipped; they never fail
the page.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any, Callable, Iterable, Mapping, Optional

from fdio.config import CrawlConfig
from fdio.crawler.errors import ItemParseError, TransportError, UnknownSourceFileError
from fdio.crawler.fetcher import fetch
from fdio.crawler.models import (
    UNKNOWN_AUTHOR,
    CanonicalRecord,
    FetchResponse,
    ItemContent,
    PageResult,
    SearchHit,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field derivation
# ---------------------------------------------------------------------------

def raw_content_url(html_url: str, config: CrawlConfig) -> str:
    """Rewrite a browsable file URL to its raw-content URL.

    ``https://github.com/o/r/blob/master/a/activity.json`` becomes
    ``https://raw.githubusercontent.com/o/r/master/a/activity.json``.
    """
    url = html_url.replace(config.web_host, config.raw_host, 1)
    return url.replace(config.blob_marker, "", 1)


def contribution_path(path: str, config: CrawlConfig) -> str:
    """Return the directory part of *path*, keeping its trailing slash.

    Raises:
        UnknownSourceFileError: If the file is not one of the known
            metadata filenames.
    """
    filename = posixpath.basename(path)
    suffix_length = config.source_files.get(filename)
    if suffix_length is None:
        raise UnknownSourceFileError(f"unexpected source file {filename!r}")
    return path[: len(path) - suffix_length]


def contribution_type(raw_type: str, config: CrawlConfig) -> str:
    """``"flogo:activity"`` -> ``"activity"``.

    Raises:
        ItemParseError: If nothing is left once the prefix and colons are
            removed.
    """
    derived = raw_type[len(config.type_prefix):].replace(":", "")
    if not derived:
        raise ItemParseError(f"metadata type {raw_type!r} names no contribution type")
    return derived


def contribution_url(full_name: str, path: str, config: CrawlConfig) -> str:
    return f"https://{config.web_host}/{full_name}/tree/{config.default_branch}/{path}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_hit(
    item: Any,
    headers: Optional[Mapping[str, str]] = None,
    *,
    config: CrawlConfig,
    fetcher: Callable[..., FetchResponse] = fetch,
) -> Optional[CanonicalRecord]:
    """Fetch and normalise the file behind one search hit.

    Returns ``None`` when the file has no ``name``; such hits are dropped
    without being treated as errors.

    Raises:
        ItemParseError: If the hit or the file content is malformed.
        TransportError: If the file could not be fetched.
    """
    hit = SearchHit.from_item(item)
    content_url = raw_content_url(hit.html_url, config)

    try:
        response = fetcher(content_url, headers, config=config)
        content = ItemContent.from_json(response.body)
        path = contribution_path(hit.path, config)
        ctype = contribution_type(content.type, config)
    except (ItemParseError, TransportError) as exc:
        exc.url = exc.url or content_url
        raise

    if not content.name:
        logger.debug("Dropping %s: no name", content_url)
        return None

    return CanonicalRecord(
        name=content.name,
        type=ctype,
        description=content.description or "",
        author=content.author or UNKNOWN_AUTHOR,
        url=contribution_url(hit.full_name, path, config),
    )


def normalize_items(
    items: Iterable[Any],
    headers: Optional[Mapping[str, str]] = None,
    *,
    page: int,
    config: CrawlConfig,
    fetcher: Callable[..., FetchResponse] = fetch,
) -> PageResult:
    """Normalise every hit on a page, in order.

    Hits that fail to fetch or parse are logged and recorded in
    :attr:`PageResult.skipped`; the remaining hits are still processed.
    """
    result = PageResult(page=page)
    for item in items:
        try:
            record = normalize_hit(item, headers, config=config, fetcher=fetcher)
        except (ItemParseError, TransportError) as exc:
            source = exc.url or _describe(item)
            logger.warning("Skipping %s: %s", source, exc.message)
            result.skipped.append((source, exc.message))
            continue
        if record is None:
            continue
        result.records.append(record)
        logger.debug("Added %s to the list", record.dedup_key)
    return result


def _describe(item: Any) -> str:
    if isinstance(item, Mapping):
        return str(item.get("html_url") or item.get("path") or "<unknown hit>")
    return "<unknown hit>"
