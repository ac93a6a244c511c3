"""Pagination controller: walks the code-search results page by page.

Flow for every page::

    search page -> normalize items -> sink.insert_batch -> staleness check

Page 1's ``Link`` header decides how many pages there are.  Later pages are
requested strictly in order, each after a fixed pause so the search API's
request budget is not exhausted.  When the repository behind the last record
of a page has not been updated for longer than ``timeout_hours``, the rest of
the result set is assumed unchanged since the previous run and the crawl
stops.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from fdio.config import CrawlConfig
from fdio.crawler.errors import CrawlError, EnvelopeParseError
from fdio.crawler.fetcher import fetch
from fdio.crawler.models import CrawlReport, FetchResponse, PageCursor, PageResult
from fdio.crawler.normalizer import normalize_items
from fdio.crawler.sink import Sink
from fdio.crawler.staleness import last_update_hours

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def parse_envelope(response: FetchResponse) -> List[Any]:
    """Return the ``items`` array of a search-results page.

    Raises:
        EnvelopeParseError: If the body is not a JSON object with an
            ``items`` list.
    """
    try:
        data = response.json()
    except ValueError as exc:
        raise EnvelopeParseError(
            f"search response is not JSON (HTTP {response.status_code})", url=response.url
        ) from exc
    if not isinstance(data, dict):
        raise EnvelopeParseError("search response is not a JSON object", url=response.url)

    items = data.get("items")
    if not isinstance(items, list):
        message = data.get("message")
        detail = f": {message}" if isinstance(message, str) else ""
        raise EnvelopeParseError(
            f"search response has no items (HTTP {response.status_code}){detail}",
            url=response.url,
        )
    return items


def last_page(links: Mapping[str, Mapping[str, str]]) -> int:
    """Return the page number of the ``last`` link relation, or 1 if absent."""
    last = links.get("last")
    if not last or not last.get("url"):
        return 1
    values = parse_qs(urlsplit(last["url"]).query).get("page")
    if not values:
        return 1
    try:
        return max(int(values[-1]), 1)
    except ValueError:
        return 1


def repository_url(record_url: str, config: CrawlConfig) -> str:
    """Cut a contribution URL back to its repository URL.

    ``https://github.com/o/r/tree/master/a/`` -> ``https://github.com/o/r``.
    """
    idx = record_url.find(config.tree_marker)
    return record_url if idx == -1 else record_url[:idx]


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class Crawler:
    """Runs crawls against the code-search API.

    Collaborators are injected so tests can swap the network, the clock and
    the staleness lookup.
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        *,
        fetcher: Callable[..., FetchResponse] = fetch,
        oracle: Callable[..., float] = last_update_hours,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or CrawlConfig.from_settings()
        self.fetcher = fetcher
        self.oracle = oracle
        self.sleep = sleep

    def run(
        self,
        headers: Optional[Mapping[str, str]],
        sink: Sink,
        timeout_hours: float,
        contribution_type: str,
    ) -> CrawlReport:
        """Crawl every result page for *contribution_type* into *sink*.

        Args:
            headers: Request headers for every outbound call (usually the
                ``Authorization`` header), or ``None``.
            sink: Receives one batch per processed page.
            timeout_hours: Stop once the last record's repository is older
                than this many hours.  ``0`` disables the check.
            contribution_type: ``"Trigger"`` or anything else for activities.

        Returns:
            A :class:`CrawlReport`.  Stopping early is a success.

        Raises:
            CrawlError: On the first fatal error, with ``page`` and ``url``
                set.  Batches already submitted are kept.
        """
        config = self.config
        cursor = PageCursor(query=config.query_for(contribution_type))
        report = CrawlReport(contribution_type=contribution_type)

        response = self._process_page(cursor, headers, sink, timeout_hours, report)
        if report.stopped_early:
            return report

        cursor.total_pages = last_page(response.links)
        report.total_pages = cursor.total_pages
        logger.info("Found a total number of %d pages", cursor.total_pages)

        while cursor.has_next:
            cursor.advance()
            self.sleep(config.page_delay)
            self._process_page(cursor, headers, sink, timeout_hours, report)
            if report.stopped_early:
                break

        logger.info(
            "Crawl finished: %d page(s), %d record(s), %d skipped",
            report.pages_fetched,
            report.records_submitted,
            len(report.skipped),
        )
        return report

    def _process_page(
        self,
        cursor: PageCursor,
        headers: Optional[Mapping[str, str]],
        sink: Sink,
        timeout_hours: float,
        report: CrawlReport,
    ) -> FetchResponse:
        config = self.config
        url = cursor.url(config)
        try:
            logger.info("Send request to %s", url)
            response = self.fetcher(url, headers, config=config)
            items = parse_envelope(response)

            result = normalize_items(
                items, headers, page=cursor.page, config=config, fetcher=self.fetcher
            )
            sink.insert_batch(result.records)
            report.pages_fetched += 1
            report.records_submitted += len(result.records)
            report.skipped.extend(result.skipped)

            if timeout_hours != 0:
                self._check_staleness(result, headers, timeout_hours, report)
        except CrawlError as exc:
            if exc.page is None:
                exc.page = cursor.page
            if exc.url is None:
                exc.url = url
            raise
        return response

    def _check_staleness(
        self,
        result: PageResult,
        headers: Optional[Mapping[str, str]],
        timeout_hours: float,
        report: CrawlReport,
    ) -> None:
        last = result.last_record
        if last is None:
            logger.debug("Page %d produced no records, skipping staleness check", result.page)
            return

        hours = self.oracle(repository_url(last.url, self.config), headers, config=self.config)
        report.last_update_hours = hours
        if hours > timeout_hours:
            logger.info("Maximum timeout reached. Last repo update was %.1f hours", hours)
            report.stopped_early = True


def crawl(
    headers: Optional[Mapping[str, str]],
    sink: Sink,
    timeout_hours: float,
    contribution_type: str,
    *,
    config: Optional[CrawlConfig] = None,
    fetcher: Callable[..., FetchResponse] = fetch,
    oracle: Callable[..., float] = last_update_hours,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlReport:
    """Search GitHub for Flogo activities or triggers and store what is found.

    Convenience wrapper around :meth:`Crawler.run`.
    """
    crawler = Crawler(config, fetcher=fetcher, oracle=oracle, sleep=sleep)
    return crawler.run(headers, sink, timeout_hours, contribution_type)
