"""Exceptions raised by the crawl engine.

Fatal errors (:class:`TransportError`, :class:`EnvelopeParseError`,
:class:`StalenessNotFoundError`) unwind out of :func:`fdio.crawler.crawl`.
:class:`ItemParseError` is caught per item by the normalizer and never
aborts a crawl.
"""

from __future__ import annotations

from typing import Optional


class CrawlError(Exception):
    """Base class for crawl failures.

    Carries the URL that failed and, once the pagination controller has seen
    it, the page number being processed.
    """

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        page: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.page = page

    def __str__(self) -> str:
        context = []
        if self.page is not None:
            context.append(f"page {self.page}")
        if self.url:
            context.append(self.url)
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class TransportError(CrawlError):
    """A request timed out or could not connect."""

    def __init__(self, message: str, *, kind: str = "connection", **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.kind = kind

    @property
    def is_timeout(self) -> bool:
        return self.kind == "timeout"


class EnvelopeParseError(CrawlError):
    """A search-results page was not the expected JSON envelope."""


class ItemParseError(CrawlError):
    """A single metadata file could not be parsed."""


class UnknownSourceFileError(ItemParseError):
    """A search hit points at a file that is not a known metadata filename."""


class StalenessNotFoundError(CrawlError):
    """The repository page carries no readable last-update timestamp."""
