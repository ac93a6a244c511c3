"""Crawler package: GitHub code search, item normalisation, staleness checks."""

from fdio.crawler.errors import (
    CrawlError,
    EnvelopeParseError,
    ItemParseError,
    StalenessNotFoundError,
    TransportError,
    UnknownSourceFileError,
)
from fdio.crawler.fetcher import fetch
from fdio.crawler.models import CanonicalRecord, ContributionType, CrawlReport
from fdio.crawler.pagination import Crawler, crawl
from fdio.crawler.sink import ListSink, Sink
from fdio.crawler.staleness import last_update_hours

__all__ = [
    "crawl",
    "Crawler",
    "fetch",
    "last_update_hours",
    "CanonicalRecord",
    "ContributionType",
    "CrawlReport",
    "Sink",
    "ListSink",
    "CrawlError",
    "TransportError",
    "EnvelopeParseError",
    "ItemParseError",
    "UnknownSourceFileError",
    "StalenessNotFoundError",
]
