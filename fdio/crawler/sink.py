"""Where normalised records go.

The crawler only needs ``insert_batch``; the SQLite-backed implementation
lives in :mod:`fdio.db.contributions`.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence

from fdio.crawler.models import CanonicalRecord


class Sink(Protocol):
    def insert_batch(self, records: Sequence[CanonicalRecord]) -> None:
        """Store one page's worth of records."""


class ListSink:
    """Keeps every batch in memory, in the order it was submitted."""

    def __init__(self) -> None:
        self.batches: List[List[CanonicalRecord]] = []

    def insert_batch(self, records: Sequence[CanonicalRecord]) -> None:
        self.batches.append(list(records))

    @property
    def records(self) -> List[CanonicalRecord]:
        return [record for batch in self.batches for record in batch]
