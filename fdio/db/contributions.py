"""CRUD operations for the ``contributions`` table."""

from __future__ import annotations

import logging
import sqlite3
from time import time
from typing import Iterable, Optional, Sequence

from fdio.crawler.models import CanonicalRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_record(row: sqlite3.Row) -> CanonicalRecord:
    return CanonicalRecord(
        name=row["name"],
        type=row["type"],
        description=row["description"],
        url=row["url"],
        author=row["author"],
        uploadedon=row["uploadedon"],
        showcase=row["showcase"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def upsert_contributions(
    conn: sqlite3.Connection,
    records: Iterable[CanonicalRecord],
) -> int:
    """Insert *records*, updating rows that share a dedup key.

    ``uploadedon`` and ``showcase`` of an existing row are kept, since those
    columns are filled in by a later stage and not by the crawler.

    Returns:
        Number of records written.
    """
    now = int(time())
    rows = [
        (
            r.dedup_key,
            r.name,
            r.type,
            r.description,
            r.url,
            r.author,
            r.uploadedon,
            r.showcase,
            now,
            now,
        )
        for r in records
    ]
    if not rows:
        return 0

    with conn:
        conn.executemany(
            """
            INSERT INTO contributions
                (key, name, type, description, url, author, uploadedon, showcase,
                 created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                name = excluded.name,
                type = excluded.type,
                description = excluded.description,
                url = excluded.url,
                author = excluded.author,
                updated_at = excluded.updated_at
            """,
            rows,
        )
    return len(rows)


def get_contribution(conn: sqlite3.Connection, key: str) -> Optional[CanonicalRecord]:
    """Fetch a contribution by its dedup key.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM contributions WHERE key = ?", (key,)
    ).fetchone()
    return _row_to_record(row) if row else None


def list_contributions(
    conn: sqlite3.Connection,
    contribution_type: Optional[str] = None,
) -> list[CanonicalRecord]:
    """Return all contributions, optionally filtered by ``type``."""
    if contribution_type:
        rows = conn.execute(
            "SELECT * FROM contributions WHERE type = ? ORDER BY key",
            (contribution_type,),
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM contributions ORDER BY key"
        ).fetchall()
    return [_row_to_record(r) for r in rows]


def count_contributions(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT COUNT(*) FROM contributions").fetchone()
    return row[0]


# ---------------------------------------------------------------------------
# Sink adapter
# ---------------------------------------------------------------------------

class SqliteSink:
    """Crawler sink that writes each batch to the ``contributions`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.written = 0

    def insert_batch(self, records: Sequence[CanonicalRecord]) -> None:
        count = upsert_contributions(self.conn, records)
        self.written += count
        logger.debug("Stored batch of %d contribution(s)", count)
