"""Schema setup for the contributions database."""

from __future__ import annotations

import sqlite3

from fdio.config import settings


def init_db(conn: sqlite3.Connection) -> None:
    """Create the ``contributions`` table and its indexes.

    Every statement in ``schema.sql`` uses ``IF NOT EXISTS``, so this is safe
    to call on an existing database.
    """
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
