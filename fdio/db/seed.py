"""Seed the contributions table from a TOML file.

The file holds an array of tables, one per contribution::

    [[items]]
    name = "Log Message"
    type = "activity"
    url = "https://github.com/owner/repo/tree/master/activity/log/"
    author = "owner"
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from fdio.crawler.models import UNKNOWN_AUTHOR, CanonicalRecord


def load_seed(path: Path | str, key: str = "items") -> list[dict[str, Any]]:
    """Read the array of tables stored under *key* in a TOML file.

    Raises:
        ValueError: If *key* is absent or is not an array of tables.
        tomllib.TOMLDecodeError: If the file is not valid TOML.
    """
    with open(path, "rb") as fh:
        data = tomllib.load(fh)

    rows = data.get(key)
    if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
        raise ValueError(f"No items found under {key!r} in {path}")
    return rows


def records_from_seed(rows: list[dict[str, Any]]) -> list[CanonicalRecord]:
    """Map seed rows to records; rows without ``name`` or ``type`` are skipped."""
    records: list[CanonicalRecord] = []
    for row in rows:
        name = row.get("name")
        ctype = row.get("type")
        if not name or not ctype:
            continue
        records.append(
            CanonicalRecord(
                name=str(name),
                type=str(ctype),
                url=str(row.get("url", "")),
                description=str(row.get("description") or ""),
                author=str(row.get("author") or UNKNOWN_AUTHOR),
                uploadedon=str(row.get("uploadedon") or ""),
                showcase=str(row.get("showcase") or ""),
            )
        )
    return records
