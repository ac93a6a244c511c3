"""fdio CLI: entry-point for crawling and database operations.

Usage:
    fdio --help

Command groups:
    crawl     → search GitHub for Flogo activities / triggers
    db        → database operations (init, list, import)
"""

from __future__ import annotations

import logging
from typing import Optional

import typer

from fdio.config import CrawlConfig, settings
from fdio.crawler import CrawlError, ListSink, TransportError, crawl
from fdio.crawler.models import ContributionType
from fdio.db import SqliteSink, get_connection, init_db
from fdio.db.contributions import list_contributions, upsert_contributions
from fdio.db.seed import load_seed, records_from_seed

app = typer.Typer(
    name="fdio",
    help="Discover Flogo contributions on GitHub.",
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Configure logging for every command."""
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _auth_headers() -> Optional[dict[str, str]]:
    if not settings.github_token:
        return None
    return {"Authorization": f"token {settings.github_token}"}


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------
@app.command("crawl")
def crawl_cmd(
    type: ContributionType = typer.Option(
        ContributionType.ACTIVITY, "--type", help="Contribution type to search for."
    ),
    timeout: float = typer.Option(
        0.0,
        "--timeout",
        help="Stop when the last repository was updated more than this many hours ago (0 = never).",
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write to the database."),
) -> None:
    """Search GitHub for contributions and store them in the database."""
    config = CrawlConfig.from_settings()
    headers = _auth_headers()
    if headers is None:
        typer.echo("[crawl] GITHUB_TOKEN not set; using unauthenticated requests.")

    conn = None
    if dry_run:
        sink = ListSink()
    else:
        conn = get_connection()
        init_db(conn)
        sink = SqliteSink(conn)

    typer.echo(f"[crawl] Searching for {type.value} contributions …")
    try:
        report = crawl(headers, sink, timeout, type.value, config=config)
    except TransportError as exc:
        label = "Timed out" if exc.is_timeout else "Connection failed"
        typer.echo(f"[crawl] {label}: {exc}")
        raise typer.Exit(code=1)
    except CrawlError as exc:
        typer.echo(f"[crawl] Error: {exc}")
        raise typer.Exit(code=1)
    finally:
        if conn is not None:
            conn.close()

    typer.echo(f"[crawl] Pages   : {report.pages_fetched}/{report.total_pages}")
    typer.echo(f"[crawl] Records : {report.records_submitted}")
    typer.echo(f"[crawl] Skipped : {len(report.skipped)}")
    if report.stopped_early:
        typer.echo(
            f"[crawl] Stopped early: last repository updated {report.last_update_hours:.1f} hours ago."
        )


# ---------------------------------------------------------------------------
# DB commands
# ---------------------------------------------------------------------------
db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@db_app.command("list")
def db_list(
    type: Optional[str] = typer.Option(None, "--type", help="Filter by type (e.g. activity, trigger)."),
) -> None:
    """List stored contributions."""
    conn = get_connection()
    init_db(conn)
    records = list_contributions(conn, contribution_type=type)
    conn.close()
    if not records:
        typer.echo("[db list] No contributions found.")
        return
    for r in records:
        typer.echo(f"  {r.dedup_key}  [{r.type}]  {r.url}")


@db_app.command("import")
def db_import(
    file: str = typer.Option(..., "--file", help="TOML file with [[items]] tables."),
    key: str = typer.Option("items", "--key", help="Name of the array of tables to read."),
) -> None:
    """Load contributions from a TOML file into the database."""
    try:
        rows = load_seed(file, key=key)
    except (OSError, ValueError) as exc:
        typer.echo(f"[db import] Error: {exc}")
        raise typer.Exit(code=1)

    records = records_from_seed(rows)
    conn = get_connection()
    init_db(conn)
    try:
        written = upsert_contributions(conn, records)
    finally:
        conn.close()
    typer.echo(f"[db import] Imported {written} of {len(rows)} item(s) from {file}")


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
