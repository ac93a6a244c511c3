"""Database layer package.

Public re-exports so callers can write::

    from fdio.db import get_connection, init_db
    from fdio.db import SqliteSink
"""

from fdio.db.connection import get_connection
from fdio.db.contributions import SqliteSink
from fdio.db.schema import init_db

__all__ = ["get_connection", "init_db", "SqliteSink"]
