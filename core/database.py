import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from . import config

logger = logging.getLogger(__name__)

CATALOG_SCHEMA_QUERY = "SELECT sql FROM sqlite_master WHERE type='table' AND name=? COLLATE NOCASE"


def quote_identifier(name):
    """Double-quotes an SQLite identifier, escaping embedded quotes."""
    if not name:
        raise ValueError("Identifier must not be empty")
    return '"' + name.replace('"', '""') + '"'


def create_connection(path, read_only=False, timeout=None):
    """Opens a connection to the database at ``path``.

    Read-only connections go through a ``file:`` URI with ``mode=ro`` so the
    file must already exist.
    """
    timeout = config.CONNECT_TIMEOUT if timeout is None else timeout
    if read_only:
        uri = Path(path).resolve().as_uri() + "?mode=ro"
        conn = sqlite3.connect(uri, uri=True, timeout=timeout)
    else:
        conn = sqlite3.connect(str(path), timeout=timeout)
    logger.debug(f"Opened connection to {path} (read_only={read_only})")
    return conn


# API's using common SQL terms

def execute(conn, sql):
    """Execute a non-query (INSERT, INSERT OR REPLACE, DROP, CREATE, ...).

    Returns the number of affected rows as reported by the driver (-1 for
    statements that do not modify rows).
    """
    cursor = conn.execute(sql)
    try:
        return cursor.rowcount
    finally:
        cursor.close()


def insert(conn, sql):
    return execute(conn, sql)


def drop_table(conn, table):
    return execute(conn, f"DROP TABLE IF EXISTS {quote_identifier(table)}")


def delete_from(conn, table):
    return execute(conn, f"DELETE FROM {quote_identifier(table)}")


def create_reader(conn, sql, params=()):
    """Returns an open cursor over ``sql``. The caller must close it."""
    return conn.execute(sql, params)


def query(conn, sql, params=(), limit=None):
    """Runs a query and returns its rows as a list of dicts."""
    cursor = create_reader(conn, sql, params)
    try:
        columns = [d[0] for d in cursor.description or ()]
        if limit is None:
            rows = cursor.fetchall()
        else:
            # fetchmany(0) would return everything
            rows = cursor.fetchmany(limit) if limit > 0 else []
        return [dict(zip(columns, tuple(row))) for row in rows]
    finally:
        cursor.close()


def list_tables(conn):
    """User tables in catalog order, skipping SQLite's internal ones."""
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    try:
        return [row[0] for row in cursor.fetchall()]
    finally:
        cursor.close()


def get_table_schema(conn, table):
    """The CREATE TABLE statement stored in the catalog, or None."""
    cursor = conn.execute(CATALOG_SCHEMA_QUERY, (table,))
    try:
        row = cursor.fetchone()
        return row[0] if row else None
    finally:
        cursor.close()


def database_file(conn):
    """Absolute path of the connection's main database, '' for in-memory/temp."""
    for row in conn.execute("PRAGMA database_list").fetchall():
        if row[1] == "main":
            return row[2] or ""
    return ""


class DatabaseManager:
    def __init__(self, db_path=None):
        self._db_path = db_path

    @property
    def db_path(self):
        return self._db_path or config.DB_FILE

    @contextmanager
    def get_connection(self, read_only=False):
        """Provides a context-managed database connection, committed on success."""
        conn = create_connection(self.db_path, read_only=read_only)
        conn.row_factory = sqlite3.Row # Return rows as dictionaries
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
