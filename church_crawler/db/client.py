"""MySQL client.

One connection per client handle, opened lazily and reused across calls;
a dead connection is replaced on next use. The crawler is sequential, so a
handle is never shared between threads.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

import pymysql
from pymysql.cursors import DictCursor

from ..config import get_db_config

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def split_sql_statements(sql: str) -> list[str]:
    """Split a schema script on semicolons, dropping full-line comments."""
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [statement.strip() for statement in "\n".join(lines).split(";") if statement.strip()]


class DatabaseClient:
    """Thin wrapper over a PyMySQL connection.

    Example:
        client = DatabaseClient()
        row = client.execute_one("SELECT * FROM churches WHERE code = %s", ("sarang",))
    """

    def __init__(self, config: Optional[dict] = None):
        """
        Args:
            config: pymysql.connect keyword arguments (defaults to get_db_config())
        """
        self._config = {
            **(config or get_db_config()),
            "autocommit": True,
            "charset": "utf8mb4",
            "cursorclass": DictCursor,
        }
        self._conn: Optional[pymysql.Connection] = None

    def get_connection(self) -> pymysql.Connection:
        """Get the connection, reconnecting if it died."""
        if self._conn is not None:
            try:
                self._conn.ping(reconnect=False)
                return self._conn
            except pymysql.MySQLError:
                self.close()
        self._conn = pymysql.connect(**self._config)
        return self._conn

    def close(self):
        if self._conn is not None:
            try:
                self._conn.close()
            except pymysql.MySQLError:
                pass
            self._conn = None

    @contextmanager
    def cursor(self) -> Generator[Any, None, None]:
        """Context manager for a dict cursor.

        autocommit=True means each statement is its own transaction.
        """
        conn = self.get_connection()
        with conn.cursor() as cursor:
            yield cursor

    def execute(self, sql: str, params: tuple | None = None) -> list[dict]:
        """Execute query and return all results."""
        with self.cursor() as cursor:
            cursor.execute(sql, params or ())
            return list(cursor.fetchall())

    def execute_one(self, sql: str, params: tuple | None = None) -> dict | None:
        """Execute query and return single result."""
        with self.cursor() as cursor:
            cursor.execute(sql, params or ())
            return cursor.fetchone()

    def execute_write(self, sql: str, params: tuple | None = None) -> int:
        """Execute write query (UPDATE/DELETE). Returns affected row count."""
        with self.cursor() as cursor:
            return cursor.execute(sql, params or ())

    def execute_insert(self, sql: str, params: tuple | None = None) -> int:
        """Execute INSERT and return the new row id."""
        with self.cursor() as cursor:
            cursor.execute(sql, params or ())
            return cursor.lastrowid

    def apply_schema(self, path: Optional[Path] = None) -> int:
        """Create missing tables from schema.sql. Returns the statement count."""
        statements = split_sql_statements((path or SCHEMA_PATH).read_text(encoding="utf-8"))
        for statement in statements:
            self.execute_write(statement)
        return len(statements)

    def check_connection(self) -> bool:
        """Test database connectivity.

        Returns:
            True if connection succeeds, False otherwise
        """
        try:
            self.execute_one("SELECT 1")
            return True
        except pymysql.MySQLError:
            return False
