"""
SQLite store for the data type repository.

This module manages the relational database that stores:
- The node tree shared by every entity kind (nodes)
- Data type rows and their pre-values
- Content types, property groups, property types and property data
- Per-node notifications, permissions and tag relations

It also provides Transaction, the narrow statement interface every
repository writes through.

Invariants:
    - Foreign keys are enforced and never cascade; dependent rows must
      be deleted before the rows they reference
    - The root sentinel node (id -1, path "-1", level 1) always exists
    - Store errors surface as StoreFailureError, never raw sqlite errors

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION when adding tables or columns
    - Table and column names passed to Transaction helpers must be
      identifiers from code, never user input

Table schema:
    nodes:
        - id INTEGER (autoincrement, root sentinel is -1)
        - unique_id TEXT (UUID, unique)
        - parent_id INTEGER -> nodes.id
        - level INTEGER
        - path TEXT ("-1,12,57")
        - sort_order INTEGER
        - text TEXT (name)
        - node_object_type TEXT
        - create_date / update_date INTEGER (Unix ms)

    data_types:
        - node_id INTEGER -> nodes.id (unique)
        - property_editor_alias TEXT
        - db_type TEXT

    data_type_pre_values:
        - id INTEGER
        - data_type_node_id INTEGER -> data_types.node_id
        - value TEXT, sort_order INTEGER, alias TEXT
"""

from __future__ import annotations

import logging
import re
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from ..errors import StoreFailureError
from ..models import ROOT_ID, ROOT_LEVEL, ROOT_PATH, ObjectType

logger = logging.getLogger(__name__)

ROOT_UNIQUE_ID = "916724a5-173d-4619-b97e-b9de133dd6f5"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


def from_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class Transaction:
    """Statement interface bound to one open sqlite transaction.

    Repositories never see the connection; they issue parameterized
    statements through this class. Every sqlite error is re-raised as
    StoreFailureError so the owning scope rolls back.

    Example:
        >>> node_id = tx.insert("nodes", {"text": "Textstring", ...})
        >>> tx.update("nodes", {"path": "-1,5"}, "id = ?", (node_id,))
        >>> tx.execute_scalar("SELECT COUNT(*) FROM nodes")
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def _run(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise StoreFailureError(f"Store rejected statement: {e}", sql=sql) from e

    def fetch(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        return self._run(sql, params).fetchall()

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        return self._run(sql, params).fetchone()

    def execute_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """Run a query and return the first column of the first row."""
        row = self._run(sql, params).fetchone()
        return row[0] if row else None

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement and return the affected row count."""
        return self._run(sql, params).rowcount

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        """Insert one row.

        Args:
            table: Table name
            values: Column -> value

        Returns:
            The store-assigned rowid
        """
        columns = [_check_identifier(column) for column in values]
        sql = (
            f"INSERT INTO {_check_identifier(table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})"
        )
        cursor = self._run(sql, list(values.values()))
        return int(cursor.lastrowid)

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where: str,
        params: Sequence[Any] = (),
    ) -> int:
        """Update rows matching a where clause.

        Returns:
            Number of rows updated
        """
        assignments = ", ".join(f"{_check_identifier(column)} = ?" for column in values)
        sql = f"UPDATE {_check_identifier(table)} SET {assignments} WHERE {where}"
        return self._run(sql, [*values.values(), *params]).rowcount

    def delete(self, table: str, where: str, params: Sequence[Any] = ()) -> int:
        """Delete rows matching a where clause.

        Returns:
            Number of rows deleted
        """
        sql = f"DELETE FROM {_check_identifier(table)} WHERE {where}"
        return self._run(sql, params).rowcount


class Database:
    """SQLite database holding the node tree and its dependents.

    Thread safety:
        Each scope opens its own connection.
        SQLite serializes writers; BEGIN IMMEDIATE takes the write lock
        up front so concurrent writers wait on busy_timeout.

    Example:
        >>> db = Database("/var/lib/datatypes/datatypes.db")
        >>> db.initialize()
        >>> with db.connect() as conn:
        ...     conn.execute("SELECT COUNT(*) FROM nodes").fetchone()
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the database handle.

        Args:
            path: SQLite database file
            wal_mode: Enable SQLite WAL journal mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection in autocommit mode (explicit transactions)
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Base tree rows for every entity kind
            CREATE TABLE IF NOT EXISTS nodes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                unique_id TEXT NOT NULL UNIQUE,
                parent_id INTEGER NOT NULL REFERENCES nodes(id),
                level INTEGER NOT NULL,
                path TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0,
                text TEXT,
                node_object_type TEXT NOT NULL,
                create_date INTEGER NOT NULL,
                update_date INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_parent ON nodes(parent_id, node_object_type);
            CREATE INDEX IF NOT EXISTS idx_nodes_type_text ON nodes(node_object_type, text);
            CREATE INDEX IF NOT EXISTS idx_nodes_path ON nodes(path);

            CREATE TABLE IF NOT EXISTS data_types (
                pk INTEGER PRIMARY KEY AUTOINCREMENT,
                node_id INTEGER NOT NULL UNIQUE REFERENCES nodes(id),
                property_editor_alias TEXT NOT NULL,
                db_type TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS data_type_pre_values (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                data_type_node_id INTEGER NOT NULL REFERENCES data_types(node_id),
                value TEXT,
                sort_order INTEGER NOT NULL,
                alias TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_pre_values_data_type
                ON data_type_pre_values(data_type_node_id, sort_order);

            CREATE TABLE IF NOT EXISTS content_types (
                pk INTEGER PRIMARY KEY AUTOINCREMENT,
                node_id INTEGER NOT NULL UNIQUE REFERENCES nodes(id),
                alias TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS property_type_groups (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content_type_node_id INTEGER NOT NULL REFERENCES content_types(node_id),
                text TEXT NOT NULL,
                sort_order INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS property_types (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                data_type_id INTEGER NOT NULL REFERENCES data_types(node_id),
                content_type_id INTEGER NOT NULL REFERENCES content_types(node_id),
                property_type_group_id INTEGER REFERENCES property_type_groups(id),
                alias TEXT NOT NULL,
                name TEXT,
                sort_order INTEGER NOT NULL DEFAULT 0,
                mandatory INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_property_types_data_type
                ON property_types(data_type_id);
            CREATE INDEX IF NOT EXISTS idx_property_types_content_type
                ON property_types(content_type_id);

            CREATE TABLE IF NOT EXISTS property_data (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                content_node_id INTEGER NOT NULL,
                property_type_id INTEGER NOT NULL REFERENCES property_types(id),
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS user_node_notify (
                user_id INTEGER NOT NULL,
                node_id INTEGER NOT NULL REFERENCES nodes(id),
                action TEXT NOT NULL,
                PRIMARY KEY (user_id, node_id, action)
            );

            CREATE TABLE IF NOT EXISTS user_group_node_permissions (
                user_group_id INTEGER NOT NULL,
                node_id INTEGER NOT NULL REFERENCES nodes(id),
                permission TEXT NOT NULL,
                PRIMARY KEY (user_group_id, node_id, permission)
            );

            CREATE TABLE IF NOT EXISTS tag_relationships (
                node_id INTEGER NOT NULL REFERENCES nodes(id),
                tag_id INTEGER NOT NULL,
                property_type_id INTEGER NOT NULL REFERENCES property_types(id),
                PRIMARY KEY (node_id, property_type_id, tag_id)
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

        # Root sentinel; parent_id points at itself
        conn.execute(
            """
            INSERT OR IGNORE INTO nodes (id, unique_id, parent_id, level, path, sort_order,
                                         text, node_object_type, create_date, update_date)
            VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
            """,
            (
                ROOT_ID,
                ROOT_UNIQUE_ID,
                ROOT_ID,
                ROOT_LEVEL,
                ROOT_PATH,
                "root",
                ObjectType.ROOT.value,
                now_ms(),
                now_ms(),
            ),
        )

    def initialize(self) -> None:
        """Create the database file, schema and root sentinel if missing."""
        with self.connect() as conn:
            self._create_schema(conn)
        logger.info(f"Initialized data type database: {self.path}")

    def exists(self) -> bool:
        return self.path.exists()

    def get_stats(self) -> dict[str, int]:
        """Row counts for the main tables.

        Returns:
            Dictionary with counts
        """
        with self.connect() as conn:
            stats = {}
            for table in ("nodes", "data_types", "data_type_pre_values", "property_types"):
                cursor = conn.execute(f"SELECT COUNT(*) FROM {table}")
                stats[table] = cursor.fetchone()[0]
            return stats
