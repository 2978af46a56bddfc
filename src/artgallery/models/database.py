"""
DuckDB access for the gallery metadata store.

``DatabaseManager`` owns one lazily opened connection to the database file.
The metadata service opens it per operation (``with manager as db: ...``)
so the file is closed between operations and can be copied to GCS.
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb

from ..logging_config import get_logger
from .schema import REQUIRED_COLUMNS, get_schema_statements, validate_schema_compatibility

logger = get_logger(__name__)


class DatabaseManager:
    """Connection holder plus schema setup for one DuckDB file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: duckdb.DuckDBPyConnection | None = None

    def connect(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self.db_path)
            logger.debug("duckdb_connected", db_path=self.db_path)
        return self._connection

    def close(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.debug("duckdb_connection_closed", db_path=self.db_path)

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def initialize_schema(self) -> None:
        """
        Create missing tables and indexes. Existing data is left alone.

        Raises:
            RuntimeError: If the schema definitions themselves are inconsistent
            duckdb.Error: If a statement fails
        """
        if not validate_schema_compatibility():
            raise RuntimeError("Schema definitions are missing required columns")

        conn = self.connect()
        for statement in get_schema_statements():
            conn.execute(statement)
        logger.info("database_schema_initialized", db_path=self.db_path)

    def missing_columns(self) -> dict[str, set[str]]:
        """
        Required columns absent from the database, by table.

        A table that does not exist at all reports every required column.
        """
        conn = self.connect()
        missing = {}
        for table, required in REQUIRED_COLUMNS.items():
            present = {
                row[0]
                for row in conn.execute(
                    "SELECT column_name FROM information_schema.columns WHERE table_name = ?", (table,)
                ).fetchall()
            }
            if required - present:
                missing[table] = required - present
        return missing

    def verify_schema(self) -> bool:
        """True when every table has its required columns; query errors count as invalid."""
        try:
            missing = self.missing_columns()
        except duckdb.Error as e:
            logger.error("schema_verification_failed", db_path=self.db_path, error=str(e))
            return False

        if missing:
            logger.warning(
                "schema_incomplete",
                db_path=self.db_path,
                missing={table: sorted(columns) for table, columns in missing.items()},
            )
        return not missing

    def execute_query(self, query: str, parameters: Sequence[Any] | None = None) -> list[tuple]:
        """
        Run one statement and fetch all rows (an empty list for DML).

        Raises:
            duckdb.Error: Logged with the whitespace-collapsed query, then re-raised
        """
        try:
            return self.connect().execute(query, parameters or []).fetchall()
        except duckdb.Error as e:
            logger.error("query_execution_failed", query=" ".join(query.split()), error=str(e))
            raise

    @contextmanager
    def transaction(self) -> Iterator["DatabaseManager"]:
        """Commit the enclosed statements together, or roll all of them back."""
        conn = self.connect()
        conn.begin()
        try:
            yield self
        except BaseException:
            conn.rollback()
            raise
        conn.commit()


def create_database(db_path: str) -> DatabaseManager:
    """
    Create the database file (and its directory) with the full schema.

    Returns:
        DatabaseManager: Closed manager for the new file

    Raises:
        RuntimeError: If the file cannot be created or its schema is incomplete
    """
    manager = DatabaseManager(db_path)
    try:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        with manager:
            manager.initialize_schema()
            if not manager.verify_schema():
                raise RuntimeError("Schema verification failed after creation")
    except Exception as e:
        logger.error("database_creation_failed", db_path=db_path, error=str(e))
        raise RuntimeError(f"Database creation failed: {e}") from e

    logger.info("database_created", db_path=db_path)
    return manager


def get_database_manager(db_path: str, create_if_missing: bool = True) -> DatabaseManager:
    """
    Manager for an existing database file, repairing a partial schema.

    Raises:
        FileNotFoundError: If the file is missing and ``create_if_missing`` is False
        RuntimeError: If creating the file fails
    """
    if not Path(db_path).exists():
        if not create_if_missing:
            raise FileNotFoundError(f"Database file not found: {db_path}")
        return create_database(db_path)

    manager = DatabaseManager(db_path)
    with manager:
        if not manager.verify_schema():
            logger.warning("schema_repair_started", db_path=db_path)
            manager.initialize_schema()
    return manager
