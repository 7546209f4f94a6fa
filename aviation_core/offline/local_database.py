# =============================================================================
# aviation_core/offline/local_database.py
# Local SQLite Entity Store for Offline Operations
# =============================================================================
"""
LocalDatabase - on-device store with one SQLite table per entity kind.

Features:
- Automatic schema creation from the entity-kind registry
- put / get / update / delete / query-by-index per kind
- Sync envelope held in real columns (needs_sync, synced_at, revision, ...)
- Re-entrant transactions, durable before returning
- DataFrame export and import helpers (pandas)

Every row keeps the full entity as JSON in ``data_json``; indexed fields are
copied into their own columns so they can be queried.
"""

from __future__ import annotations
import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
import logging

import numpy as np
import pandas as pd

from aviation_core.errors import LocalStoreError, RecordNotFoundError
from aviation_core.models import (
    ENTITY_DEFINITIONS,
    Entity,
    EntityKind,
    EntityDefinition,
    LocalRecord,
    get_definition,
)

logger = logging.getLogger(__name__)

# Envelope columns, in the order they appear in every entity table
ENVELOPE_FIELDS = (
    "needs_sync",
    "synced_at",
    "deleted",
    "revision",
    "sync_attempts",
    "last_sync_error",
)

DATE_ONLY_FIELDS = {"date", "date_local", "issue_date", "expiry_date"}


def _to_python(value: Any) -> Any:
    """Convert numpy / pandas scalars into plain JSON-friendly values."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, pd.Timestamp):
        return value.isoformat()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _json_default(value: Any) -> Any:
    converted = _to_python(value)
    if converted is value:
        raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
    return converted


class LocalDatabase:
    """
    Local SQLite database holding every entity kind.

    Mirrors the Supabase tables (same names) plus the sync envelope columns.
    """

    # Default database location
    DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "aviation.db"

    SETTINGS_SCHEMA = """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """

    def __init__(self, db_path: Optional[Path] = None):
        """
        Initialize local database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self._ensure_directory()
        self._local = threading.local()
        self._lock = threading.RLock()
        self._initialized = False

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                timeout=30,
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.depth = 0
        return self._local.connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database transactions.

        Nested uses join the outer transaction; only the outermost block
        commits or rolls back.
        """
        with self._lock:
            conn = self._get_connection()
            depth = self._local.depth
            self._local.depth = depth + 1
            try:
                yield conn
                if depth == 0:
                    conn.commit()
            except BaseException:
                if depth == 0:
                    conn.rollback()
                raise
            finally:
                self._local.depth = depth

    @staticmethod
    def _table_schema(definition: EntityDefinition) -> List[str]:
        index_columns = "".join(f"                {name} TEXT,\n" for name in definition.indexed_fields)
        statements = [
            f"""
            CREATE TABLE IF NOT EXISTS {definition.table} (
                id TEXT PRIMARY KEY,
{index_columns}                data_json TEXT NOT NULL,
                needs_sync INTEGER NOT NULL DEFAULT 0,
                synced_at TEXT,
                deleted INTEGER NOT NULL DEFAULT 0,
                revision INTEGER NOT NULL DEFAULT 0,
                sync_attempts INTEGER NOT NULL DEFAULT 0,
                last_sync_error TEXT
            )
            """
        ]
        for name in definition.indexed_fields + ("needs_sync",):
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{definition.table}_{name} ON {definition.table} ({name})"
            )
        return statements

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        with self.transaction() as conn:
            for definition in ENTITY_DEFINITIONS.values():
                for statement in self._table_schema(definition):
                    conn.execute(statement)
                logger.debug(f"Created/verified table: {definition.table}")
            conn.execute(self.SETTINGS_SCHEMA)

        self._initialized = True
        logger.info(f"Local database initialized at: {self.db_path}")

    # =========================================================================
    # ROW <-> RECORD
    # =========================================================================

    @staticmethod
    def _row_to_record(definition: EntityDefinition, row: sqlite3.Row) -> LocalRecord:
        entity = definition.model.from_dict(json.loads(row["data_json"]))
        return LocalRecord(
            entity=entity,
            needs_sync=bool(row["needs_sync"]),
            synced_at=row["synced_at"],
            deleted=bool(row["deleted"]),
            revision=row["revision"],
            sync_attempts=row["sync_attempts"],
            last_sync_error=row["last_sync_error"],
        )

    @staticmethod
    def _check_entity(definition: EntityDefinition, entity: Entity) -> None:
        if not isinstance(entity, definition.model):
            raise LocalStoreError(
                f"{type(entity).__name__} cannot be stored in {definition.table}",
                table=definition.table,
            )
        if not entity.id:
            raise LocalStoreError("Records need a non-empty id", table=definition.table)

    # =========================================================================
    # ENTITY STORE OPERATIONS
    # =========================================================================

    def put(self, kind: EntityKind, record: LocalRecord) -> None:
        """Insert or fully replace the row at ``record.id``."""
        definition = get_definition(kind)
        self._check_entity(definition, record.entity)

        data = record.entity.to_dict()
        columns = ["id", *definition.indexed_fields, "data_json", *ENVELOPE_FIELDS]
        values = [
            record.id,
            *[_to_python(data.get(name)) for name in definition.indexed_fields],
            json.dumps(data, default=_json_default),
            int(record.needs_sync),
            record.synced_at,
            int(record.deleted),
            record.revision,
            record.sync_attempts,
            record.last_sync_error,
        ]
        placeholders = ", ".join("?" for _ in columns)

        with self.transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {definition.table} ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )

    def get(
        self,
        kind: EntityKind,
        record_id: str,
        include_deleted: bool = False,
    ) -> Optional[LocalRecord]:
        """Get a record by id, or None if there is no (live) record."""
        definition = get_definition(kind)
        query = f"SELECT * FROM {definition.table} WHERE id = ?"
        if not include_deleted:
            query += " AND deleted = 0"

        with self.transaction() as conn:
            row = conn.execute(query, [record_id]).fetchone()
        return self._row_to_record(definition, row) if row else None

    def query_by_index(
        self,
        kind: EntityKind,
        field: str,
        value: Any,
        include_deleted: bool = False,
    ) -> List[LocalRecord]:
        """
        Get every record whose indexed ``field`` equals ``value``.

        Raises:
            LocalStoreError: if ``field`` is not indexed for this kind
        """
        definition = get_definition(kind)
        if field not in definition.indexed_fields + ("needs_sync",):
            raise LocalStoreError(
                f"'{field}' is not an indexed field of {definition.table}",
                table=definition.table,
            )
        if field == "needs_sync":
            value = int(bool(value))

        query = f"SELECT * FROM {definition.table} WHERE {field} = ?"
        if not include_deleted:
            query += " AND deleted = 0"
        query += " ORDER BY rowid"

        with self.transaction() as conn:
            rows = conn.execute(query, [_to_python(value)]).fetchall()
        return [self._row_to_record(definition, row) for row in rows]

    def all(self, kind: EntityKind, include_deleted: bool = False) -> List[LocalRecord]:
        """Get every record of a kind."""
        definition = get_definition(kind)
        query = f"SELECT * FROM {definition.table}"
        if not include_deleted:
            query += " WHERE deleted = 0"
        query += " ORDER BY rowid"

        with self.transaction() as conn:
            rows = conn.execute(query).fetchall()
        return [self._row_to_record(definition, row) for row in rows]

    def update(self, kind: EntityKind, record_id: str, fields: Dict[str, Any]) -> LocalRecord:
        """
        Merge ``fields`` into an existing record.

        Envelope names (needs_sync, synced_at, ...) update the envelope, every
        other name updates the entity.

        Returns:
            The stored record after the merge

        Raises:
            RecordNotFoundError: if the record does not exist
            LocalStoreError: if ``fields`` tries to change the id
        """
        definition = get_definition(kind)
        with self.transaction():
            record = self.get(kind, record_id, include_deleted=True)
            if record is None:
                raise RecordNotFoundError(definition.table, record_id)

            envelope = {k: v for k, v in fields.items() if k in ENVELOPE_FIELDS}
            domain = {k: v for k, v in fields.items() if k not in ENVELOPE_FIELDS}

            if domain:
                record.entity = record.entity.replace(**domain)
            for name, value in envelope.items():
                setattr(record, name, value)

            self.put(kind, record)
        return record

    def delete(self, kind: EntityKind, record_id: str) -> bool:
        """Remove a row outright. Returns False if it was not there."""
        definition = get_definition(kind)
        with self.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {definition.table} WHERE id = ?", [record_id])
            return cursor.rowcount > 0

    def count(self, kind: EntityKind, dirty_only: bool = False) -> int:
        """Count rows of a kind (tombstones included when counting dirty rows)."""
        definition = get_definition(kind)
        query = f"SELECT COUNT(*) AS count FROM {definition.table}"
        query += " WHERE needs_sync = 1" if dirty_only else " WHERE deleted = 0"

        with self.transaction() as conn:
            row = conn.execute(query).fetchone()
        return row["count"] if row else 0

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(self, kind: EntityKind, include_deleted: bool = False) -> pd.DataFrame:
        """
        Load a table into a pandas DataFrame (entity fields plus envelope).

        Args:
            kind: Entity kind to export
            include_deleted: Whether to include tombstones

        Returns:
            DataFrame with one row per record
        """
        definition = get_definition(kind)
        records = self.all(kind, include_deleted=include_deleted)
        columns = definition.model.field_names() + list(ENVELOPE_FIELDS)
        return pd.DataFrame([record.to_dict() for record in records], columns=columns)

    @staticmethod
    def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
        """
        Turn a DataFrame into plain row dicts ready for ``Entity.from_dict``.

        Date-like columns become ISO strings and NaN/NaT becomes None.
        """
        df = df.copy()
        for column in df.columns:
            if pd.api.types.is_datetime64_any_dtype(df[column]):
                fmt = "%Y-%m-%d" if column in DATE_ONLY_FIELDS else "%Y-%m-%dT%H:%M:%S"
                df[column] = df[column].dt.strftime(fmt)

        df = df.astype(object).where(pd.notna(df), None)
        return [
            {str(k): _to_python(v) for k, v in row.items()}
            for row in df.to_dict(orient="records")
        ]

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an app setting."""
        with self.transaction() as conn:
            row = conn.execute("SELECT value FROM app_settings WHERE key = ?", [key]).fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return row["value"]

    def set_setting(self, key: str, value: Any) -> None:
        """Set an app setting."""
        value_str = json.dumps(value) if not isinstance(value, str) else value
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO app_settings (key, value, updated_at)
                VALUES (?, ?, ?)
                """,
                [key, value_str, datetime.now().isoformat()],
            )

    def close(self) -> None:
        """Close this thread's database connection."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None
