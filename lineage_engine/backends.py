"""
History backends — the persistence collaborator behind the query service.

Behavioral Contract:
- Records are keyed by (weapon_id, field, timestamp, source). Writing the
  same key twice replaces the row instead of duplicating it.
- put_many is atomic: either the whole batch is stored or nothing is.
- query returns records in ascending timestamp order.
- Storage failures surface as PersistenceError.
- The SQLite backend stores values in a tagged JSON form that keeps them
  equal under values_equal. A value with no such form raises
  ValueEncodingError before the transaction opens.
"""

import hashlib
import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from lineage_engine.codec import decode_value, dumps, encode_value
from lineage_engine.errors import PersistenceError
from lineage_engine.models.config import StoreConfig
from lineage_engine.models.lineage import LineageHistoryRecord, LineageQueryFilters

logger = logging.getLogger(__name__)


def record_json(record: LineageHistoryRecord) -> str:
    """Canonical JSON form of a record with its values tag-encoded."""
    payload = record.model_dump(mode="json", exclude={"old_value", "new_value"})
    payload["old_value"] = encode_value(record.old_value, "old_value")
    payload["new_value"] = encode_value(record.new_value, "new_value")
    return dumps(payload)


def load_record(text: str) -> LineageHistoryRecord:
    """Rebuild a record written by record_json."""
    payload = json.loads(text)
    payload["old_value"] = decode_value(payload.get("old_value"))
    payload["new_value"] = decode_value(payload["new_value"])
    return LineageHistoryRecord.model_validate(payload)


def record_signature(record: LineageHistoryRecord) -> str:
    """SHA-256 over the canonical JSON form of a record."""
    return hashlib.sha256(record_json(record).encode()).hexdigest()


def _sort_key(record: LineageHistoryRecord) -> Tuple[int, str, str, str]:
    return (record.timestamp, record.weapon_id, record.field, record.source.value)


def matches(record: LineageHistoryRecord, filters: LineageQueryFilters) -> bool:
    """Whether a record passes the storage-level filters."""
    if filters.weapon_id is not None and record.weapon_id != filters.weapon_id:
        return False
    if filters.field is not None and record.field != filters.field:
        return False
    if filters.source is not None and record.source != filters.source:
        return False
    if filters.start_time is not None and record.timestamp < filters.start_time:
        return False
    if filters.end_time is not None and record.timestamp > filters.end_time:
        return False
    if filters.min_confidence is not None and record.confidence < filters.min_confidence:
        return False
    return True


class HistoryBackend(ABC):
    """Storage for lineage history records."""

    @abstractmethod
    def put(self, record: LineageHistoryRecord) -> None:
        """Insert or replace one record."""

    @abstractmethod
    def put_many(self, records: Sequence[LineageHistoryRecord]) -> None:
        """Insert or replace a batch, all or nothing."""

    @abstractmethod
    def query(self, filters: LineageQueryFilters) -> List[LineageHistoryRecord]:
        """Records passing `filters`, oldest first. conflicts_only and limit are not applied here."""

    @abstractmethod
    def exists(self, weapon_id: str) -> bool:
        """Whether any record exists for an entity."""

    def close(self) -> None:
        pass


class InMemoryHistoryBackend(HistoryBackend):
    """Dict-backed store for tests and single-process use."""

    def __init__(self):
        self._records: Dict[tuple, LineageHistoryRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: LineageHistoryRecord) -> None:
        with self._lock:
            self._records[record.key] = record

    def put_many(self, records: Sequence[LineageHistoryRecord]) -> None:
        with self._lock:
            staged = dict(self._records)
            for record in records:
                staged[record.key] = record
            self._records = staged

    def query(self, filters: LineageQueryFilters) -> List[LineageHistoryRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        return sorted((r for r in snapshot if matches(r, filters)), key=_sort_key)

    def exists(self, weapon_id: str) -> bool:
        with self._lock:
            return any(key[0] == weapon_id for key in self._records)

    def count(self) -> int:
        return len(self._records)


class SQLiteHistoryBackend(HistoryBackend):
    """
    SQLite history table.
    Each row keeps the full record as JSON plus a content signature.
    """

    _UPSERT = """
        INSERT OR REPLACE INTO lineage_history (
            weapon_id, field, timestamp, source, confidence, reason,
            signature, record_json
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(
                self.config.db_path,
                timeout=self.config.timeout_seconds,
                check_same_thread=False,
            )
            self._conn.row_factory = sqlite3.Row
            self._init_schema()
        except sqlite3.Error as exc:
            logger.error("Could not open lineage history at %s", self.config.db_path, exc_info=True)
            raise PersistenceError("open", str(exc)) from exc

    def _init_schema(self) -> None:
        """Create the history table if it doesn't exist."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS lineage_history (
                    weapon_id TEXT NOT NULL,
                    field TEXT NOT NULL,
                    timestamp INTEGER NOT NULL,
                    source TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    reason TEXT,
                    signature TEXT NOT NULL,
                    record_json TEXT NOT NULL,
                    stored_at TEXT NOT NULL DEFAULT (datetime('now')),
                    PRIMARY KEY (weapon_id, field, timestamp, source)
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_field
                ON lineage_history(field, timestamp)
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_timestamp
                ON lineage_history(timestamp)
            """)

    def _row(self, record: LineageHistoryRecord) -> tuple:
        text = record_json(record)
        return (
            record.weapon_id,
            record.field,
            record.timestamp,
            record.source.value,
            record.confidence,
            record.reason,
            hashlib.sha256(text.encode()).hexdigest(),
            text,
        )

    def _execute(self, operation: str, rows: List[tuple]) -> None:
        with self._lock:
            try:
                with self._conn:
                    for start in range(0, len(rows), self.config.batch_size):
                        self._conn.executemany(
                            self._UPSERT, rows[start:start + self.config.batch_size]
                        )
            except sqlite3.Error as exc:
                logger.error("Lineage %s of %d record(s) failed", operation, len(rows), exc_info=True)
                raise PersistenceError(operation, str(exc)) from exc

    def put(self, record: LineageHistoryRecord) -> None:
        self._execute("store_history_record", [self._row(record)])

    def put_many(self, records: Sequence[LineageHistoryRecord]) -> None:
        # Serialise everything before opening the transaction.
        rows = [self._row(r) for r in records]
        self._execute("batch_store_history", rows)

    def _fetch(self, operation: str, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                logger.error("Lineage %s failed", operation, exc_info=True)
                raise PersistenceError(operation, str(exc)) from exc

    def query(self, filters: LineageQueryFilters) -> List[LineageHistoryRecord]:
        clauses = []
        params: list = []
        for column, value in (
            ("weapon_id = ?", filters.weapon_id),
            ("field = ?", filters.field),
            ("source = ?", filters.source.value if filters.source else None),
            ("timestamp >= ?", filters.start_time),
            ("timestamp <= ?", filters.end_time),
            ("confidence >= ?", filters.min_confidence),
        ):
            if value is not None:
                clauses.append(column)
                params.append(value)

        sql = "SELECT record_json FROM lineage_history"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY timestamp, weapon_id, field, source"

        rows = self._fetch("query_history", sql, tuple(params))
        return [load_record(r["record_json"]) for r in rows]

    def exists(self, weapon_id: str) -> bool:
        rows = self._fetch(
            "has_lineage_data",
            "SELECT 1 FROM lineage_history WHERE weapon_id = ? LIMIT 1",
            (weapon_id,),
        )
        return bool(rows)

    def count(self) -> int:
        """Total number of stored records."""
        rows = self._fetch("count", "SELECT COUNT(*) AS cnt FROM lineage_history")
        return rows[0]["cnt"]

    def verify_integrity(self) -> bool:
        """Verify no stored record has been altered since it was written."""
        rows = self._fetch(
            "verify_integrity",
            "SELECT record_json, signature FROM lineage_history",
        )
        for row in rows:
            record = load_record(row["record_json"])
            if record_signature(record) != row["signature"]:
                return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
