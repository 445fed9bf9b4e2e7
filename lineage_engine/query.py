"""
Lineage Query Service — stores, retrieves and summarises history records.

Append-only: there is no API to update or delete a stored record. Writing
a record whose key already exists is idempotent, so a failed batch can be
retried as a whole.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence, Set

from lineage_engine.backends import HistoryBackend, InMemoryHistoryBackend
from lineage_engine.clock import now_ms
from lineage_engine.equality import value_key
from lineage_engine.models.lineage import (
    DataLineage,
    FieldHistory,
    FieldHistoryEntry,
    LineageHistoryRecord,
    LineageQueryFilters,
    LineageStatistics,
)
from lineage_engine.models.source import DataSource, SourceRecord
from lineage_engine.tracker import LineageTracker, lineage_tracker

logger = logging.getLogger(__name__)


class LineageQueryService:
    """Persistence-facing side of the lineage engine."""

    def __init__(
        self,
        backend: Optional[HistoryBackend] = None,
        tracker: Optional[LineageTracker] = None,
    ):
        self.backend = backend if backend is not None else InMemoryHistoryBackend()
        self.tracker = tracker or lineage_tracker

    # --- Writes ---

    def store_history_record(self, record: LineageHistoryRecord) -> None:
        if not isinstance(record, LineageHistoryRecord):
            raise TypeError(f"Expected LineageHistoryRecord, got {type(record).__name__}")
        self.backend.put(record)

    def batch_store_history(self, records: Sequence[LineageHistoryRecord]) -> None:
        """Store a batch, all or nothing. Safe to retry after PersistenceError."""
        if not records:
            return
        for record in records:
            if not isinstance(record, LineageHistoryRecord):
                raise TypeError(f"Expected LineageHistoryRecord, got {type(record).__name__}")

        self.backend.put_many(list(records))
        logger.info("Stored %d history records", len(records))

    # --- Reads ---

    def query_history(
        self, filters: Optional[LineageQueryFilters] = None
    ) -> List[LineageHistoryRecord]:
        """History records matching `filters`, oldest first."""
        filters = filters or LineageQueryFilters()
        records = self.backend.query(filters)

        if filters.conflicts_only:
            records = self._conflicting(records)
        if filters.limit is not None:
            records = records[:filters.limit]
        return records

    @staticmethod
    def _conflicting(records: List[LineageHistoryRecord]) -> List[LineageHistoryRecord]:
        """Records of (weapon, field) pairs whose history holds two or more distinct values."""
        values: Dict[tuple, Set] = defaultdict(set)
        for record in records:
            values[(record.weapon_id, record.field)].add(value_key(record.new_value))
        return [r for r in records if len(values[(r.weapon_id, r.field)]) > 1]

    def get_field_history(
        self, weapon_id: str, field: str, limit: int = 100
    ) -> FieldHistory:
        """History of one field, newest first."""
        records = self.query_history(
            LineageQueryFilters(weapon_id=weapon_id, field=field)
        )
        newest_first = list(reversed(records))
        history = [
            FieldHistoryEntry(
                value=r.new_value,
                source=r.source,
                timestamp=r.timestamp,
                confidence=r.confidence,
                reason=r.reason,
            )
            for r in newest_first[:limit]
        ]
        return FieldHistory(
            weapon_id=weapon_id,
            field=field,
            history=history,
            current_value=history[0].value if history else None,
            change_count=len(records),
        )

    def get_latest_lineage(
        self, weapon_id: str, now: Optional[int] = None
    ) -> Optional[DataLineage]:
        """Rebuild an entity's reconciled fields from its stored history."""
        records = self.query_history(LineageQueryFilters(weapon_id=weapon_id))
        if not records:
            return None

        # Oldest first, so later records overwrite earlier ones per source.
        by_field: Dict[str, Dict[DataSource, SourceRecord]] = defaultdict(dict)
        for record in records:
            by_field[record.field][record.source] = SourceRecord(
                source=record.source,
                value=record.new_value,
                timestamp=record.timestamp,
                reference=record.reference,
            )

        fields = {
            name: self.tracker.create_multi_source_field(list(sources.values()), name, now=now)
            for name, sources in by_field.items()
        }
        return self.tracker.create_lineage_record(weapon_id, fields, now=now)

    def get_all_weapon_ids(self) -> List[str]:
        records = self.query_history()
        return sorted({r.weapon_id for r in records})

    def has_lineage_data(self, weapon_id: str) -> bool:
        return self.backend.exists(weapon_id)

    # --- Statistics ---

    def compute_statistics(
        self,
        records: Sequence[LineageHistoryRecord],
        now: Optional[int] = None,
    ) -> LineageStatistics:
        """
        Pure aggregation over `records`. Records sharing a key are counted
        once; an empty input yields zero aggregates.
        """
        unique = list({r.key: r for r in records}.values())
        breakdown = {source: 0 for source in DataSource}
        if not unique:
            return LineageStatistics(source_breakdown=breakdown)

        now = now_ms() if now is None else now
        stale = sum(1 for r in unique if self.tracker.is_stale(r.timestamp, now=now))

        values: Dict[tuple, Set] = defaultdict(set)
        for record in unique:
            values[(record.weapon_id, record.field)].add(value_key(record.new_value))
            breakdown[record.source] += 1

        reasons = Counter(r.reason or "unspecified" for r in unique)
        average = sum(r.confidence for r in unique) / len(unique)

        return LineageStatistics(
            total_records=len(unique),
            total_fields=len({r.field for r in unique}),
            total_entities=len({r.weapon_id for r in unique}),
            average_confidence=max(0.0, min(1.0, average)),
            conflict_count=sum(1 for v in values.values() if len(v) > 1),
            stale_count=stale,
            completeness=100.0 * (len(unique) - stale) / len(unique),
            source_breakdown=breakdown,
            reason_breakdown=dict(reasons),
            last_updated=max(r.timestamp for r in unique),
        )

    def calculate_statistics(
        self, weapon_id: Optional[str] = None, now: Optional[int] = None
    ) -> LineageStatistics:
        """Statistics over stored history, optionally for one entity."""
        records = self.query_history(LineageQueryFilters(weapon_id=weapon_id))
        return self.compute_statistics(records, now=now)

    def close(self) -> None:
        self.backend.close()
