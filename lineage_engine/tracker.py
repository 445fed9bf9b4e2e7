"""
Lineage Tracker — builds reconciled fields and audit records.

Behavioral Contract:
- Pure and in-memory. No I/O, no shared mutable state.
- A source contributes exactly one current observation per field: a new
  record from a known source supersedes the old one.
- Every update re-runs full reconciliation, so the result is the same no
  matter which order the records arrived in.
- The tracker never decides whether a change happened. Callers compare
  values with values_equal and call create_history_record themselves.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

from lineage_engine.clock import now_ms
from lineage_engine.confidence import ConfidenceScorer
from lineage_engine.equality import values_equal
from lineage_engine.errors import InvalidFieldStateError
from lineage_engine.models.confidence import ConfidenceScore
from lineage_engine.models.config import DEFAULT_CONFIDENCE_CONFIG, ConfidenceConfig
from lineage_engine.models.field import MultiSourceField
from lineage_engine.models.lineage import DataLineage, LineageHistoryRecord, LineageMetadata
from lineage_engine.models.source import DataSource, SourceRecord
from lineage_engine.reconciler import FieldReconciler
from lineage_engine.registry import DEFAULT_SOURCE_REGISTRY, SourceRegistry

logger = logging.getLogger(__name__)


class LineageTracker:
    """Facade over the reconciler for cold-start, incremental and audit paths."""

    def __init__(
        self,
        config: ConfidenceConfig = DEFAULT_CONFIDENCE_CONFIG,
        registry: SourceRegistry = DEFAULT_SOURCE_REGISTRY,
        reconciler: Optional[FieldReconciler] = None,
    ):
        self.config = config
        self.registry = registry
        self.scorer = ConfidenceScorer(registry=registry, config=config)
        self.reconciler = reconciler or FieldReconciler(scorer=self.scorer, registry=registry)

    # --- Reconciliation ---

    def create_multi_source_field(
        self,
        records: Sequence[SourceRecord],
        field: str,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> MultiSourceField:
        """Cold start: reconcile a field with no prior state."""
        return self.reconciler.reconcile(records, field, now=now, config=config or self.config)

    def add_or_update_source(
        self,
        existing: MultiSourceField,
        new_record: SourceRecord,
        field: str,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> MultiSourceField:
        """
        Merge one new observation into an existing field.

        Replaces the record of new_record.source if present, otherwise
        appends it, then reconciles the complete set again.
        """
        if not existing.sources:
            raise InvalidFieldStateError(
                f"Existing field '{field}' has no sources", field=field
            )

        replaced = False
        updated = []
        for record in existing.sources:
            if record.source == new_record.source:
                if not replaced:
                    updated.append(new_record)
                    replaced = True
                continue
            updated.append(record)
        if not replaced:
            updated.append(new_record)

        logger.debug(
            "%s %s on %s",
            "Replaced" if replaced else "Added",
            new_record.source.value,
            field,
        )
        return self.create_multi_source_field(updated, field, now=now, config=config)

    def values_equal(self, a: Any, b: Any) -> bool:
        """The equality rule used for conflict detection."""
        return values_equal(a, b)

    # --- Audit records ---

    def create_history_record(
        self,
        weapon_id: str,
        field: str,
        old_value: Any,
        new_value: Any,
        source: DataSource,
        confidence: Union[float, ConfidenceScore],
        reason: Optional[str] = None,
        reference: Optional[str] = None,
        now: Optional[int] = None,
    ) -> LineageHistoryRecord:
        """Build an audit record stamped with the current time."""
        if isinstance(confidence, ConfidenceScore):
            confidence = confidence.value
        return LineageHistoryRecord(
            weapon_id=weapon_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
            source=source,
            confidence=confidence,
            reason=reason,
            reference=reference,
            timestamp=now_ms() if now is None else now,
        )

    def record_change(
        self,
        weapon_id: str,
        field: str,
        existing: Optional[MultiSourceField],
        updated: MultiSourceField,
        reason: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Optional[LineageHistoryRecord]:
        """
        History record for a transition from `existing` to `updated`, or
        None when the current value did not change. `existing=None` marks
        the first observation of the field.
        """
        old_value = existing.current_value if existing is not None else None
        if existing is not None and values_equal(old_value, updated.current_value):
            return None

        return self.create_history_record(
            weapon_id=weapon_id,
            field=field,
            old_value=old_value,
            new_value=updated.current_value,
            source=updated.primary_source,
            confidence=updated.confidence,
            reason=reason,
            reference=updated.primary_record.reference,
            now=now,
        )

    # --- Rollups ---

    def is_stale(self, timestamp: int, now: Optional[int] = None) -> bool:
        return self.scorer.is_stale(timestamp, now=now)

    def calculate_metadata(
        self,
        fields: Dict[str, MultiSourceField],
        now: Optional[int] = None,
    ) -> LineageMetadata:
        """Roll up the reconciled fields of one entity."""
        now = now_ms() if now is None else now

        contributing = set()
        total_confidence = 0.0
        conflict_count = 0
        stale_count = 0
        last_updated = None

        for field in fields.values():
            total_confidence += field.confidence.value
            if field.has_conflict:
                conflict_count += 1
            for record in field.sources:
                contributing.add(record.source)
                if self.is_stale(record.timestamp, now=now):
                    stale_count += 1
            if last_updated is None or field.last_updated > last_updated:
                last_updated = field.last_updated

        average = total_confidence / len(fields) if fields else 0.0

        return LineageMetadata(
            total_sources=len(contributing),
            average_confidence=max(0.0, min(1.0, average)),
            conflict_count=conflict_count,
            stale_data_count=stale_count,
            last_updated=last_updated,
            last_validated=now,
            contributing_sources=sorted(contributing, key=self.registry.rank),
        )

    def create_lineage_record(
        self,
        weapon_id: str,
        fields: Dict[str, MultiSourceField],
        existing: Optional[DataLineage] = None,
        now: Optional[int] = None,
    ) -> DataLineage:
        """Complete lineage of one entity; keeps created_at of `existing`."""
        now = now_ms() if now is None else now
        return DataLineage(
            weapon_id=weapon_id,
            fields=dict(fields),
            metadata=self.calculate_metadata(fields, now=now),
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )


lineage_tracker = LineageTracker()
