"""
Field Reconciler — merges observations of one field into a single value.

Algorithm:
  1. Reject an empty record set.
  2. Pick the primary record: highest source reliability, then most recent
     timestamp, then DataSource declaration order.
  3. current_value = primary record's value.
  4. Group records by value (structural equality); more than one group is
     a conflict, reported with every distinct (source, value) pair.
  5. Score confidence over the full set.

The result does not depend on the order records are supplied in.
"""

import logging
from typing import List, Optional, Sequence

from lineage_engine.clock import now_ms
from lineage_engine.confidence import ConfidenceScorer
from lineage_engine.equality import value_key, value_order, values_equal
from lineage_engine.errors import EmptySourceSetError
from lineage_engine.models.config import ConfidenceConfig
from lineage_engine.models.field import ConflictDetail, ConflictValue, MultiSourceField
from lineage_engine.models.source import SourceRecord
from lineage_engine.registry import DEFAULT_SOURCE_REGISTRY, SourceRegistry

logger = logging.getLogger(__name__)

__all__ = ["FieldReconciler", "values_equal"]


class FieldReconciler:
    """Stateless reconciliation of one field's observations."""

    def __init__(
        self,
        scorer: Optional[ConfidenceScorer] = None,
        registry: Optional[SourceRegistry] = None,
    ):
        if registry is None:
            registry = scorer.registry if scorer else DEFAULT_SOURCE_REGISTRY
        self.registry = registry
        self.scorer = scorer or ConfidenceScorer(registry=registry)

    def _precedence(self, record: SourceRecord) -> tuple:
        """Sort key: the first record in this order is the most authoritative."""
        return (
            -self.registry.reliability(record.source),
            -record.timestamp,
            self.registry.rank(record.source),
            value_order(record.value),
            record.reference or "",
            record.notes or "",
        )

    def order(self, records: Sequence[SourceRecord]) -> List[SourceRecord]:
        """Records in canonical precedence order."""
        return sorted(records, key=self._precedence)

    def select_primary(self, records: Sequence[SourceRecord]) -> SourceRecord:
        if not records:
            raise EmptySourceSetError()
        return min(records, key=self._precedence)

    def detect_conflict(
        self,
        records: Sequence[SourceRecord],
        field: str,
        now: Optional[int] = None,
    ) -> Optional[ConflictDetail]:
        """A ConflictDetail when the records hold two or more distinct values."""
        groups = {value_key(r.value) for r in records}
        if len(groups) <= 1:
            return None

        values: List[ConflictValue] = []
        seen = set()
        for record in self.order(records):
            pair = (record.source, value_key(record.value))
            if pair in seen:
                continue
            seen.add(pair)
            values.append(
                ConflictValue(
                    source=record.source,
                    value=record.value,
                    timestamp=record.timestamp,
                )
            )

        return ConflictDetail(
            field=field,
            values=values,
            detected_at=now_ms() if now is None else now,
        )

    def reconcile(
        self,
        records: Sequence[SourceRecord],
        field: str,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> MultiSourceField:
        """Reconcile every observation of `field` into a MultiSourceField."""
        if not records:
            raise EmptySourceSetError(field=field)
        now = now_ms() if now is None else now

        ordered = self.order(records)
        primary = ordered[0]
        conflict = self.detect_conflict(ordered, field, now)
        confidence = self.scorer.score(ordered, primary.source, now=now, config=config)

        if conflict:
            logger.debug(
                "Conflict on %s: %d distinct claims, primary %s=%r",
                field, len(conflict.values), primary.source.value, primary.value,
            )

        return MultiSourceField(
            current_value=primary.value,
            sources=ordered,
            primary_source=primary.source,
            confidence=confidence,
            last_updated=primary.timestamp,
            has_conflict=conflict is not None,
            conflict_details=[conflict] if conflict else None,
        )
