"""Reconciled field — the result of merging observations of one field."""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from lineage_engine.models.confidence import ConfidenceScore
from lineage_engine.models.source import DataSource, SourceRecord, recency_order

T = TypeVar("T")


class ConflictValue(BaseModel):
    """One source's claim inside a conflict."""

    model_config = ConfigDict(frozen=True)

    source: DataSource
    value: Any
    timestamp: int


class ConflictDetail(BaseModel):
    """Disagreement between sources about a single field."""

    model_config = ConfigDict(frozen=True)

    field: str
    values: List[ConflictValue]
    detected_at: int
    resolved: bool = False
    resolution: Optional[str] = None


class MultiSourceField(BaseModel, Generic[T]):
    """
    Authoritative value of one field, reconciled from every source.

    current_value is always the value of primary_source's most recent
    record in sources. has_conflict is true iff sources hold at least two
    distinct values.
    """

    model_config = ConfigDict(frozen=True)

    current_value: T
    sources: List[SourceRecord] = Field(min_length=1)
    primary_source: DataSource
    confidence: ConfidenceScore
    last_updated: int                       # Timestamp of the primary record
    has_conflict: bool = False
    conflict_details: Optional[List[ConflictDetail]] = None

    def records_for(self, source: DataSource) -> List[SourceRecord]:
        """All records contributed by a source."""
        return [r for r in self.sources if r.source == source]

    @property
    def primary_record(self) -> SourceRecord:
        """The record the current value was taken from."""
        return min(
            self.records_for(self.primary_source),
            key=recency_order,
        )
