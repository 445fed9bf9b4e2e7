"""
Confidence Scorer — how much to trust a reconciled value.

Three components, each in [0, 1]:
- source reliability: fixed prior of the primary source
- freshness: exp(-decay_rate * age_days) of the primary record
- quality: share of the other sources that agree with the primary value

They are combined per ConfidenceConfig (weighted geometric combination),
which is monotonically non-decreasing in every component.
"""

import logging
import math
from typing import Optional, Sequence

from lineage_engine.clock import MS_PER_DAY, now_ms
from lineage_engine.equality import value_key
from lineage_engine.errors import EmptySourceSetError, InvalidFieldStateError
from lineage_engine.models.confidence import ConfidenceScore
from lineage_engine.models.config import DEFAULT_CONFIDENCE_CONFIG, ConfidenceConfig
from lineage_engine.models.source import DataSource, SourceRecord, recency_order
from lineage_engine.registry import DEFAULT_SOURCE_REGISTRY, SourceRegistry

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class ConfidenceScorer:
    """Pure confidence computation. Holds no mutable state."""

    def __init__(
        self,
        registry: SourceRegistry = DEFAULT_SOURCE_REGISTRY,
        config: ConfidenceConfig = DEFAULT_CONFIDENCE_CONFIG,
    ):
        self.registry = registry
        self.config = config

    def score(
        self,
        records: Sequence[SourceRecord],
        primary: DataSource,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> ConfidenceScore:
        """Score the value held by `primary` given every supplied record."""
        if not records:
            raise EmptySourceSetError()
        config = config or self.config
        now = now_ms() if now is None else now

        own = [r for r in records if r.source == primary]
        if not own:
            raise InvalidFieldStateError(
                f"Primary source {primary.value} has no record in the supplied set"
            )
        primary_record = min(own, key=recency_order)

        reliability = self.registry.reliability(primary)
        freshness = self.freshness(primary_record.timestamp, now, config)
        quality = self.quality(records, primary_record, config)
        value = self.combine(reliability, freshness, quality, config)
        logger.debug(
            "Scored %s: reliability=%.3f freshness=%.3f quality=%.3f value=%.3f",
            primary.value, reliability, freshness, quality, value,
        )

        return ConfidenceScore(
            value=value,
            source_reliability=reliability,
            freshness=freshness,
            quality=quality,
            calculated_at=now,
        )

    def score_observation(
        self,
        source: DataSource,
        timestamp: int,
        quality: float = 1.0,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> ConfidenceScore:
        """Score a single claimed value with an externally supplied quality."""
        config = config or self.config
        now = now_ms() if now is None else now

        reliability = self.registry.reliability(source)
        freshness = self.freshness(timestamp, now, config)
        quality = _clamp(max(config.quality_floor, quality))
        return ConfidenceScore(
            value=self.combine(reliability, freshness, quality, config),
            source_reliability=reliability,
            freshness=freshness,
            quality=quality,
            calculated_at=now,
        )

    def freshness(
        self,
        timestamp: int,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> float:
        """Exponential decay of age. Future timestamps (clock skew) count as age 0."""
        config = config or self.config
        now = now_ms() if now is None else now
        age_days = max(0, now - timestamp) / MS_PER_DAY
        return _clamp(math.exp(-config.freshness_decay_rate * age_days))

    def quality(
        self,
        records: Sequence[SourceRecord],
        primary_record: SourceRecord,
        config: Optional[ConfidenceConfig] = None,
    ) -> float:
        """1.0 minus the fraction of the other records that disagree with the primary."""
        config = config or self.config
        others = list(records)
        for index, record in enumerate(others):
            if record is primary_record:
                del others[index]
                break
        if not others:
            return 1.0

        primary_key = value_key(primary_record.value)
        disagreeing = sum(1 for r in others if value_key(r.value) != primary_key)
        quality = 1.0 - disagreeing / len(others)
        return _clamp(max(config.quality_floor, quality))

    def combine(
        self,
        reliability: float,
        freshness: float,
        quality: float,
        config: Optional[ConfidenceConfig] = None,
    ) -> float:
        config = config or self.config
        value = (
            _clamp(reliability) ** config.reliability_weight
            * _clamp(freshness) ** config.freshness_weight
            * _clamp(quality) ** config.quality_weight
        )
        return _clamp(value)

    def is_stale(
        self,
        timestamp: int,
        now: Optional[int] = None,
        config: Optional[ConfidenceConfig] = None,
    ) -> bool:
        """True when data is older than the configured stale threshold."""
        config = config or self.config
        now = now_ms() if now is None else now
        return (now - timestamp) / MS_PER_DAY > config.stale_threshold_days
