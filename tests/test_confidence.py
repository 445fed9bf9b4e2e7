"""Tests for the Confidence Scorer."""

import itertools
import math

import pytest

from conftest import DAY, HOUR, T0, make_record
from lineage_engine.confidence import ConfidenceScorer
from lineage_engine.errors import EmptySourceSetError, InvalidFieldStateError, UnknownSourceError
from lineage_engine.models.config import ConfidenceConfig
from lineage_engine.models.source import DataSource
from lineage_engine.registry import SourceRegistry


class TestComponents:
    def setup_method(self):
        self.scorer = ConfidenceScorer()

    def test_freshness_now_is_one(self):
        assert self.scorer.freshness(T0, now=T0) == 1.0

    def test_freshness_decays_per_day(self):
        assert self.scorer.freshness(T0 - DAY, now=T0) == pytest.approx(math.exp(-0.05))
        assert self.scorer.freshness(T0 - 10 * DAY, now=T0) == pytest.approx(math.exp(-0.5))

    def test_future_timestamp_counts_as_fresh(self):
        assert self.scorer.freshness(T0 + HOUR, now=T0) == 1.0

    def test_zero_decay_rate(self):
        config = ConfidenceConfig(freshness_decay_rate=0.0)
        assert self.scorer.freshness(T0 - 365 * DAY, now=T0, config=config) == 1.0

    def test_quality_unanimous(self):
        records = [
            make_record(DataSource.CODARMORY, 35),
            make_record(DataSource.WZSTATS, 35),
        ]
        assert self.scorer.quality(records, records[0]) == 1.0

    def test_quality_half_disagree(self, damage_records):
        assert self.scorer.quality(damage_records, damage_records[0]) == pytest.approx(0.5)

    def test_quality_all_disagree(self):
        records = [
            make_record(DataSource.CODARMORY, 35),
            make_record(DataSource.WZSTATS, 34),
            make_record(DataSource.WIKI, 33),
        ]
        assert self.scorer.quality(records, records[0]) == 0.0

    def test_quality_floor(self):
        records = [
            make_record(DataSource.CODARMORY, 35),
            make_record(DataSource.WZSTATS, 34),
        ]
        config = ConfidenceConfig(quality_floor=0.25)
        assert self.scorer.quality(records, records[0], config) == 0.25

    def test_combine_default_is_product(self):
        assert self.scorer.combine(0.9, 0.5, 0.5) == pytest.approx(0.225)

    def test_zero_weight_ignores_component(self):
        config = ConfidenceConfig(freshness_weight=0.0)
        assert self.scorer.combine(0.8, 0.0, 1.0, config) == pytest.approx(0.8)

    def test_is_stale(self):
        assert self.scorer.is_stale(T0 - 31 * DAY, now=T0)
        assert not self.scorer.is_stale(T0 - 29 * DAY, now=T0)


class TestScore:
    def setup_method(self):
        self.scorer = ConfidenceScorer()

    def test_score_breakdown(self, damage_records):
        score = self.scorer.score(damage_records, DataSource.CODARMORY, now=T0)
        assert score.source_reliability == 0.9
        assert score.freshness == 1.0
        assert score.quality == pytest.approx(0.5)
        assert score.value == pytest.approx(0.45)
        assert score.calculated_at == T0

    def test_single_record_is_reliability_times_freshness(self):
        record = make_record(DataSource.WIKI, 10, T0 - 2 * DAY)
        score = self.scorer.score([record], DataSource.WIKI, now=T0)
        assert score.quality == 1.0
        assert score.value == pytest.approx(0.8 * math.exp(-0.1))

    def test_uses_most_recent_primary_record(self):
        records = [
            make_record(DataSource.WIKI, 10, T0 - 10 * DAY),
            make_record(DataSource.WIKI, 10, T0),
        ]
        score = self.scorer.score(records, DataSource.WIKI, now=T0)
        assert score.freshness == 1.0

    def test_empty_records(self):
        with pytest.raises(EmptySourceSetError):
            self.scorer.score([], DataSource.WIKI, now=T0)

    def test_primary_missing_from_records(self):
        with pytest.raises(InvalidFieldStateError):
            self.scorer.score([make_record(DataSource.WIKI, 1)], DataSource.MANUAL, now=T0)

    def test_unregistered_primary_is_fatal(self):
        scorer = ConfidenceScorer(
            registry=SourceRegistry({DataSource.WIKI: 0.8}, require_complete=False)
        )
        with pytest.raises(UnknownSourceError):
            scorer.score([make_record(DataSource.MANUAL, 1)], DataSource.MANUAL, now=T0)

    def test_per_call_config_override(self):
        record = make_record(DataSource.WIKI, 10, T0 - DAY)
        config = ConfidenceConfig(freshness_decay_rate=1.0)
        score = self.scorer.score([record], DataSource.WIKI, now=T0, config=config)
        assert score.freshness == pytest.approx(math.exp(-1.0))

    def test_score_observation(self):
        score = self.scorer.score_observation(DataSource.CODARMORY, T0, quality=0.5, now=T0)
        assert score.value == pytest.approx(0.45)


class TestMonotonicity:
    """More reliable, fresher or better-agreed data never lowers confidence."""

    GRID = [0.0, 0.1, 0.3, 0.5, 0.7, 0.9, 1.0]
    CONFIGS = [
        ConfidenceConfig(),
        ConfidenceConfig(reliability_weight=2.0, freshness_weight=0.5, quality_weight=0.0),
        ConfidenceConfig(reliability_weight=0.0, freshness_weight=3.0, quality_weight=1.5),
    ]

    def setup_method(self):
        self.scorer = ConfidenceScorer()

    @pytest.mark.parametrize("config", CONFIGS)
    def test_combine_monotonic_in_each_component(self, config):
        for r, f, q in itertools.product(self.GRID, repeat=3):
            base = self.scorer.combine(r, f, q, config)
            for bigger in self.GRID:
                if bigger >= r:
                    assert self.scorer.combine(bigger, f, q, config) >= base
                if bigger >= f:
                    assert self.scorer.combine(r, bigger, q, config) >= base
                if bigger >= q:
                    assert self.scorer.combine(r, f, bigger, config) >= base

    def test_higher_reliability_scores_higher(self):
        low = ConfidenceScorer(
            registry=SourceRegistry({DataSource.WIKI: 0.4}, require_complete=False)
        )
        high = ConfidenceScorer(
            registry=SourceRegistry({DataSource.WIKI: 0.8}, require_complete=False)
        )
        records = [make_record(DataSource.WIKI, 1, T0 - DAY)]
        assert (
            high.score(records, DataSource.WIKI, now=T0).value
            >= low.score(records, DataSource.WIKI, now=T0).value
        )

    def test_fresher_scores_higher(self):
        older = [make_record(DataSource.WIKI, 1, T0 - 5 * DAY)]
        newer = [make_record(DataSource.WIKI, 1, T0 - DAY)]
        assert (
            self.scorer.score(newer, DataSource.WIKI, now=T0).value
            >= self.scorer.score(older, DataSource.WIKI, now=T0).value
        )

    def test_more_agreement_scores_higher(self, damage_records):
        agreeing = [damage_records[0], make_record(DataSource.WZSTATS, 35, T0 - 2 * HOUR), damage_records[2]]
        assert (
            self.scorer.score(agreeing, DataSource.CODARMORY, now=T0).value
            >= self.scorer.score(damage_records, DataSource.CODARMORY, now=T0).value
        )
