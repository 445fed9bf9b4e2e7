"""Tests for the Field Reconciler."""

import itertools

import pytest

from conftest import DAY, HOUR, T0, make_record
from lineage_engine.errors import EmptySourceSetError, UnknownSourceError
from lineage_engine.models.source import DataSource, SourceRecord
from lineage_engine.reconciler import FieldReconciler
from lineage_engine.registry import SourceRegistry


class TestPrimarySelection:
    def setup_method(self):
        self.reconciler = FieldReconciler()

    def test_highest_reliability_wins(self, damage_records):
        primary = self.reconciler.select_primary(damage_records)
        assert primary.source is DataSource.CODARMORY

    def test_reliability_beats_recency(self):
        records = [
            make_record(DataSource.USER_SUBMISSION, 40, T0),
            make_record(DataSource.OFFICIAL_API, 35, T0 - 30 * DAY),
        ]
        assert self.reconciler.select_primary(records).source is DataSource.OFFICIAL_API

    def test_reliability_tie_broken_by_recency(self):
        # wiki and wzstats share reliability 0.8
        records = [
            make_record(DataSource.WIKI, 30, T0 - HOUR),
            make_record(DataSource.WZSTATS, 31, T0),
        ]
        field = self.reconciler.reconcile(records, "damage", now=T0)
        assert field.primary_source is DataSource.WZSTATS
        assert field.current_value == 31

    def test_full_tie_broken_by_declaration_order(self):
        # manual and codarmory share reliability 0.9; manual is declared first
        for records in itertools.permutations([
            make_record(DataSource.CODARMORY, 36, T0),
            make_record(DataSource.MANUAL, 35, T0),
        ]):
            field = self.reconciler.reconcile(list(records), "damage", now=T0)
            assert field.primary_source is DataSource.MANUAL
            assert field.current_value == 35

    def test_current_value_is_latest_record_of_primary(self):
        records = [
            make_record(DataSource.CODARMORY, 30, T0 - DAY),
            make_record(DataSource.CODARMORY, 32, T0),
            make_record(DataSource.WIKI, 30, T0),
        ]
        field = self.reconciler.reconcile(records, "damage", now=T0)
        assert field.current_value == 32
        assert field.primary_record.timestamp == T0
        assert field.last_updated == T0


class TestConflictDetection:
    def setup_method(self):
        self.reconciler = FieldReconciler()

    def test_example_scenario(self, damage_records):
        field = self.reconciler.reconcile(damage_records, "damage", now=T0)

        assert field.primary_source is DataSource.CODARMORY
        assert field.current_value == 35
        assert field.has_conflict is True
        assert len(field.conflict_details) == 1

        detail = field.conflict_details[0]
        assert detail.field == "damage"
        assert detail.detected_at == T0
        assert detail.resolved is False
        pairs = [(v.source, v.value) for v in detail.values]
        assert pairs == [
            (DataSource.CODARMORY, 35),
            (DataSource.WZSTATS, 34),
            (DataSource.USER_SUBMISSION, 35),
        ]

    def test_scenario_with_custom_reliability(self, damage_records):
        registry = SourceRegistry(
            {
                DataSource.CODARMORY: 0.9,
                DataSource.WZSTATS: 0.6,
                DataSource.USER_SUBMISSION: 0.3,
            },
            require_complete=False,
        )
        field = FieldReconciler(registry=registry).reconcile(damage_records, "damage", now=T0)
        assert field.primary_source is DataSource.CODARMORY
        assert field.confidence.source_reliability == 0.9
        assert {(v.source, v.value) for v in field.conflict_details[0].values} == {
            (DataSource.CODARMORY, 35),
            (DataSource.USER_SUBMISSION, 35),
            (DataSource.WZSTATS, 34),
        }

    def test_agreement_is_not_a_conflict(self):
        records = [
            make_record(DataSource.CODARMORY, 35),
            make_record(DataSource.WZSTATS, 35.0),
            make_record(DataSource.WIKI, 35),
        ]
        field = self.reconciler.reconcile(records, "damage", now=T0)
        assert field.has_conflict is False
        assert field.conflict_details is None
        assert field.confidence.quality == 1.0

    def test_composite_values(self):
        records = [
            make_record(DataSource.CODARMORY, {"head": 50, "body": 35}),
            make_record(DataSource.WZSTATS, {"body": 35, "head": 50}),
            make_record(DataSource.WIKI, {"body": 34, "head": 50}),
        ]
        field = self.reconciler.reconcile(records, "damage_profile", now=T0)
        assert field.has_conflict is True
        assert len(field.conflict_details[0].values) == 3

    def test_duplicate_claims_listed_once(self):
        records = [
            make_record(DataSource.WIKI, 10, T0),
            make_record(DataSource.WIKI, 10, T0 - HOUR),
            make_record(DataSource.CODMUNITY, 11, T0),
        ]
        field = self.reconciler.reconcile(records, "magazine", now=T0)
        pairs = [(v.source, v.value) for v in field.conflict_details[0].values]
        assert pairs == [(DataSource.WIKI, 10), (DataSource.CODMUNITY, 11)]

    def test_single_record(self):
        record = make_record(DataSource.WZSTATS, 34, T0)
        field = self.reconciler.reconcile([record], "damage", now=T0)
        assert field.has_conflict is False
        assert field.confidence.quality == 1.0
        assert field.confidence.value == pytest.approx(0.8)


class TestReconcileContract:
    def setup_method(self):
        self.reconciler = FieldReconciler()

    def test_empty_records(self):
        with pytest.raises(EmptySourceSetError) as exc_info:
            self.reconciler.reconcile([], "damage", now=T0)
        assert exc_info.value.field == "damage"

    def test_unregistered_source_is_fatal(self):
        reconciler = FieldReconciler(
            registry=SourceRegistry({DataSource.WIKI: 0.8}, require_complete=False)
        )
        with pytest.raises(UnknownSourceError):
            reconciler.reconcile([make_record(DataSource.MANUAL, 1)], "damage", now=T0)

    def test_deterministic_regardless_of_input_order(self, damage_records):
        records = damage_records + [make_record(DataSource.CODMUNITY, 34, T0 - HOUR)]
        expected = self.reconciler.reconcile(records, "damage", now=T0)
        for permutation in itertools.permutations(records):
            result = self.reconciler.reconcile(list(permutation), "damage", now=T0)
            assert result == expected
            assert result.confidence.value == expected.confidence.value

    def test_records_differing_only_in_reference_or_notes(self):
        a = make_record(DataSource.WIKI, 30, T0, reference="https://wiki.example/a")
        b = make_record(DataSource.WIKI, 30, T0, reference="https://wiki.example/b")
        c = SourceRecord(source=DataSource.WIKI, value=30, timestamp=T0, notes="patch 1.2")
        for records in itertools.permutations([a, b, c]):
            forward = self.reconciler.reconcile(list(records), "damage", now=T0)
            backward = self.reconciler.reconcile(list(reversed(records)), "damage", now=T0)
            assert forward == backward
            assert forward.sources == [c, a, b]
            assert forward.primary_record == c
            assert forward.primary_record.reference is None

    def test_result_is_immutable(self, damage_records):
        field = self.reconciler.reconcile(damage_records, "damage", now=T0)
        with pytest.raises(Exception):
            field.current_value = 99
