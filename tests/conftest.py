"""Shared fixtures and record factories."""

from typing import Any, Optional

import pytest

from lineage_engine.models.source import DataSource, SourceRecord

T0 = 1_700_000_000_000
HOUR = 60 * 60 * 1000
DAY = 24 * HOUR


def make_record(
    source: DataSource,
    value: Any,
    timestamp: int = T0,
    reference: Optional[str] = None,
) -> SourceRecord:
    return SourceRecord(source=source, value=value, timestamp=timestamp, reference=reference)


@pytest.fixture
def damage_records():
    """Three sources observing a weapon's damage; two agree on 35."""
    return [
        make_record(DataSource.CODARMORY, 35, T0, reference="https://codarmory.com/weapons/ak47"),
        make_record(DataSource.WZSTATS, 34, T0 - 2 * HOUR),
        make_record(DataSource.USER_SUBMISSION, 35, T0 - DAY),
    ]
