"""Data sources and raw observations."""

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from lineage_engine.equality import value_order


class DataSource(str, Enum):
    """
    Closed set of known data providers.

    Declaration order is significant: when two observations tie on
    reliability and timestamp, the source declared first wins.
    """
    OFFICIAL_API = "official_api"           # Official vendor API (legacy)
    MANUAL = "manual"                       # Manual curator entry
    CODARMORY = "codarmory"                 # Authoritative vendor feed
    WIKI = "wiki"                           # Community wiki (legacy)
    WZSTATS = "wzstats"                     # Community analytics feed
    CODMUNITY = "codmunity"                 # Community-driven data
    USER_SUBMISSION = "user_submission"
    COMPUTED = "computed"                   # Derived from other sources
    IMAGE_ANALYSIS = "image_analysis"       # OCR of screenshots
    UNKNOWN = "unknown"


SOURCE_RELIABILITY: Mapping[DataSource, float] = MappingProxyType({
    DataSource.OFFICIAL_API: 1.0,
    DataSource.MANUAL: 0.9,
    DataSource.CODARMORY: 0.9,
    DataSource.WIKI: 0.8,
    DataSource.WZSTATS: 0.8,
    DataSource.CODMUNITY: 0.7,
    DataSource.USER_SUBMISSION: 0.6,
    DataSource.COMPUTED: 0.6,
    DataSource.IMAGE_ANALYSIS: 0.5,
    DataSource.UNKNOWN: 0.3,
})


class SourceRecord(BaseModel):
    """One observation: source S claimed value V at time T."""

    model_config = ConfigDict(frozen=True)

    source: DataSource
    value: Any
    timestamp: int = Field(ge=0)            # Epoch milliseconds
    reference: Optional[str] = None         # URL or external ID
    notes: Optional[str] = None


def recency_order(record: SourceRecord) -> tuple:
    """Sort key among records of one source: newest first, then a total order on content."""
    return (-record.timestamp, value_order(record.value), record.reference or "", record.notes or "")
