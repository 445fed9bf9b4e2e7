"""Confidence score — how much to trust a reconciled value."""

from pydantic import BaseModel, ConfigDict, Field


class ConfidenceScore(BaseModel):
    """Composite confidence plus the components it was computed from."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(ge=0.0, le=1.0)
    source_reliability: float = Field(ge=0.0, le=1.0)
    freshness: float = Field(ge=0.0, le=1.0)
    quality: float = Field(ge=0.0, le=1.0)
    calculated_at: int = Field(ge=0)        # Epoch milliseconds
