"""Engine configuration models."""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lineage_engine.errors import ConfigValidationError


class ConfidenceConfig(BaseModel):
    """
    Tunable parameters of the confidence score.

    The composite value is a weighted geometric combination:

        value = reliability ** reliability_weight
              * freshness ** freshness_weight
              * quality ** quality_weight

    Weights are non-negative, so the value never decreases when any single
    component increases. With every weight at 1.0 this is the plain product.
    """

    model_config = ConfigDict(frozen=True)

    freshness_decay_rate: float = Field(ge=0.0, default=0.05)   # Per day
    stale_threshold_days: float = Field(gt=0.0, default=30.0)
    reliability_weight: float = Field(ge=0.0, le=10.0, default=1.0)
    freshness_weight: float = Field(ge=0.0, le=10.0, default=1.0)
    quality_weight: float = Field(ge=0.0, le=10.0, default=1.0)
    quality_floor: float = Field(ge=0.0, le=1.0, default=0.0)


DEFAULT_CONFIDENCE_CONFIG = ConfidenceConfig()


class StoreConfig(BaseModel):
    """Configuration for the SQLite history backend."""

    db_path: str = ":memory:"
    timeout_seconds: float = Field(gt=0.0, default=5.0)
    batch_size: int = Field(ge=1, default=500)


def load_confidence_config(
    overrides: Optional[Mapping[str, Any]] = None,
    base: ConfidenceConfig = DEFAULT_CONFIDENCE_CONFIG,
) -> ConfidenceConfig:
    """
    Build a ConfidenceConfig from caller-supplied overrides.

    Unknown keys and out-of-range values raise ConfigValidationError naming
    the first offending field.
    """
    if not overrides:
        return base

    unknown = sorted(set(overrides) - set(ConfidenceConfig.model_fields))
    if unknown:
        raise ConfigValidationError(unknown[0], "unknown configuration key")

    try:
        return ConfidenceConfig.model_validate({**base.model_dump(), **overrides})
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "<root>"
        raise ConfigValidationError(field, error["msg"]) from exc
