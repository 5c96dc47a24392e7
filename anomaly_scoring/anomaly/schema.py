"""
Schema definitions for behavioral anomaly scoring.

Input bundles (PatternData) are validated once at the boundary. Numeric fields
tolerate missing/None values and coerce to 0; wrong types fail fast with a
PatternValidationError instead of propagating corrupted numbers.

Outputs (ScoreComponent, AnomalyScoreResult) are explainable: each component
carries the factors that produced its score, and results serialize to JSON for
logging and auditing.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Mapping, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
)

from anomaly_scoring.core.exceptions import PatternValidationError


def _none_to_zero(value: Any) -> Any:
    return 0 if value is None else value


def _none_to_empty_list(value: Any) -> Any:
    return [] if value is None else value


def _none_to_empty_dict(value: Any) -> Any:
    return {} if value is None else value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


Number = Annotated[float, BeforeValidator(_none_to_zero)]
Count = Annotated[int, BeforeValidator(_none_to_zero)]
NonNegativeNumber = Annotated[float, BeforeValidator(_none_to_zero), Field(ge=0.0)]
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]

# Largest event count that still converts to a float exactly (2**53)
MAX_EVENT_COUNT = 2 ** 53


class _Bundle(BaseModel):
    """Immutable input structure; unknown keys are ignored, NaN/inf rejected."""

    model_config = ConfigDict(frozen=True, extra="ignore", allow_inf_nan=False)


class FrequencyData(_Bundle):
    """Observed event count versus the expected (Poisson mean) count."""

    observed: Count = Field(0, ge=0, le=MAX_EVENT_COUNT)
    expected: Number = Field(0.0, ge=0.0)


class TimeData(_Bundle):
    """
    Hour-of-day context.

    Fields:
    - current_hour: hour of the event (0..23)
    - unusual_hours: hours considered unusual (None means the configured default)
    - historical_pattern: hour -> activity count
    """

    current_hour: Count = Field(0, ge=0, le=23)
    unusual_hours: Optional[List[int]] = None
    historical_pattern: Annotated[
        Dict[int, NonNegativeNumber], BeforeValidator(_none_to_empty_dict)
    ] = Field(default_factory=dict)


class GeoPoint(_Bundle):
    """A located, timestamped observation. Accuracy is in meters."""

    latitude: Number = Field(0.0, ge=-90.0, le=90.0)
    longitude: Number = Field(0.0, ge=-180.0, le=180.0)
    timestamp: UtcDatetime
    accuracy: Number = 0.0


class LocationData(_Bundle):
    """Chronological sequence of geo-points."""

    location_sequence: Annotated[
        List[GeoPoint], BeforeValidator(_none_to_empty_list)
    ] = Field(default_factory=list)


class VelocityData(_Bundle):
    """Current request rate versus the baseline rate."""

    current_velocity: Number = 0.0
    baseline_velocity: Number = 0.0


class DeviceFingerprint(_Bundle):
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    platform: Optional[str] = None


class HistoricalDevice(DeviceFingerprint):
    last_seen: Optional[UtcDatetime] = None


class DeviceData(_Bundle):
    """Current device fingerprint and previously seen devices."""

    device_fingerprint: Optional[DeviceFingerprint] = None
    historical_devices: Annotated[
        List[HistoricalDevice], BeforeValidator(_none_to_empty_list)
    ] = Field(default_factory=list)


class PatternData(_Bundle):
    """
    Input bundle for one evaluation.

    Every key is optional. A signal whose sub-structure is absent (or lacks a
    required denominator) contributes no component.

    reference_time anchors device recency decay; when absent the evaluation
    time is used, which makes device scores time-dependent.
    """

    deviation: Number = 0.0
    std_dev: Optional[float] = None
    frequency_anomaly: Optional[FrequencyData] = None
    time_anomaly: Optional[TimeData] = None
    location_anomaly: Optional[LocationData] = None
    velocity_anomaly: Optional[VelocityData] = None
    device_anomaly: Optional[DeviceData] = None
    reference_time: Optional[UtcDatetime] = None


def parse_pattern_data(data: Union[PatternData, Mapping[str, Any]]) -> PatternData:
    """
    Validate a raw mapping into PatternData.

    Raises:
        PatternValidationError: if any field has a malformed type or range
    """
    if isinstance(data, PatternData):
        return data
    if not isinstance(data, Mapping):
        raise PatternValidationError(
            f"Pattern data must be a mapping, got {type(data).__name__}"
        )
    try:
        return PatternData.model_validate(dict(data))
    except ValidationError as exc:
        raise PatternValidationError(
            f"Invalid pattern data: {exc.error_count()} error(s)",
            errors=exc.errors(include_url=False),
        ) from exc


class AlgorithmName(str, Enum):
    """Signal algorithms, in evaluation order."""

    DEVIATION = "deviation"
    FREQUENCY = "frequency"
    TEMPORAL = "temporal"
    SPATIAL = "spatial"
    VELOCITY = "velocity"
    DEVICE = "device"


class AnomalySeverity(str, Enum):
    """Severity labels for a final score."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ScoreComponent(BaseModel):
    """
    Score produced by one signal algorithm.

    Fields:
    - algorithm: which signal fired
    - score: weighted score (>= 0, uncapped)
    - confidence: the signal's own confidence in [0.0, 1.0]
    - factors: intermediate values that explain the score
    """

    model_config = ConfigDict(frozen=True)

    algorithm: AlgorithmName
    score: float = Field(ge=0.0)
    confidence: float = Field(ge=0.0, le=1.0)
    factors: Dict[str, Any] = Field(default_factory=dict)


class AnomalyScoreResult(BaseModel):
    """
    Result of one evaluation.

    Fields:
    - total_score: gated score in [0, 100]
    - raw_score: ensemble score before the business-rule gate
    - components: fired signal components, in evaluation order
    - confidence: overall confidence in [0.0, 1.0]
    - severity: label derived from total_score
    - algorithm_version: score-scale version
    """

    total_score: float = Field(ge=0.0, le=100.0)
    raw_score: float = Field(ge=0.0)
    components: List[ScoreComponent] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    severity: AnomalySeverity = AnomalySeverity.NONE
    algorithm_version: str
