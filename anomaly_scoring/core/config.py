"""
Configuration for the behavioral anomaly scoring engine.

Provides environment-aware settings with the production defaults. All weights,
tiers and gate thresholds are configurable to avoid hard-coded "magic numbers"
and to allow tuning without redeployment.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeviationWeights(BaseModel):
    """
    Statistical deviation scoring.

    Tiers are (probability cutoff, multiplier) pairs checked in order with a
    strict ">" comparison; `base_multiplier` applies when no cutoff is passed.
    """

    weight: float = Field(30.0, ge=0.0)
    tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(0.95, 1.5), (0.90, 1.2), (0.75, 0.8)]
    )
    base_multiplier: float = Field(0.5, ge=0.0)
    default_std_dev: float = Field(1.0, gt=0.0)


class FrequencyWeights(BaseModel):
    """Frequency ratio tiers (observed / expected)."""

    weight: float = Field(25.0, ge=0.0)
    tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(5.0, 2.0), (3.0, 1.5), (2.0, 1.0)]
    )


class TemporalWeights(BaseModel):
    """
    Temporal scoring.

    Notes:
    - default_unusual_hours: used when the caller sends no unusual_hours.
    - circadian_hours: fixed night window used by the circadian disruption
      measure, independent of the caller's unusual_hours.
    """

    weight: float = Field(20.0, ge=0.0)
    unusual_multiplier: float = Field(1.5, ge=0.0)
    usual_multiplier: float = Field(0.5, ge=0.0)
    default_unusual_hours: List[int] = Field(default_factory=lambda: [2, 3, 4, 5])
    circadian_hours: List[int] = Field(default_factory=lambda: [2, 3, 4, 5])
    usual_hour_disruption: float = Field(0.1, ge=0.0)


class SpatialWeights(BaseModel):
    """
    Spatial scoring.

    Notes:
    - impossible_travel_kmh: speeds strictly above this are impossible.
    - dispersion_normalizer: variance (km^2) mapped to a dispersion of 1.0.
    - accuracy_tiers: (max average accuracy in meters, bonus), checked in order.
    """

    weight: float = Field(25.0, ge=0.0)
    impossible_travel_multiplier: float = Field(2.5, ge=0.0)
    impossible_travel_kmh: float = Field(1000.0, gt=0.0)
    dispersion_normalizer: float = Field(10_000.0, gt=0.0)
    count_log_base: float = Field(100.0, gt=1.0)
    accuracy_tiers: List[Tuple[float, float]] = Field(
        default_factory=lambda: [(10.0, 0.9), (50.0, 0.7), (100.0, 0.5)]
    )
    fallback_accuracy_bonus: float = Field(0.3, ge=0.0, le=1.0)


class VelocityWeights(BaseModel):
    """Velocity burst scoring. The score fires only above burst_threshold."""

    weight: float = Field(35.0, ge=0.0)
    burst_threshold: float = Field(10.0, ge=0.0)


class DeviceWeights(BaseModel):
    """
    Device fingerprint scoring.

    similarity_weights apply in order to: user agent, IP, platform, recency.
    """

    weight: float = Field(15.0, ge=0.0)
    new_device_multiplier: float = Field(1.5, ge=0.0)
    new_device_novelty: float = Field(0.8, ge=0.0, le=1.0)
    changed_device_multiplier: float = Field(1.2, ge=0.0)
    changed_device_novelty: float = Field(0.5, ge=0.0, le=1.0)
    similarity_weights: Tuple[float, float, float, float] = (0.3, 0.2, 0.2, 0.3)
    recency_decay_per_day: float = Field(0.1, ge=0.0)
    subnet_similarity: float = Field(0.8, ge=0.0, le=1.0)


class ScoringWeights(BaseModel):
    """
    Per-signal weight table.

    Changing any default here changes the score scale, so algorithm_version
    must be bumped alongside.
    """

    deviation: DeviationWeights = DeviationWeights()
    frequency: FrequencyWeights = FrequencyWeights()
    temporal: TemporalWeights = TemporalWeights()
    spatial: SpatialWeights = SpatialWeights()
    velocity: VelocityWeights = VelocityWeights()
    device: DeviceWeights = DeviceWeights()


class PoissonConfig(BaseModel):
    """
    Poisson probability strategy.

    Notes:
    - Expected counts above gaussian_lambda_cutover use the normal approximation.
    - Observed counts above exact_factorial_limit use a log-gamma pmf, since
      k! no longer fits a float past 170.
    """

    gaussian_lambda_cutover: float = Field(30.0, ge=0.0)
    exact_factorial_limit: int = Field(170, ge=0, le=170)


class EnsembleConfig(BaseModel):
    """Confidence-weighted ensemble bonuses."""

    diversity_factor: float = Field(0.05, ge=0.0)
    diversity_cap: float = Field(0.20, ge=0.0)
    consensus_factor: float = Field(0.10, ge=0.0)
    max_score: float = Field(100.0, gt=0.0, le=100.0)


class ScoreGate(BaseModel):
    """
    Post-processing business-rule gate.

    Scores are capped at max_score; scores strictly below noise_floor are
    reported as 0.
    """

    enabled: bool = True
    max_score: float = Field(100.0, gt=0.0, le=100.0)
    noise_floor: float = Field(10.0, ge=0.0)

    @model_validator(mode="after")
    def _floor_below_cap(self) -> "ScoreGate":
        if self.noise_floor > self.max_score:
            raise ValueError("noise_floor must not exceed max_score")
        return self


class SeverityThresholds(BaseModel):
    """Score bands used to label a final score."""

    low: float = Field(10.0, ge=0.0)
    medium: float = Field(30.0, ge=0.0)
    high: float = Field(60.0, ge=0.0)
    critical: float = Field(85.0, ge=0.0)

    @model_validator(mode="after")
    def _ordered(self) -> "SeverityThresholds":
        if not (self.low <= self.medium <= self.high <= self.critical):
            raise ValueError("severity thresholds must be non-decreasing")
        return self


class Config(BaseSettings):
    """
    Global configuration with environment overrides.

    Example: ANOMALY_SCORING_GATE__NOISE_FLOOR=5 lowers the noise floor.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANOMALY_SCORING_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    log_level: str = Field("INFO", description="Default logging level")
    logs_dir: Path = Field(Path("logs"), description="Directory for log files")
    log_to_file: bool = Field(False, description="Also write rotating log files")

    algorithm_version: str = Field(
        "2.1.0", pattern=r"^\d+\.\d+\.\d+$", description="Score-scale version"
    )
    weights: ScoringWeights = ScoringWeights()
    poisson: PoissonConfig = PoissonConfig()
    ensemble: EnsembleConfig = EnsembleConfig()
    gate: ScoreGate = ScoreGate()
    severity: SeverityThresholds = SeverityThresholds()

    batch_workers: int = Field(4, ge=1, description="Default fan-out width")
    cache_size: int = Field(1024, ge=1, description="In-memory cache entries")
    cache_key_length: int = Field(17, ge=8, le=64)


config = Config()
