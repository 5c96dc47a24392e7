"""
Signal algorithms for behavioral anomaly scoring.

Each algorithm is a pure function of the pattern bundle and a read-only
context. It returns a ScoreComponent when its signal has enough data, or None
when the signal is absent or degenerate (None is not a zero score: the signal
is excluded from the ensemble).

The algorithms are mutually independent and registered in a fixed-order
table, SIGNAL_ALGORITHMS.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from anomaly_scoring.core.config import PoissonConfig, ScoringWeights, SpatialWeights

from .schema import (
    AlgorithmName,
    DeviceFingerprint,
    GeoPoint,
    HistoricalDevice,
    PatternData,
    ScoreComponent,
)
from .statistics import (
    burst_intensity,
    exceeds_speed,
    geographic_dispersion,
    great_circle_distance,
    ip_similarity,
    logistic_complement,
    normal_cdf,
    poisson_probability,
    recency_decay,
    string_similarity,
    travel_speed_kmh,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalContext:
    """
    Read-only inputs shared by all algorithms in one evaluation.

    reference_time is the instant device recency is measured against.
    """

    weights: ScoringWeights
    poisson: PoissonConfig
    reference_time: datetime


SignalAlgorithm = Callable[[PatternData, SignalContext], Optional[ScoreComponent]]


def _tier_multiplier(
    value: float, tiers: Sequence[Tuple[float, float]], fallback: float
) -> float:
    for cutoff, multiplier in tiers:
        if value > cutoff:
            return multiplier
    return fallback


def _unit(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def statistical_deviation_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """Z-score of the deviation, scored by its normal-CDF likelihood tier."""
    w = ctx.weights.deviation
    deviation = data.deviation
    if deviation == 0:
        return None

    std_dev = w.default_std_dev if data.std_dev is None else data.std_dev
    if std_dev == 0:
        logger.debug("Skipping deviation signal: std_dev is zero")
        return None

    z_score = deviation / std_dev
    likelihood = normal_cdf(abs(z_score))
    score = w.weight * _tier_multiplier(likelihood, w.tiers, w.base_multiplier)

    return ScoreComponent(
        algorithm=AlgorithmName.DEVIATION,
        score=score,
        confidence=_unit(likelihood),
        factors={
            "deviation": deviation,
            "std_dev": std_dev,
            "z_score": z_score,
            "statistical_significance": likelihood,
        },
    )


def frequency_anomaly_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """Observed/expected event ratio; confidence is the Poisson probability."""
    freq = data.frequency_anomaly
    if freq is None or freq.expected == 0:
        return None

    w = ctx.weights.frequency
    ratio = freq.observed / freq.expected
    if not math.isfinite(ratio):
        logger.debug("Skipping frequency signal: ratio overflowed")
        return None
    score =w.weight * _tier_multiplier(ratio, w.tiers, 0.0)
    confidence = poisson_probability(
        freq.observed,
        freq.expected,
        gaussian_cutover=ctx.poisson.gaussian_lambda_cutover,
        exact_limit=ctx.poisson.exact_factorial_limit,
    )

    return ScoreComponent(
        algorithm=AlgorithmName.FREQUENCY,
        score=score,
        confidence=_unit(confidence),
        factors={
            "observed_frequency": freq.observed,
            "expected_frequency": freq.expected,
            "frequency_ratio": ratio,
        },
    )


def temporal_anomaly_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """Unusual-hour activity, amplified by circadian disruption."""
    time_data = data.time_anomaly
    if time_data is None:
        return None

    w = ctx.weights.temporal
    hour = time_data.current_hour
    unusual_hours = (
        w.default_unusual_hours
        if time_data.unusual_hours is None
        else time_data.unusual_hours
    )
    is_unusual = hour in unusual_hours
    pattern = time_data.historical_pattern

    max_frequency = max(pattern.values(), default=0.0)
    if max_frequency == 0:
        temporal_deviation = 0.0
    else:
        temporal_deviation = 1.0 - pattern.get(hour, 0.0) / max_frequency

    if hour not in w.circadian_hours:
        circadian_disruption = w.usual_hour_disruption
    elif max_frequency == 0:
        circadian_disruption = 0.0
    else:
        # Sum shares of the peak hour so large counts cannot overflow to inf
        total_activity = sum(v / max_frequency for v in pattern.values())
        night_activity = sum(
            pattern.get(h, 0.0) / max_frequency for h in w.circadian_hours
        )
        circadian_disruption = math.log(1.0 + night_activity / total_activity)

    multiplier = w.unusual_multiplier if is_unusual else w.usual_multiplier
    score = w.weight * multiplier * (1.0 + circadian_disruption)

    return ScoreComponent(
        algorithm=AlgorithmName.TEMPORAL,
        score=score,
        confidence=_unit(1.0 - temporal_deviation),
        factors={
            "current_hour": hour,
            "is_unusual_hour": is_unusual,
            "temporal_deviation": temporal_deviation,
            "circadian_disruption": circadian_disruption,
        },
    )


def detect_impossible_travel(points: Sequence[GeoPoint], limit_kmh: float) -> bool:
    """True if any consecutive leg implies a speed strictly above limit_kmh."""
    for start, end in zip(points, points[1:]):
        distance = great_circle_distance(
            start.latitude, start.longitude, end.latitude, end.longitude
        )
        if exceeds_speed(travel_speed_kmh(distance, start.timestamp, end.timestamp), limit_kmh):
            return True
    return False


def location_confidence(points: Sequence[GeoPoint], w: SpatialWeights) -> float:
    """Average of a log-scaled count bonus and an accuracy-tier bonus."""
    if len(points) < 2:
        return 0.0

    quantity_bonus = min(math.log(len(points)) / math.log(w.count_log_base), 1.0)

    avg_accuracy = sum(p.accuracy for p in points) / len(points)
    accuracy_bonus = w.fallback_accuracy_bonus
    for max_meters, bonus in w.accuracy_tiers:
        if avg_accuracy <= max_meters:
            accuracy_bonus = bonus
            break

    return (quantity_bonus + accuracy_bonus) / 2.0


def spatial_anomaly_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """
    Impossible travel between consecutive points, else geographic spread.

    Sequences with fewer than two points produce no component at all.
    """
    location_data = data.location_anomaly
    if location_data is None:
        return None

    points = location_data.location_sequence
    if len(points) < 2:
        logger.debug("Skipping spatial signal: %d location(s)", len(points))
        return None

    w = ctx.weights.spatial
    impossible_travel = detect_impossible_travel(points, w.impossible_travel_kmh)
    dispersion = geographic_dispersion(
        [(p.latitude, p.longitude) for p in points],
        normalizer=w.dispersion_normalizer,
    )

    if impossible_travel:
        score = w.weight * w.impossible_travel_multiplier
    else:
        score = w.weight * dispersion

    return ScoreComponent(
        algorithm=AlgorithmName.SPATIAL,
        score=score,
        confidence=_unit(location_confidence(points, w)),
        factors={
            "impossible_travel": impossible_travel,
            "geographic_dispersion": dispersion,
            "location_count": len(points),
        },
    )


def velocity_anomaly_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """Request-rate bursts relative to baseline."""
    velocity = data.velocity_anomaly
    if velocity is None or velocity.baseline_velocity == 0:
        return None

    w = ctx.weights.velocity
    ratio = velocity.current_velocity / velocity.baseline_velocity
    if not math.isfinite(ratio):
        logger.debug("Skipping velocity signal: ratio overflowed")
        return None
    intensity = burst_intensity(ratio)
    score = w.weight * intensity if ratio > w.burst_threshold else 0.0

    return ScoreComponent(
        algorithm=AlgorithmName.VELOCITY,
        score=score,
        confidence=_unit(logistic_complement(intensity)),
        factors={
            "velocity_ratio": ratio,
            "burst_intensity": intensity,
            "current_velocity": velocity.current_velocity,
            "baseline_velocity": velocity.baseline_velocity,
        },
    )


def device_similarity(
    current: DeviceFingerprint,
    historical: HistoricalDevice,
    ctx: SignalContext,
) -> float:
    """Weighted blend of user-agent, IP, platform and recency similarity."""
    w = ctx.weights.device
    factors = (
        string_similarity(current.user_agent, historical.user_agent),
        ip_similarity(current.ip_address, historical.ip_address, w.subnet_similarity),
        1.0 if current.platform == historical.platform else 0.0,
        recency_decay(historical.last_seen, ctx.reference_time, w.recency_decay_per_day),
    )
    return sum(f * weight for f, weight in zip(factors, w.similarity_weights))


def device_novelty(
    current: DeviceFingerprint,
    history: List[HistoricalDevice],
    ctx: SignalContext,
) -> float:
    """1 - best similarity to any known device; 1.0 with no history."""
    if not history:
        return 1.0
    best = max(device_similarity(current, h, ctx) for h in history)
    return _unit(1.0 - best)


def device_anomaly_algorithm(
    data: PatternData, ctx: SignalContext
) -> Optional[ScoreComponent]:
    """Novelty of the current device fingerprint against known devices."""
    device_data = data.device_anomaly
    if device_data is None or device_data.device_fingerprint is None:
        return None

    w = ctx.weights.device
    fingerprint = device_data.device_fingerprint
    history = device_data.historical_devices
    novelty = device_novelty(fingerprint, history, ctx)

    if novelty > w.new_device_novelty:
        score = w.weight * w.new_device_multiplier
    elif novelty > w.changed_device_novelty:
        score = w.weight * w.changed_device_multiplier
    else:
        score = 0.0

    return ScoreComponent(
        algorithm=AlgorithmName.DEVICE,
        score=score,
        confidence=novelty,
        factors={
            "device_novelty_score": novelty,
            "device_fingerprint": fingerprint.model_dump(),
            "historical_device_count": len(history),
        },
    )


SIGNAL_ALGORITHMS: Tuple[Tuple[AlgorithmName, SignalAlgorithm], ...] = (
    (AlgorithmName.DEVIATION, statistical_deviation_algorithm),
    (AlgorithmName.FREQUENCY, frequency_anomaly_algorithm),
    (AlgorithmName.TEMPORAL, temporal_anomaly_algorithm),
    (AlgorithmName.SPATIAL, spatial_anomaly_algorithm),
    (AlgorithmName.VELOCITY, velocity_anomaly_algorithm),
    (AlgorithmName.DEVICE, device_anomaly_algorithm),
)


def run_signals(data: PatternData, ctx: SignalContext) -> List[ScoreComponent]:
    """Run every registered algorithm in order and keep the ones that fired."""
    components: List[ScoreComponent] = []
    for name, algorithm in SIGNAL_ALGORITHMS:
        component = algorithm(data, ctx)
        if component is None:
            logger.debug("Signal %s produced no component", name.value)
            continue
        components.append(component)
    return components
