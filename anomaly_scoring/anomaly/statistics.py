"""
Statistical primitives used by the signal algorithms.

All functions are pure and deterministic. Degenerate inputs (zero
denominators, empty sequences) resolve to a defined fallback instead of
NaN/Inf or an exception.
"""

from __future__ import annotations

import math
from datetime import datetime
from functools import lru_cache
from ipaddress import AddressValueError, IPv4Address
from typing import Iterable, Optional, Sequence, Tuple

EARTH_RADIUS_KM = 6371.0
SECONDS_PER_DAY = 86400.0

# Abramowitz & Stegun 26.2.17 coefficients
_AS_P = 0.2316419
_AS_B = (0.31938153, -0.356563782, 1.781477937, -1.821255978, 1.330274429)
_INV_SQRT_2PI = 0.39894228


def normal_cdf(z: float) -> float:
    """
    Standard normal CDF via the Abramowitz-Stegun rational approximation.

    The approximation is evaluated on |z|; for negative z the lower tail
    1 - Phi(|z|) is returned. Absolute error is below 7.5e-8.
    """
    x = abs(z)
    t = 1.0 / (1.0 + _AS_P * x)
    d = sum(b * t ** (i + 1) for i, b in enumerate(_AS_B))
    upper = min(1.0, 1.0 - _INV_SQRT_2PI * math.exp(-0.5 * x * x) * d)
    if z < 0:
        return max(0.0, 1.0 - upper)
    return upper


@lru_cache(maxsize=256)
def factorial(n: int) -> int:
    """Memoized factorial. Callers bound n before converting to float."""
    if n < 0:
        raise ValueError("factorial is undefined for negative integers")
    if n < 2:
        return 1
    return n * factorial(n - 1)


def poisson_probability(
    observed: int,
    expected: float,
    gaussian_cutover: float = 30.0,
    exact_limit: int = 170,
) -> float:
    """
    Probability of `observed` events when `expected` are expected.

    Strategy:
    - expected > gaussian_cutover: normal approximation, lower tail at -|z|
    - observed <= exact_limit: exact pmf e^-l * l^k / k! with memoized k!
    - otherwise: pmf in log space via lgamma (k! overflows a float past 170)
    """
    if expected <= 0:
        return 0.0

    if expected > gaussian_cutover:
        z = (observed - expected) / math.sqrt(expected)
        return normal_cdf(-abs(z))

    if observed <= exact_limit:
        return math.exp(-expected) * (expected ** observed) / factorial(observed)

    log_pmf = -expected + observed * math.log(expected) - math.lgamma(observed + 1)
    return math.exp(log_pmf)


def great_circle_distance(
    lat1: float, lon1: float, lat2: float, lon2: float
) -> float:
    """Haversine distance in kilometers."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push a a hair past 1.0 for antipodal points
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def travel_speed_kmh(distance_km: float, start: datetime, end: datetime) -> float:
    """
    Implied speed between two timestamped points.

    Zero elapsed time yields +inf for any movement and 0.0 for none.
    """
    hours = abs((end - start).total_seconds()) / 3600.0
    if hours == 0:
        return math.inf if distance_km > 0 else 0.0
    return distance_km / hours


def exceeds_speed(speed_kmh: float, limit_kmh: float) -> bool:
    """Strict comparison: a speed exactly at the limit is still possible."""
    return speed_kmh > limit_kmh


def geographic_centroid(points: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    """
    Planar mean of (lat, lon) pairs.

    Approximation: ignores spherical geometry, so it is wrong near the
    antimeridian and the poles. Acceptable at city/country scale.
    """
    if not points:
        return 0.0, 0.0
    lat = sum(p[0] for p in points) / len(points)
    lon = sum(p[1] for p in points) / len(points)
    return lat, lon


def variance(values: Iterable[float]) -> float:
    """Population variance; 0.0 for an empty input."""
    values = list(values)
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def geographic_dispersion(
    points: Sequence[Tuple[float, float]], normalizer: float = 10_000.0
) -> float:
    """
    Variance of point-to-centroid distances, normalized into [0, 1].
    """
    if len(points) < 2:
        return 0.0
    c_lat, c_lon = geographic_centroid(points)
    distances = [great_circle_distance(c_lat, c_lon, lat, lon) for lat, lon in points]
    return min(variance(distances) / normalizer, 1.0)


def string_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Jaccard overlap of the two strings' character sets.

    Identical strings (including two None) score 1.0; None versus a string
    scores 0.0.
    """
    if a == b:
        return 1.0
    if a is None or b is None:
        return 0.0
    chars_a, chars_b = set(a), set(b)
    union = chars_a | chars_b
    if not union:
        return 0.0
    return len(chars_a & chars_b) / len(union)


def ip_similarity(a: Optional[str], b: Optional[str], subnet_score: float = 0.8) -> float:
    """
    1.0 for identical addresses, subnet_score for the same IPv4 /24, else 0.0.

    Anything that does not parse as an IPv4 address only matches exactly.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    try:
        addr_a, addr_b = IPv4Address(a), IPv4Address(b)
    except AddressValueError:
        return 0.0
    if addr_a.packed[:3] == addr_b.packed[:3]:
        return subnet_score
    return 0.0


def recency_decay(
    last_seen: Optional[datetime], reference: datetime, rate_per_day: float = 0.1
) -> float:
    """
    Exponential decay e^(-rate * days since last_seen).

    Unknown last_seen decays fully (0.0); future timestamps count as now.
    """
    if last_seen is None:
        return 0.0
    days = max((reference - last_seen).total_seconds() / SECONDS_PER_DAY, 0.0)
    return math.exp(-rate_per_day * days)


def burst_intensity(ratio: float) -> float:
    """Log-scaled burst measure of a current/baseline rate ratio."""
    if ratio > 10.0:
        return 3.0 + math.log10(ratio)
    if ratio > 5.0:
        return 2.0 + math.log(ratio)
    if ratio > 2.0:
        return 1.0 + (ratio - 2.0) / 3.0
    return 0.0


def logistic_complement(x: float) -> float:
    """1 - sigmoid(x), computed without overflow for large |x|."""
    if x >= 0:
        e = math.exp(-x)
        return 1.0 - 1.0 / (1.0 + e)
    e = math.exp(x)
    return 1.0 - e / (1.0 + e)
