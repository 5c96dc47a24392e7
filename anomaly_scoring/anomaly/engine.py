"""
Behavioral anomaly scoring engine.

Validates a pattern bundle, runs the six signal algorithms, combines the fired
components into one score, applies the business-rule gate, and assembles the
result. The engine holds no mutable state: one instance can serve any number
of threads concurrently.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from anomaly_scoring.core.config import Config, config as default_config
from anomaly_scoring.core.exceptions import PatternValidationError

from .schema import AnomalyScoreResult, PatternData, parse_pattern_data
from .scoring import (
    SeverityMapper,
    apply_score_gate,
    combine_components,
    overall_confidence,
)
from .signals import SignalContext, run_signals

logger = logging.getLogger(__name__)

PatternInput = Union[PatternData, Mapping[str, Any]]


@dataclass(frozen=True)
class AnomalyScoreEngine:
    """
    Stateless anomaly scoring engine.

    Notes:
    - Configuration is injected; the module-level config is only a default.
    - Output is a deterministic function of the input bundle. The one
      exception is device recency when the bundle carries no reference_time.
    """

    settings: Config = field(default_factory=lambda: default_config)

    def evaluate(self, data: PatternInput) -> AnomalyScoreResult:
        """
        Score one pattern bundle.

        Raises:
            PatternValidationError: if the bundle has malformed field types
        """
        started = time.perf_counter()
        try:
            pattern = parse_pattern_data(data)
        except PatternValidationError as exc:
            logger.warning("Rejected pattern data: %s", exc)
            raise

        ctx = SignalContext(
            weights=self.settings.weights,
            poisson=self.settings.poisson,
            reference_time=pattern.reference_time or datetime.now(timezone.utc),
        )
        components = run_signals(pattern, ctx)

        raw_score = combine_components(components, self.settings.ensemble)
        total_score = apply_score_gate(raw_score, self.settings.gate)

        result = AnomalyScoreResult(
            total_score=total_score,
            raw_score=raw_score,
            components=components,
            confidence=overall_confidence(components),
            severity=SeverityMapper(self.settings.severity).severity(total_score),
            algorithm_version=self.settings.algorithm_version,
        )

        logger.debug(
            "Scored pattern: total=%.3f raw=%.3f components=%s in %.3fms",
            result.total_score,
            result.raw_score,
            [c.algorithm.value for c in components],
            (time.perf_counter() - started) * 1000,
        )
        return result

    def calculate(self, data: PatternInput) -> float:
        """Score one bundle and return only the gated total score."""
        return self.evaluate(data).total_score

    def evaluate_many(
        self, bundles: Iterable[PatternInput], max_workers: Optional[int] = None
    ) -> List[AnomalyScoreResult]:
        """
        Score independent bundles concurrently, preserving input order.

        The first malformed bundle's PatternValidationError propagates.
        """
        bundles = list(bundles)
        if not bundles:
            return []

        workers = max_workers or self.settings.batch_workers
        if workers <= 1 or len(bundles) == 1:
            return [self.evaluate(b) for b in bundles]

        with ThreadPoolExecutor(max_workers=min(workers, len(bundles))) as executor:
            return list(executor.map(self.evaluate, bundles))


def score_anomaly(
    data: PatternInput, settings: Optional[Config] = None
) -> AnomalyScoreResult:
    """Convenience wrapper: score one bundle with the given (or default) config."""
    return AnomalyScoreEngine(settings or default_config).evaluate(data)
