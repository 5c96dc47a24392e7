"""
Cache boundary for anomaly scoring.

The engine never needs a cache. Callers that want memoization derive a stable
key from the canonical serialization of the input bundle and plug any store
implementing ScoreCache into CachedScoreEngine.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from anomaly_scoring.core.config import Config

from .engine import AnomalyScoreEngine, PatternInput
from .schema import AnomalyScoreResult, PatternData, parse_pattern_data

logger = logging.getLogger(__name__)

# Config sections that change the score for a given input
_SCORING_SECTIONS = {"algorithm_version", "weights", "poisson", "ensemble", "gate", "severity"}


def canonical_payload(data: PatternInput, settings: Optional[Config] = None) -> Dict[str, Any]:
    """
    JSON-ready canonical form of a bundle.

    The bundle is validated first, so equivalent inputs ("3" vs 3, naive vs
    UTC timestamps) share one canonical form.
    """
    pattern = parse_pattern_data(data)
    payload: Dict[str, Any] = {"pattern": pattern.model_dump(mode="json")}
    if settings is not None:
        payload["settings"] = settings.model_dump(mode="json", include=_SCORING_SECTIONS)
    return payload


def cache_key(data: PatternInput, settings: Optional[Config] = None, length: int = 17) -> str:
    """
    Truncated SHA-256 digest of the canonical serialization.

    Identical input (and scoring settings, when given) always yields the same key.
    """
    serialized = json.dumps(
        canonical_payload(data, settings), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:length]


def is_cacheable(pattern: PatternData) -> bool:
    """Device recency without a reference_time depends on the clock."""
    return pattern.device_anomaly is None or pattern.reference_time is not None


class ScoreCache(Protocol):
    """Protocol for an external result store."""

    def get(self, key: str) -> Optional[AnomalyScoreResult]: ...

    def set(self, key: str, result: AnomalyScoreResult) -> None: ...


class InMemoryScoreCache:
    """
    Bounded, thread-safe LRU store.

    Results are copied on the way in and out so callers cannot mutate cached
    entries.
    """

    def __init__(self, maxsize: int = 1024):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self.hits = 0
        self.misses = 0
        self._entries: "OrderedDict[str, AnomalyScoreResult]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[AnomalyScoreResult]:
        with self._lock:
            result = self._entries.get(key)
            if result is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return result.model_copy(deep=True)

    def set(self, key: str, result: AnomalyScoreResult) -> None:
        with self._lock:
            self._entries[key] = result.model_copy(deep=True)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass(frozen=True)
class CachedScoreEngine:
    """
    Fetch-or-compute wrapper around AnomalyScoreEngine.

    Bundles whose score depends on the wall clock bypass the cache.
    """

    engine: AnomalyScoreEngine
    cache: ScoreCache

    def evaluate(self, data: PatternInput) -> AnomalyScoreResult:
        pattern = parse_pattern_data(data)
        if not is_cacheable(pattern):
            logger.debug("Bypassing cache: device signal without reference_time")
            return self.engine.evaluate(pattern)

        settings = self.engine.settings
        key = cache_key(pattern, settings, length=settings.cache_key_length)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        result = self.engine.evaluate(pattern)
        self.cache.set(key, result)
        return result

    def calculate(self, data: PatternInput) -> float:
        return self.evaluate(data).total_score
