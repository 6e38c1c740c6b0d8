"""Evaluation metrics and history.

Passive observer of every evaluation. Counters are guarded per flag and are
loss-tolerant; history is a bounded FIFO per flag.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Set

from flag_engine.core.feature_flags.models import EvaluationResult
from flag_engine.core.feature_flags.rollout import ANONYMOUS_IDENTITY, rollout_identity

UNKNOWN_ENVIRONMENT = "unknown"


@dataclass
class FlagUsageMetrics:
    """Usage metrics for one flag, or aggregated over all flags."""

    total_evaluations: int = 0
    unique_users: int = 0
    enabled_count: int = 0
    disabled_count: int = 0
    evaluations_by_source: Dict[str, int] = field(default_factory=dict)
    evaluations_by_environment: Dict[str, int] = field(default_factory=dict)
    last_evaluated: str = ""
    average_evaluation_time: float = 0.0  # milliseconds

    @property
    def enabled_rate(self) -> float:
        if self.total_evaluations == 0:
            return 0.0
        return self.enabled_count / self.total_evaluations


class _FlagStats:
    def __init__(self, history_limit: int, identity_limit: int):
        self.lock = threading.Lock()
        self.metrics = FlagUsageMetrics()
        self.history: Deque[EvaluationResult] = deque(maxlen=history_limit)
        self.identities: Set[str] = set()
        self.identity_limit = identity_limit


class EvaluationCollector:
    """Aggregates evaluation counters and keeps a rolling history per flag."""

    def __init__(self, history_limit: int = 1000, identity_limit: int = 10000):
        self.history_limit = history_limit
        self.identity_limit = identity_limit
        self._stats: Dict[str, _FlagStats] = {}
        self._lock = threading.Lock()

    def track(self, flag_key: str) -> None:
        """Start (or restart) collecting for a flag."""
        with self._lock:
            stats = dict(self._stats)
            stats[flag_key] = _FlagStats(self.history_limit, self.identity_limit)
            self._stats = stats

    def discard(self, flag_key: str) -> None:
        with self._lock:
            stats = dict(self._stats)
            stats.pop(flag_key, None)
            self._stats = stats

    def is_tracked(self, flag_key: str) -> bool:
        return flag_key in self._stats

    def record(self, result: EvaluationResult, elapsed_ms: float) -> None:
        """Record one evaluation; ignored for flags that are not tracked."""
        stats = self._stats.get(result.flag_key)
        if stats is None:
            return

        environment = result.context.environment or UNKNOWN_ENVIRONMENT
        identity = rollout_identity(result.context)
        with stats.lock:
            metrics = stats.metrics
            metrics.total_evaluations += 1
            metrics.last_evaluated = result.evaluated_at
            source = result.source.value
            metrics.evaluations_by_source[source] = metrics.evaluations_by_source.get(source, 0) + 1
            metrics.evaluations_by_environment[environment] = (
                metrics.evaluations_by_environment.get(environment, 0) + 1
            )
            if result.value:
                metrics.enabled_count += 1
            else:
                metrics.disabled_count += 1
            # Incremental mean
            metrics.average_evaluation_time += (
                elapsed_ms - metrics.average_evaluation_time
            ) / metrics.total_evaluations

            # Capped set, so the count is a lower bound once the cap is hit
            if identity != ANONYMOUS_IDENTITY and len(stats.identities) < stats.identity_limit:
                stats.identities.add(identity)
                metrics.unique_users = len(stats.identities)

            stats.history.append(result)

    def get_metrics(self, flag_key: Optional[str] = None) -> FlagUsageMetrics:
        if flag_key is not None:
            stats = self._stats.get(flag_key)
            if stats is None:
                return FlagUsageMetrics()
            with stats.lock:
                return self._copy(stats.metrics)

        aggregated = FlagUsageMetrics()
        all_stats = list(self._stats.values())
        average_sum = 0.0
        for stats in all_stats:
            with stats.lock:
                metrics = stats.metrics
                aggregated.total_evaluations += metrics.total_evaluations
                aggregated.unique_users += metrics.unique_users
                aggregated.enabled_count += metrics.enabled_count
                aggregated.disabled_count += metrics.disabled_count
                for source, count in metrics.evaluations_by_source.items():
                    aggregated.evaluations_by_source[source] = (
                        aggregated.evaluations_by_source.get(source, 0) + count
                    )
                for environment, count in metrics.evaluations_by_environment.items():
                    aggregated.evaluations_by_environment[environment] = (
                        aggregated.evaluations_by_environment.get(environment, 0) + count
                    )
                if metrics.last_evaluated > aggregated.last_evaluated:
                    aggregated.last_evaluated = metrics.last_evaluated
                average_sum += metrics.average_evaluation_time
        if all_stats:
            aggregated.average_evaluation_time = average_sum / len(all_stats)
        return aggregated

    def get_history(self, flag_key: str, limit: int = 100) -> List[EvaluationResult]:
        """Most recent ``limit`` results, oldest first."""
        stats = self._stats.get(flag_key)
        if stats is None or limit <= 0:
            return []
        with stats.lock:
            history = list(stats.history)
        return history[-limit:]

    @staticmethod
    def _copy(metrics: FlagUsageMetrics) -> FlagUsageMetrics:
        return FlagUsageMetrics(
            total_evaluations=metrics.total_evaluations,
            unique_users=metrics.unique_users,
            enabled_count=metrics.enabled_count,
            disabled_count=metrics.disabled_count,
            evaluations_by_source=dict(metrics.evaluations_by_source),
            evaluations_by_environment=dict(metrics.evaluations_by_environment),
            last_evaluated=metrics.last_evaluated,
            average_evaluation_time=metrics.average_evaluation_time,
        )
