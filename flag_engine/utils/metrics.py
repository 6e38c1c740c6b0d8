"""Prometheus metrics registration for the feature flag engine.

All metric objects are defined at import time so that every manager in the
process reports into the same series.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

feature_flag_evaluations_total = Counter(
    "feature_flag_evaluations_total",
    "Number of feature flag evaluations",
    ["source"],
)
feature_flag_evaluation_duration_seconds = Histogram(
    "feature_flag_evaluation_duration_seconds",
    "Feature flag evaluation duration",
    buckets=[0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01],
)
feature_flag_evaluation_errors_total = Counter(
    "feature_flag_evaluation_errors_total",
    "Evaluations that fell back to the default value after an internal error",
)
feature_flag_mutations_total = Counter(
    "feature_flag_mutations_total",
    "Committed flag and override mutations",
    ["operation"],
)
feature_flag_validation_failures_total = Counter(
    "feature_flag_validation_failures_total",
    "Flag definitions rejected by validation",
)
feature_flag_registered_flags = Gauge(
    "feature_flag_registered_flags",
    "Number of flags currently registered",
)
feature_flag_events_dropped_total = Counter(
    "feature_flag_events_dropped_total",
    "Change events dropped because the event queue was full",
)
