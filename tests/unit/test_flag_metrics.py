"""Tests for usage metrics and evaluation history."""

from flag_engine.core.config import Settings
from flag_engine.core.feature_flags.manager import FeatureFlagManager
from flag_engine.core.feature_flags.metrics import EvaluationCollector
from flag_engine.core.feature_flags.models import (
    EvaluationContext,
    EvaluationResult,
    EvaluationSource,
)


def _result(key="flag.a", value=True, source=EvaluationSource.DEFAULT, **ctx):
    return EvaluationResult(
        flag_key=key,
        value=value,
        reason="r",
        source=source,
        context=EvaluationContext(**ctx),
    )


class TestEvaluationCollector:
    """Tests for EvaluationCollector."""

    def test_untracked_flag_is_ignored(self):
        collector = EvaluationCollector()
        collector.record(_result(), 1.0)
        assert collector.get_metrics("flag.a").total_evaluations == 0
        assert collector.get_history("flag.a") == []

    def test_counters(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        collector.record(_result(value=True, user_id="u1", environment="production"), 2.0)
        collector.record(_result(value=False, user_id="u2"), 4.0)
        collector.record(
            _result(value=False, source=EvaluationSource.ROLLOUT, user_id="u1", environment="production"),
            6.0,
        )
        metrics = collector.get_metrics("flag.a")
        assert metrics.total_evaluations == 3
        assert metrics.enabled_count == 1
        assert metrics.disabled_count == 2
        assert metrics.unique_users == 2
        assert metrics.evaluations_by_source == {"default": 2, "rollout": 1}
        assert metrics.evaluations_by_environment == {"production": 2, "unknown": 1}
        assert metrics.average_evaluation_time == 4.0
        assert metrics.enabled_rate == 1 / 3
        assert metrics.last_evaluated

    def test_anonymous_not_counted_as_user(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        collector.record(_result(), 1.0)
        assert collector.get_metrics("flag.a").unique_users == 0

    def test_identity_cap(self):
        collector = EvaluationCollector(identity_limit=3)
        collector.track("flag.a")
        for i in range(10):
            collector.record(_result(user_id=f"u{i}"), 1.0)
        assert collector.get_metrics("flag.a").unique_users == 3

    def test_history_is_bounded_and_chronological(self):
        collector = EvaluationCollector(history_limit=1000)
        collector.track("flag.a")
        for i in range(1500):
            collector.record(_result(user_id=f"u{i}"), 1.0)
        history = collector.get_history("flag.a", limit=2000)
        assert len(history) == 1000
        assert history[0].context.user_id == "u500"
        assert history[-1].context.user_id == "u1499"

    def test_history_limit(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        for i in range(10):
            collector.record(_result(user_id=f"u{i}"), 1.0)
        assert [r.context.user_id for r in collector.get_history("flag.a", limit=3)] == ["u7", "u8", "u9"]
        assert collector.get_history("flag.a", limit=0) == []

    def test_aggregate(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        collector.track("flag.b")
        collector.record(_result("flag.a", user_id="u1"), 2.0)
        collector.record(_result("flag.b", value=False, environment="staging"), 4.0)
        metrics = collector.get_metrics()
        assert metrics.total_evaluations == 2
        assert metrics.enabled_count == 1
        assert metrics.disabled_count == 1
        assert metrics.evaluations_by_environment == {"unknown": 1, "staging": 1}
        assert metrics.average_evaluation_time == 3.0

    def test_returned_metrics_are_copies(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        collector.record(_result(), 1.0)
        metrics = collector.get_metrics("flag.a")
        metrics.evaluations_by_source["default"] = 99
        assert collector.get_metrics("flag.a").evaluations_by_source == {"default": 1}

    def test_discard(self):
        collector = EvaluationCollector()
        collector.track("flag.a")
        collector.record(_result(), 1.0)
        collector.discard("flag.a")
        assert not collector.is_tracked("flag.a")
        assert collector.get_history("flag.a") == []


class TestManagerMetrics:
    """Tests for metrics collected through the manager."""

    def test_evaluations_recorded(self, manager, make_flag):
        manager.register_flag(make_flag())
        for i in range(5):
            manager.evaluate("test.flag", EvaluationContext(user_id=f"u{i}", environment="staging"))
        metrics = manager.get_usage_metrics("test.flag")
        assert metrics.total_evaluations == 5
        assert metrics.unique_users == 5
        assert metrics.evaluations_by_environment == {"staging": 5}
        assert len(manager.get_evaluation_history("test.flag")) == 5

    def test_unknown_flag_not_recorded(self, manager):
        manager.evaluate("missing")
        assert manager.get_usage_metrics("missing").total_evaluations == 0
        assert manager.get_usage_metrics().total_evaluations == 0

    def test_history_cap_from_settings(self, make_flag):
        manager = FeatureFlagManager(settings=Settings(_env_file=None, HISTORY_LIMIT=10))
        manager.register_flag(make_flag())
        for i in range(25):
            manager.evaluate("test.flag", EvaluationContext(user_id=f"u{i}"))
        history = manager.get_evaluation_history("test.flag", limit=100)
        assert [r.context.user_id for r in history] == [f"u{i}" for i in range(15, 25)]
        manager.close()
