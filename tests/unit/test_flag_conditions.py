"""Tests for condition evaluation."""

import pytest

from flag_engine.core.feature_flags.conditions import evaluate_condition, resolve_attribute
from flag_engine.core.feature_flags.models import EvaluationContext, FlagCondition


@pytest.fixture
def ctx():
    return EvaluationContext(
        user_id="user-7",
        environment="staging",
        plugin_id="p1",
        plugin_category="emotion",
        system_version="2.1.0",
        custom_attributes={"tier": "gold", "seats": 12},
    )


class TestResolveAttribute:
    """Tests for attribute resolution."""

    def test_builtin_attributes(self, ctx):
        assert resolve_attribute(FlagCondition("user_id", "equals", "x"), ctx) == "user-7"
        assert resolve_attribute(FlagCondition("environment", "equals", "x"), ctx) == "staging"
        assert resolve_attribute(FlagCondition("plugin_category", "equals", "x"), ctx) == "emotion"
        assert resolve_attribute(FlagCondition("system_version", "equals", "x"), ctx) == "2.1.0"

    def test_custom_attribute(self, ctx):
        condition = FlagCondition("custom", "equals", "gold", attribute="tier")
        assert resolve_attribute(condition, ctx) == "gold"

    def test_custom_without_attribute(self, ctx):
        assert resolve_attribute(FlagCondition("custom", "equals", "gold"), ctx) is None


class TestOperators:
    """Tests for each operator."""

    def test_equals(self, ctx):
        assert evaluate_condition(FlagCondition("environment", "equals", "staging"), ctx)
        assert not evaluate_condition(FlagCondition("environment", "equals", "production"), ctx)

    def test_not_equals(self, ctx):
        assert evaluate_condition(FlagCondition("environment", "not_equals", "production"), ctx)

    def test_in_and_not_in(self, ctx):
        assert evaluate_condition(FlagCondition("user_id", "in", ["user-7", "user-8"]), ctx)
        assert not evaluate_condition(FlagCondition("user_id", "not_in", ["user-7"]), ctx)
        assert evaluate_condition(FlagCondition("user_id", "not_in", ("other",)), ctx)

    def test_in_requires_list(self, ctx):
        assert not evaluate_condition(FlagCondition("user_id", "in", "user-7"), ctx)
        assert not evaluate_condition(FlagCondition("user_id", "not_in", "nobody"), ctx)

    def test_numeric_comparisons(self, ctx):
        seats = {"attribute": "seats"}
        assert evaluate_condition(FlagCondition("custom", "greater_than", 10, **seats), ctx)
        assert not evaluate_condition(FlagCondition("custom", "greater_than", 12, **seats), ctx)
        assert evaluate_condition(FlagCondition("custom", "less_than", 20, **seats), ctx)

    def test_version_comparisons(self, ctx):
        assert evaluate_condition(FlagCondition("system_version", "greater_than", "2.0.0"), ctx)
        assert evaluate_condition(FlagCondition("system_version", "less_than", "2.10.0"), ctx)
        assert not evaluate_condition(FlagCondition("system_version", "greater_than", "2.1"), ctx)

    def test_incomparable_operands(self, ctx):
        assert not evaluate_condition(FlagCondition("environment", "greater_than", 3), ctx)
        assert not evaluate_condition(FlagCondition("environment", "less_than", 3), ctx)

    def test_missing_context_value(self):
        empty = EvaluationContext()
        assert not evaluate_condition(FlagCondition("system_version", "greater_than", "1.0.0"), empty)
        assert not evaluate_condition(FlagCondition("user_id", "contains", "u"), empty)

    def test_contains(self, ctx):
        assert evaluate_condition(FlagCondition("user_id", "contains", "user"), ctx)
        assert not evaluate_condition(FlagCondition("user_id", "contains", "admin"), ctx)
        assert not evaluate_condition(
            FlagCondition("custom", "contains", "1", attribute="seats"), ctx
        )

    def test_unknown_type_and_operator(self, ctx):
        assert not evaluate_condition(FlagCondition("region", "equals", "eu"), ctx)
        assert not evaluate_condition(FlagCondition("user_id", "matches", "user-7"), ctx)
