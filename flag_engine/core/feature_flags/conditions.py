"""Condition evaluation.

Pure functions of (condition, context); unknown attribute types and operators
evaluate to False.
"""

from __future__ import annotations

from typing import Any, Optional, Tuple

from flag_engine.core.feature_flags.models import (
    ConditionOperator,
    ConditionType,
    EvaluationContext,
    FlagCondition,
)

_UNRESOLVED = object()


def resolve_attribute(condition: FlagCondition, context: EvaluationContext) -> Any:
    """Look up the context value a condition refers to."""
    condition_type = condition.condition_type
    if condition_type == ConditionType.USER_ID:
        return context.user_id
    if condition_type == ConditionType.ENVIRONMENT:
        return context.environment
    if condition_type == ConditionType.PLUGIN_CATEGORY:
        return context.plugin_category
    if condition_type == ConditionType.SYSTEM_VERSION:
        return context.system_version
    if condition_type == ConditionType.CUSTOM:
        if not condition.attribute:
            return None
        return context.custom_attributes.get(condition.attribute)
    return _UNRESOLVED


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_version(value: Any) -> Optional[Tuple[int, ...]]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return tuple(int(part) for part in value.split("."))
    except ValueError:
        return None


def _compare(left: Any, right: Any) -> Optional[int]:
    """Order two operands numerically, then as dotted versions."""
    if left is None or right is None:
        return None
    if isinstance(left, str) and isinstance(right, str) and ("." in left or "." in right):
        left_version, right_version = _as_version(left), _as_version(right)
        if left_version is not None and right_version is not None:
            # Pad so "2.0" and "2.0.0" compare equal
            width = max(len(left_version), len(right_version))
            left_version += (0,) * (width - len(left_version))
            right_version += (0,) * (width - len(right_version))
            return (left_version > right_version) - (left_version < right_version)
    left_number, right_number = _as_number(left), _as_number(right)
    if left_number is None or right_number is None:
        return None
    return (left_number > right_number) - (left_number < right_number)


def evaluate_condition(condition: FlagCondition, context: EvaluationContext) -> bool:
    """Evaluate one condition against a context."""
    context_value = resolve_attribute(condition, context)
    if context_value is _UNRESOLVED:
        return False

    operator = condition.operator
    literal = condition.value

    if operator == ConditionOperator.EQUALS:
        return context_value == literal
    if operator == ConditionOperator.NOT_EQUALS:
        return context_value != literal
    if operator == ConditionOperator.IN:
        return isinstance(literal, (list, tuple)) and context_value in literal
    if operator == ConditionOperator.NOT_IN:
        return isinstance(literal, (list, tuple)) and context_value not in literal
    if operator == ConditionOperator.GREATER_THAN:
        return _compare(context_value, literal) == 1
    if operator == ConditionOperator.LESS_THAN:
        return _compare(context_value, literal) == -1
    if operator == ConditionOperator.CONTAINS:
        return (
            isinstance(context_value, str)
            and isinstance(literal, str)
            and literal in context_value
        )
    return False
