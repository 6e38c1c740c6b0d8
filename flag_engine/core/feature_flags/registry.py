"""Flag Registry.

Owns the canonical flag definitions. The backing dict is copy-on-write:
writers build a new dict under the lock and swap it in, readers work on
whichever snapshot they picked up.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from flag_engine.core.errors import FlagNotFoundError, FlagValidationError
from flag_engine.core.feature_flags.models import (
    MISSING,
    ConditionOperator,
    ConditionType,
    FeatureFlag,
    FlagCondition,
    FlagMetadata,
    FlagType,
    ValidationReport,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

# Key fragments that mark a flag as gating self-directed behaviour
SENSITIVE_KEY_MARKERS = ("autonomous", "self_modif", "self-modif")
SENSITIVE_ROLLOUT_THRESHOLD = 50

_CONDITION_TYPES = {member.value for member in ConditionType}
_CONDITION_OPERATORS = {member.value for member in ConditionOperator}
# Mirrors of the override stores; changed only through the override calls
_OVERRIDE_FIELDS = {"user_overrides", "plugin_overrides"}
_UPDATABLE_FIELDS = {f.name for f in dataclasses.fields(FeatureFlag)} - {"key"} - _OVERRIDE_FIELDS


def validate_flag(flag: FeatureFlag) -> ValidationReport:
    """Validate a flag definition.

    Errors block admission; warnings are advisory only.
    """
    report = ValidationReport()
    errors, warnings = report.errors, report.warnings

    if not flag.key:
        errors.append("Flag key is required")
    if not flag.name:
        errors.append("Flag name is required")
    if not flag.flag_type:
        errors.append("Flag type is required")
    elif not isinstance(flag.flag_type, FlagType):
        errors.append("Flag type must be boolean, string, number, or json")

    rollout = flag.rollout_percentage
    if isinstance(rollout, bool) or not isinstance(rollout, int):
        errors.append("Rollout percentage must be an integer")
    elif rollout < 0 or rollout > 100:
        errors.append("Rollout percentage must be between 0 and 100")

    for index, condition in enumerate(flag.conditions):
        if not isinstance(condition, FlagCondition):
            errors.append(f"Condition {index} is not a FlagCondition")
            continue
        if not condition.condition_type:
            errors.append("Condition type is required")
        elif condition.condition_type not in _CONDITION_TYPES:
            warnings.append(
                f"Condition {index} has unknown type '{condition.condition_type}' and will never match"
            )
        if not condition.operator:
            errors.append("Condition operator is required")
        elif condition.operator not in _CONDITION_OPERATORS:
            warnings.append(
                f"Condition {index} has unknown operator '{condition.operator}' and will never match"
            )
        if condition.value is MISSING:
            errors.append("Condition value is required")
        elif condition.operator in (ConditionOperator.IN, ConditionOperator.NOT_IN) and not isinstance(
            condition.value, (list, tuple)
        ):
            warnings.append(f"Condition {index} uses '{condition.operator}' with a non-list value")
        if condition.condition_type == ConditionType.CUSTOM and not condition.attribute:
            warnings.append(f"Condition {index} is custom but names no attribute")

    if isinstance(flag.flag_type, FlagType):
        if not flag.flag_type.matches(flag.default_value):
            warnings.append("Default value type does not match flag type")
        for environment, value in flag.environments.items():
            if not flag.flag_type.matches(value):
                warnings.append(f"Environment value for '{environment}' does not match flag type")

    if (
        flag.key
        and any(marker in flag.key for marker in SENSITIVE_KEY_MARKERS)
        and isinstance(rollout, int)
        and rollout > SENSITIVE_ROLLOUT_THRESHOLD
    ):
        warnings.append("High rollout percentage for potentially sensitive autonomous feature")

    return report


def _merge(flag: FeatureFlag, changes: Mapping[str, Any]) -> FeatureFlag:
    """Build the updated flag, stamping a new modification time."""
    if "key" in changes and changes["key"] != flag.key:
        raise FlagValidationError(["Flag key is immutable"], key=flag.key)
    managed = sorted(set(changes) & _OVERRIDE_FIELDS)
    if managed:
        raise FlagValidationError(
            [f"Flag field {name} is managed through override calls" for name in managed], key=flag.key
        )
    unknown = sorted(set(changes) - _UPDATABLE_FIELDS - {"key"})
    if unknown:
        raise FlagValidationError([f"Unknown flag field: {name}" for name in unknown], key=flag.key)

    updates = {name: value for name, value in changes.items() if name != "key"}
    metadata = dataclasses.replace(flag.metadata, last_modified=utc_now_iso())
    metadata_changes = updates.pop("metadata", None)
    if isinstance(metadata_changes, FlagMetadata):
        metadata = dataclasses.replace(metadata_changes, last_modified=utc_now_iso())
    elif metadata_changes:
        metadata = dataclasses.replace(metadata, **metadata_changes)
    return dataclasses.replace(flag, metadata=metadata, **updates)


class FlagRegistry:
    """Canonical set of flag definitions."""

    def __init__(self) -> None:
        self._flags: Dict[str, FeatureFlag] = {}
        self._lock = threading.RLock()

    def register(self, flag: FeatureFlag) -> ValidationReport:
        """Validate and insert a flag, replacing any flag with the same key."""
        report = validate_flag(flag)
        if not report.valid:
            raise FlagValidationError(report.errors, report.warnings, key=flag.key)
        with self._lock:
            flags = dict(self._flags)
            flags[flag.key] = flag
            self._flags = flags
        return report

    def update(self, key: str, changes: Mapping[str, Any]) -> FeatureFlag:
        """Merge ``changes`` into a flag; the old flag survives any failure."""
        with self._lock:
            current = self._flags.get(key)
            if current is None:
                raise FlagNotFoundError(key)
            try:
                updated = _merge(current, changes)
            except TypeError as e:
                raise FlagValidationError([str(e)], key=key) from e
            report = validate_flag(updated)
            if not report.valid:
                raise FlagValidationError(report.errors, report.warnings, key=key)
            flags = dict(self._flags)
            flags[key] = updated
            self._flags = flags
            return updated

    def replace(
        self, key: str, transform: Callable[[FeatureFlag], FeatureFlag]
    ) -> Optional[FeatureFlag]:
        """Atomically swap a flag for ``transform(flag)``; no-op if absent."""
        with self._lock:
            current = self._flags.get(key)
            if current is None:
                return None
            updated = transform(current)
            flags = dict(self._flags)
            flags[key] = updated
            self._flags = flags
            return updated

    def unregister(self, key: str) -> Optional[FeatureFlag]:
        with self._lock:
            if key not in self._flags:
                return None
            flags = dict(self._flags)
            removed = flags.pop(key)
            self._flags = flags
            return removed

    def get(self, key: str) -> Optional[FeatureFlag]:
        return self._flags.get(key)

    def get_all(self) -> List[FeatureFlag]:
        return list(self._flags.values())

    def keys(self) -> List[str]:
        return list(self._flags.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._flags

    def __len__(self) -> int:
        return len(self._flags)
