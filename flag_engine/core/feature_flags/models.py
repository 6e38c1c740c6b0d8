"""Feature Flag Data Model.

Provides the value types shared by every part of the engine:
- Flag definitions and their conditions
- Evaluation context
- Evaluation results and validation reports
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

FlagValue = Union[bool, str, int, float, Dict[str, Any], List[Any]]


class _Missing:
    """Marker for a condition literal that was never supplied."""

    _instance: Optional["_Missing"] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FlagType(str, Enum):
    """Kind of value a flag carries; tags the active value variant."""

    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    JSON = "json"

    def matches(self, value: Any) -> bool:
        """Check whether ``value`` belongs to this variant."""
        if self is FlagType.BOOLEAN:
            return isinstance(value, bool)
        if self is FlagType.STRING:
            return isinstance(value, str)
        if self is FlagType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        return isinstance(value, (dict, list))

    def off_value(self) -> FlagValue:
        """Value observed when the flag is switched off."""
        if self is FlagType.BOOLEAN:
            return False
        if self is FlagType.STRING:
            return ""
        if self is FlagType.NUMBER:
            return 0
        return {}

    @classmethod
    def parse(cls, value: Any) -> Union["FlagType", Any]:
        """Return the matching member, or ``value`` unchanged if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return value


class EvaluationSource(str, Enum):
    """Precedence stage that produced an evaluation's value."""

    DEFAULT = "default"
    ENVIRONMENT = "environment"
    USER_OVERRIDE = "user_override"
    PLUGIN_OVERRIDE = "plugin_override"
    CONDITION = "condition"
    ROLLOUT = "rollout"


class ConditionType(str, Enum):
    USER_ID = "user_id"
    ENVIRONMENT = "environment"
    PLUGIN_CATEGORY = "plugin_category"
    SYSTEM_VERSION = "system_version"
    CUSTOM = "custom"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    IN = "in"
    NOT_IN = "not_in"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


@dataclass(frozen=True)
class FlagCondition:
    """A single rule comparing a context attribute with a literal."""

    condition_type: str
    operator: str
    value: Any = MISSING
    description: str = ""
    attribute: Optional[str] = None  # custom attribute name

    def __post_init__(self) -> None:
        # Store enum members as their plain string values
        for name in ("condition_type", "operator"):
            raw = getattr(self, name)
            if isinstance(raw, Enum):
                object.__setattr__(self, name, raw.value)
        # List literals are stored as tuples
        if isinstance(self.value, list):
            object.__setattr__(self, "value", tuple(self.value))


@dataclass(frozen=True)
class FlagMetadata:
    """Informational metadata; never consulted during evaluation."""

    category: str = ""
    tags: Tuple[str, ...] = ()
    owner: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    last_modified: str = field(default_factory=utc_now_iso)
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))


@dataclass(frozen=True)
class FeatureFlag:
    """Feature flag definition.

    Instances are never mutated once registered; changes go through
    ``dataclasses.replace`` and the new value is swapped into the registry.
    """

    key: str
    name: str
    flag_type: Union[FlagType, str] = FlagType.BOOLEAN
    default_value: Any = False
    description: str = ""
    enabled: bool = True
    environments: Mapping[str, Any] = field(default_factory=dict)
    user_overrides: Mapping[str, Any] = field(default_factory=dict)
    plugin_overrides: Mapping[str, Any] = field(default_factory=dict)
    rollout_percentage: int = 100
    conditions: Tuple[FlagCondition, ...] = ()
    metadata: FlagMetadata = field(default_factory=FlagMetadata)

    def __post_init__(self) -> None:
        object.__setattr__(self, "flag_type", FlagType.parse(self.flag_type))
        object.__setattr__(self, "environments", dict(self.environments))
        object.__setattr__(self, "user_overrides", dict(self.user_overrides))
        object.__setattr__(self, "plugin_overrides", dict(self.plugin_overrides))
        object.__setattr__(self, "conditions", tuple(self.conditions))

    @property
    def off_value(self) -> Any:
        if isinstance(self.flag_type, FlagType):
            return self.flag_type.off_value()
        return False


@dataclass(frozen=True)
class EvaluationContext:
    """Ambient facts a single evaluation is performed against."""

    user_id: Optional[str] = None
    environment: Optional[str] = None
    plugin_id: Optional[str] = None
    plugin_category: Optional[str] = None
    system_version: Optional[str] = None
    custom_attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "custom_attributes", dict(self.custom_attributes))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "environment": self.environment,
            "plugin_id": self.plugin_id,
            "plugin_category": self.plugin_category,
            "system_version": self.system_version,
            "custom_attributes": dict(self.custom_attributes),
        }


@dataclass
class EvaluationResult:
    """Result of one flag evaluation."""

    flag_key: str
    value: Any
    reason: str
    source: EvaluationSource
    context: EvaluationContext
    evaluated_at: str = field(default_factory=utc_now_iso)
    conditions_evaluated: int = 0
    rollout_bucket: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return bool(self.value)

    def to_dict(self) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "evaluated_at": self.evaluated_at,
            "context": self.context.to_dict(),
            "conditions_evaluated": self.conditions_evaluated,
        }
        if self.rollout_bucket is not None:
            metadata["rollout_bucket"] = self.rollout_bucket
        return {
            "flag": self.flag_key,
            "value": self.value,
            "reason": self.reason,
            "source": self.source.value,
            "metadata": metadata,
        }


@dataclass
class ValidationReport:
    """Outcome of validating a flag definition."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors
