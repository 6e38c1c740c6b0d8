"""Feature Flag Engine.

Provides runtime feature toggling with:
- Typed flags with environment-specific values
- User and plugin overrides
- Targeting conditions and percentage rollouts
- Usage metrics, evaluation history and change events
- Configuration export/import
"""

from flag_engine.core.feature_flags.decorators import feature_flag
from flag_engine.core.feature_flags.events import (
    FlagChangeEvent,
    FlagEventBus,
    FlagEventType,
    FlagListener,
    LoggingFlagListener,
)
from flag_engine.core.feature_flags.manager import FeatureFlagManager, get_feature_flag_manager
from flag_engine.core.feature_flags.metrics import FlagUsageMetrics
from flag_engine.core.feature_flags.models import (
    ConditionOperator,
    ConditionType,
    EvaluationContext,
    EvaluationResult,
    EvaluationSource,
    FeatureFlag,
    FlagCondition,
    FlagMetadata,
    FlagType,
    ValidationReport,
)
from flag_engine.core.feature_flags.store import FlagStore, InMemoryFlagStore, JsonFileFlagStore

__all__ = [
    "ConditionOperator",
    "ConditionType",
    "EvaluationContext",
    "EvaluationResult",
    "EvaluationSource",
    "FeatureFlag",
    "FeatureFlagManager",
    "FlagChangeEvent",
    "FlagCondition",
    "FlagEventBus",
    "FlagEventType",
    "FlagListener",
    "FlagMetadata",
    "FlagStore",
    "FlagType",
    "FlagUsageMetrics",
    "InMemoryFlagStore",
    "JsonFileFlagStore",
    "LoggingFlagListener",
    "ValidationReport",
    "feature_flag",
    "get_feature_flag_manager",
]
