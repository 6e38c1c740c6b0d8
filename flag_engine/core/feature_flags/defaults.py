"""Built-in platform feature flags."""

from __future__ import annotations

from typing import List

from flag_engine.core.feature_flags.models import (
    ConditionOperator,
    ConditionType,
    FeatureFlag,
    FlagCondition,
    FlagMetadata,
    FlagType,
)


def _plugin_category(category: str, label: str) -> FlagCondition:
    return FlagCondition(
        condition_type=ConditionType.PLUGIN_CATEGORY,
        operator=ConditionOperator.EQUALS,
        value=category,
        description=f"Only enable for {label} plugins",
    )


def build_default_flags() -> List[FeatureFlag]:
    """Fresh copies of the platform's default flags."""
    return [
        FeatureFlag(
            key="plugins.enabled",
            name="Plugin System Enabled",
            description="Enable or disable the entire plugin system",
            flag_type=FlagType.BOOLEAN,
            default_value=True,
            environments={"development": True, "staging": True, "production": True},
            metadata=FlagMetadata(category="core", tags=("plugins", "system"), owner="platform-team"),
        ),
        FeatureFlag(
            key="bundles.enabled",
            name="Bundle System Enabled",
            description="Enable or disable the bundle management system",
            flag_type=FlagType.BOOLEAN,
            default_value=True,
            environments={"development": True, "staging": True, "production": True},
            metadata=FlagMetadata(category="core", tags=("bundles", "system"), owner="platform-team"),
        ),
        FeatureFlag(
            key="consciousness.advanced_introspection",
            name="Advanced Consciousness Introspection",
            description="Enable advanced self-reflection and introspection capabilities",
            flag_type=FlagType.BOOLEAN,
            default_value=False,
            environments={"development": True, "staging": True, "production": False},
            rollout_percentage=25,
            conditions=(_plugin_category("consciousness", "consciousness"),),
            metadata=FlagMetadata(
                category="consciousness",
                tags=("consciousness", "introspection", "experimental"),
                owner="consciousness-team",
            ),
        ),
        FeatureFlag(
            key="emotions.empathy_simulation",
            name="Empathy Simulation",
            description="Enable empathetic response simulation in emotional processing",
            flag_type=FlagType.BOOLEAN,
            default_value=False,
            environments={"development": True, "staging": False, "production": False},
            rollout_percentage=10,
            conditions=(_plugin_category("emotion", "emotion"),),
            metadata=FlagMetadata(
                category="emotions",
                tags=("emotions", "empathy", "experimental"),
                owner="emotion-team",
            ),
        ),
        FeatureFlag(
            key="memory.enhanced_recall",
            name="Enhanced Memory Recall",
            description="Enable enhanced memory recall algorithms",
            flag_type=FlagType.BOOLEAN,
            default_value=True,
            environments={"development": True, "staging": True, "production": True},
            metadata=FlagMetadata(
                category="memory", tags=("memory", "recall", "performance"), owner="memory-team"
            ),
        ),
        FeatureFlag(
            key="goals.autonomous_planning",
            name="Autonomous Goal Planning",
            description="Enable autonomous goal creation and planning capabilities",
            flag_type=FlagType.BOOLEAN,
            default_value=False,
            environments={"development": True, "staging": False, "production": False},
            rollout_percentage=5,
            conditions=(
                _plugin_category("goal", "goal"),
                FlagCondition(
                    condition_type=ConditionType.SYSTEM_VERSION,
                    operator=ConditionOperator.GREATER_THAN,
                    value="2.0.0",
                    description="Requires system version 2.0.0 or higher",
                ),
            ),
            metadata=FlagMetadata(
                category="goals",
                tags=("goals", "planning", "autonomous", "experimental"),
                owner="goals-team",
            ),
        ),
        FeatureFlag(
            key="identity.trait_evolution",
            name="Identity Trait Evolution",
            description="Enable dynamic personality trait evolution based on experiences",
            flag_type=FlagType.BOOLEAN,
            default_value=False,
            environments={"development": True, "staging": False, "production": False},
            rollout_percentage=15,
            conditions=(_plugin_category("identity", "identity"),),
            metadata=FlagMetadata(
                category="identity",
                tags=("identity", "personality", "evolution", "experimental"),
                owner="identity-team",
            ),
        ),
        FeatureFlag(
            key="security.enhanced_sandbox",
            name="Enhanced Plugin Sandboxing",
            description="Enable enhanced security sandboxing for plugins",
            flag_type=FlagType.BOOLEAN,
            default_value=True,
            environments={"development": False, "staging": True, "production": True},
            metadata=FlagMetadata(
                category="security", tags=("security", "sandbox", "protection"), owner="security-team"
            ),
        ),
        FeatureFlag(
            key="logging.verbose_mode",
            name="Verbose Logging Mode",
            description="Enable verbose logging for debugging and development",
            flag_type=FlagType.BOOLEAN,
            default_value=False,
            environments={"development": True, "staging": False, "production": False},
            conditions=(
                FlagCondition(
                    condition_type=ConditionType.ENVIRONMENT,
                    operator=ConditionOperator.EQUALS,
                    value="development",
                    description="Only enable in development environment",
                ),
            ),
            metadata=FlagMetadata(
                category="system", tags=("logging", "debugging", "development"), owner="platform-team"
            ),
        ),
    ]
