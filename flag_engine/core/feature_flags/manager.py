"""Feature Flag Manager.

Provides the engine's service object:
- Flag registration and updates
- Override management
- Evaluation pipeline
- Usage metrics and history
- Configuration export/import
"""

from __future__ import annotations

import dataclasses
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from flag_engine.core.config import Settings, get_settings
from flag_engine.core.errors import FlagValidationError
from flag_engine.core.feature_flags.conditions import evaluate_condition
from flag_engine.core.feature_flags.defaults import build_default_flags
from flag_engine.core.feature_flags.events import (
    FlagChangeEvent,
    FlagEventBus,
    FlagEventType,
    Subscriber,
)
from flag_engine.core.feature_flags.metrics import EvaluationCollector, FlagUsageMetrics
from flag_engine.core.feature_flags.models import (
    MISSING,
    EvaluationContext,
    EvaluationResult,
    EvaluationSource,
    FeatureFlag,
    FlagType,
    ValidationReport,
    utc_now_iso,
)
from flag_engine.core.feature_flags.overrides import OverrideStore
from flag_engine.core.feature_flags.portability import (
    ConfigurationDocument,
    build_document,
    parse_document,
)
from flag_engine.core.feature_flags.registry import FlagRegistry, validate_flag
from flag_engine.core.feature_flags.rollout import calculate_rollout_bucket, rollout_identity
from flag_engine.core.feature_flags.store import FlagStore, JsonFileFlagStore
from flag_engine.utils.metrics import (
    feature_flag_evaluation_duration_seconds,
    feature_flag_evaluation_errors_total,
    feature_flag_evaluations_total,
    feature_flag_mutations_total,
    feature_flag_registered_flags,
    feature_flag_validation_failures_total,
)

logger = logging.getLogger(__name__)

ContextProvider = Callable[[], EvaluationContext]


def settings_context_provider(settings: Settings) -> ContextProvider:
    """Default context built from the configured environment and version."""

    def provide() -> EvaluationContext:
        return EvaluationContext(
            environment=settings.ENVIRONMENT,
            system_version=settings.SYSTEM_VERSION,
        )

    return provide


@dataclass
class _Decision:
    """Working state of one evaluation."""

    value: Any
    source: EvaluationSource = EvaluationSource.DEFAULT
    reason: str = "Using default value"
    conditions_evaluated: int = 0
    rollout_bucket: Optional[int] = None


class FeatureFlagManager:
    """In-memory feature flag engine.

    Mutations (register, update, overrides, import) are strict and raise on
    invalid input. Evaluations never raise.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[FlagStore] = None,
        event_bus: Optional[FlagEventBus] = None,
        context_provider: Optional[ContextProvider] = None,
    ):
        """Initialize the manager.

        Args:
            settings: Engine settings; process settings if omitted
            store: Persistence adapter loaded at startup and saved on mutation
            event_bus: Change-event channel; a private one is created if omitted
            context_provider: Supplies the context for context-less evaluations
        """
        self.settings = settings or get_settings()
        self.store = store
        self._owns_bus = event_bus is None
        self.event_bus = event_bus or FlagEventBus(max_queue_size=self.settings.EVENT_QUEUE_SIZE)
        self._context_provider = context_provider or settings_context_provider(self.settings)

        self._registry = FlagRegistry()
        self._user_overrides = OverrideStore("user")
        self._plugin_overrides = OverrideStore("plugin")
        self._collector = EvaluationCollector(
            history_limit=self.settings.HISTORY_LIMIT,
            identity_limit=self.settings.UNIQUE_IDENTITY_LIMIT,
        )
        self._persist_suspended = 0

        self._initialize()

    def _initialize(self) -> None:
        logger.info("Initializing feature flag system")
        with self._persistence_suspended():
            document = self.store.load() if self.store else None
            if document:
                self._import(parse_document(document))
            elif self.settings.LOAD_DEFAULT_FLAGS:
                for flag in build_default_flags():
                    self.register_flag(flag)
            self._apply_environment_overrides()
        logger.info(f"Feature flag system initialized with {len(self._registry)} flags")

    def _apply_environment_overrides(self) -> None:
        environment = self.settings.ENVIRONMENT
        overrides = self.settings.ENVIRONMENT_OVERRIDES.get(environment, {})
        for flag_key, value in overrides.items():

            def apply(flag: FeatureFlag, value: Any = value) -> FeatureFlag:
                return dataclasses.replace(flag, environments={**flag.environments, environment: value})

            if self._registry.replace(flag_key, apply) is not None:
                logger.debug(
                    f"Applied environment override for flag: {flag_key}",
                    extra={"flag_key": flag_key, "environment": environment},
                )

    # Flag management

    def register_flag(self, flag: FeatureFlag) -> ValidationReport:
        """Validate and register a flag.

        Raises:
            FlagValidationError: the flag is invalid; nothing is registered.
        """
        logger.debug(f"Registering feature flag: {flag.key}", extra={"flag_key": flag.key})
        # Override mirrors always reflect the override stores
        flag = dataclasses.replace(
            flag,
            user_overrides=self._user_overrides.for_flag(flag.key),
            plugin_overrides=self._plugin_overrides.for_flag(flag.key),
        )
        try:
            report = self._registry.register(flag)
        except FlagValidationError as e:
            feature_flag_validation_failures_total.inc()
            logger.warning(f"Rejected feature flag '{flag.key}': {e}", extra={"flag_key": flag.key})
            raise
        for warning in report.warnings:
            logger.warning(f"Feature flag '{flag.key}': {warning}", extra={"flag_key": flag.key})

        self._collector.track(flag.key)
        self._committed(
            "register",
            FlagChangeEvent(
                FlagEventType.FLAG_REGISTERED,
                flag.key,
                {"flag_type": getattr(flag.flag_type, "value", flag.flag_type), "enabled": flag.enabled},
            ),
        )
        return report

    def unregister_flag(self, key: str) -> None:
        """Remove a flag with its metrics and history; no-op if absent."""
        removed = self._registry.unregister(key)
        self._collector.discard(key)
        if removed is None:
            return
        logger.debug(f"Unregistered feature flag: {key}", extra={"flag_key": key})
        self._committed("unregister", FlagChangeEvent(FlagEventType.FLAG_UNREGISTERED, key))

    def update_flag(
        self, key: str, changes: Optional[Mapping[str, Any]] = None, **fields: Any
    ) -> FeatureFlag:
        """Merge field changes into a flag.

        Raises:
            FlagNotFoundError: no flag has this key.
            FlagValidationError: the merged flag is invalid; the old one stays.
        """
        updates = {**(changes or {}), **fields}
        logger.debug(f"Updating feature flag: {key}", extra={"flag_key": key})
        try:
            updated = self._registry.update(key, updates)
        except FlagValidationError:
            feature_flag_validation_failures_total.inc()
            raise
        self._committed(
            "update",
            FlagChangeEvent(FlagEventType.FLAG_UPDATED, key, {"fields": sorted(updates)}),
        )
        return updated

    # Evaluation

    def is_enabled(self, key: str, context: Optional[EvaluationContext] = None) -> bool:
        return bool(self.evaluate(key, context).value)

    def get_value(self, key: str, context: Optional[EvaluationContext] = None) -> Any:
        return self.evaluate(key, context).value

    def evaluate(self, key: str, context: Optional[EvaluationContext] = None) -> EvaluationResult:
        """Evaluate a flag for a context. Never raises."""
        started = time.perf_counter()
        ctx = context if context is not None else self._default_context()

        flag = self._registry.get(key)
        if flag is None:
            logger.warning(f"Feature flag not found: {key}", extra={"flag_key": key})
            feature_flag_evaluations_total.labels(source=EvaluationSource.DEFAULT.value).inc()
            return EvaluationResult(
                flag_key=key,
                value=False,
                reason="Flag not found",
                source=EvaluationSource.DEFAULT,
                context=ctx,
            )

        decision = _Decision(value=flag.default_value)
        try:
            self._decide(flag, ctx, decision)
            result = EvaluationResult(
                flag_key=key,
                value=decision.value,
                reason=decision.reason,
                source=decision.source,
                context=ctx,
                conditions_evaluated=decision.conditions_evaluated,
                rollout_bucket=decision.rollout_bucket,
            )
            elapsed = time.perf_counter() - started
            self._collector.record(result, elapsed * 1000.0)
            feature_flag_evaluations_total.labels(source=result.source.value).inc()
            feature_flag_evaluation_duration_seconds.observe(elapsed)
            if self.settings.PUBLISH_EVALUATION_EVENTS:
                self.event_bus.publish(
                    FlagChangeEvent(
                        FlagEventType.FLAG_EVALUATED,
                        key,
                        {"value": result.value, "source": result.source.value},
                    )
                )
            return result
        except Exception as e:
            logger.error(
                f"Error evaluating feature flag: {key}: {e}",
                exc_info=True,
                extra={"flag_key": key, "error_code": "INTERNAL_ERROR"},
            )
            feature_flag_evaluation_errors_total.inc()
            return EvaluationResult(
                flag_key=key,
                value=flag.default_value,
                reason=f"Evaluation error: {e}",
                source=EvaluationSource.DEFAULT,
                context=ctx,
                conditions_evaluated=decision.conditions_evaluated,
            )

    def _decide(self, flag: FeatureFlag, ctx: EvaluationContext, decision: _Decision) -> None:
        """Run the precedence stages; the first applicable stage wins."""
        if not flag.enabled:
            decision.value = flag.off_value
            decision.reason = "Flag is globally disabled"
            return

        if ctx.user_id is not None:
            value = self._user_overrides.lookup(ctx.user_id, flag.key)
            if value is not MISSING:
                decision.value = value
                decision.source = EvaluationSource.USER_OVERRIDE
                decision.reason = "User-specific override"
                return

        if ctx.plugin_id is not None:
            value = self._plugin_overrides.lookup(ctx.plugin_id, flag.key)
            if value is not MISSING:
                decision.value = value
                decision.source = EvaluationSource.PLUGIN_OVERRIDE
                decision.reason = "Plugin-specific override"
                return

        if ctx.environment is not None and ctx.environment in flag.environments:
            decision.value = flag.environments[ctx.environment]
            decision.source = EvaluationSource.ENVIRONMENT
            decision.reason = f"Environment-specific value for {ctx.environment}"

        is_boolean = flag.flag_type is FlagType.BOOLEAN
        for condition in flag.conditions:
            decision.conditions_evaluated += 1
            passed = evaluate_condition(condition, ctx)
            if not is_boolean:
                continue
            # Boolean flags: every condition must pass on a truthy candidate
            if not passed:
                decision.value = False
                decision.source = EvaluationSource.CONDITION
                decision.reason = f"Condition failed: {condition.description}"
                return
            if not decision.value:
                decision.value = False
                decision.source = EvaluationSource.CONDITION
                decision.reason = f"Condition blocked: {condition.description}"
                return

        if is_boolean:
            decision.rollout_bucket = calculate_rollout_bucket(flag.key, rollout_identity(ctx))
            if decision.value is True and flag.rollout_percentage < 100:
                if decision.rollout_bucket >= flag.rollout_percentage:
                    decision.value = False
                    decision.source = EvaluationSource.ROLLOUT
                    decision.reason = f"Rollout percentage ({flag.rollout_percentage}%) not met"

    def _default_context(self) -> EvaluationContext:
        try:
            return self._context_provider()
        except Exception as e:
            logger.error(f"Default context provider failed: {e}", exc_info=True)
            return EvaluationContext()

    # Batch operations

    def evaluate_multiple(
        self, keys: Iterable[str], context: Optional[EvaluationContext] = None
    ) -> Dict[str, EvaluationResult]:
        ctx = context if context is not None else self._default_context()
        return {key: self.evaluate(key, ctx) for key in keys}

    def get_enabled_flags(self, context: Optional[EvaluationContext] = None) -> List[str]:
        ctx = context if context is not None else self._default_context()
        return [flag.key for flag in self._registry.get_all() if self.is_enabled(flag.key, ctx)]

    # Overrides

    def set_user_override(self, user_id: str, flag_key: str, value: Any) -> None:
        logger.debug(
            f"Setting user override for flag: {flag_key}",
            extra={"flag_key": flag_key, "user_id": user_id},
        )
        self._user_overrides.set(user_id, flag_key, value)
        self._registry.replace(
            flag_key,
            lambda flag: dataclasses.replace(
                flag, user_overrides={**flag.user_overrides, user_id: value}
            ),
        )
        self._committed(
            "set_user_override",
            FlagChangeEvent(FlagEventType.USER_OVERRIDE_SET, flag_key, {"user_id": user_id, "value": value}),
        )

    def remove_user_override(self, user_id: str, flag_key: str) -> None:
        if not self._user_overrides.remove(user_id, flag_key):
            return
        logger.debug(
            f"Removed user override for flag: {flag_key}",
            extra={"flag_key": flag_key, "user_id": user_id},
        )
        self._registry.replace(
            flag_key,
            lambda flag: dataclasses.replace(
                flag,
                user_overrides={k: v for k, v in flag.user_overrides.items() if k != user_id},
            ),
        )
        self._committed(
            "remove_user_override",
            FlagChangeEvent(FlagEventType.USER_OVERRIDE_REMOVED, flag_key, {"user_id": user_id}),
        )

    def set_plugin_override(self, plugin_id: str, flag_key: str, value: Any) -> None:
        logger.debug(
            f"Setting plugin override for flag: {flag_key}",
            extra={"flag_key": flag_key, "plugin_id": plugin_id},
        )
        self._plugin_overrides.set(plugin_id, flag_key, value)
        self._registry.replace(
            flag_key,
            lambda flag: dataclasses.replace(
                flag, plugin_overrides={**flag.plugin_overrides, plugin_id: value}
            ),
        )
        self._committed(
            "set_plugin_override",
            FlagChangeEvent(
                FlagEventType.PLUGIN_OVERRIDE_SET, flag_key, {"plugin_id": plugin_id, "value": value}
            ),
        )

    def remove_plugin_override(self, plugin_id: str, flag_key: str) -> None:
        if not self._plugin_overrides.remove(plugin_id, flag_key):
            return
        logger.debug(
            f"Removed plugin override for flag: {flag_key}",
            extra={"flag_key": flag_key, "plugin_id": plugin_id},
        )
        self._registry.replace(
            flag_key,
            lambda flag: dataclasses.replace(
                flag,
                plugin_overrides={k: v for k, v in flag.plugin_overrides.items() if k != plugin_id},
            ),
        )
        self._committed(
            "remove_plugin_override",
            FlagChangeEvent(FlagEventType.PLUGIN_OVERRIDE_REMOVED, flag_key, {"plugin_id": plugin_id}),
        )

    def get_user_overrides(self) -> Dict[str, Dict[str, Any]]:
        return self._user_overrides.snapshot()

    def get_plugin_overrides(self) -> Dict[str, Dict[str, Any]]:
        return self._plugin_overrides.snapshot()

    # Monitoring

    def get_usage_metrics(self, flag_key: Optional[str] = None) -> FlagUsageMetrics:
        return self._collector.get_metrics(flag_key)

    def get_evaluation_history(self, flag_key: str, limit: int = 100) -> List[EvaluationResult]:
        return self._collector.get_history(flag_key, limit)

    # Administrative

    def get_all_flags(self) -> List[FeatureFlag]:
        return self._registry.get_all()

    def get_flag(self, key: str) -> Optional[FeatureFlag]:
        return self._registry.get(key)

    def validate_flag(self, flag: FeatureFlag) -> ValidationReport:
        return validate_flag(flag)

    def export_configuration(self) -> str:
        """Serialize flags and overrides to a JSON document."""
        return self._build_document().to_json()

    def import_configuration(self, document: Union[str, bytes, Mapping[str, Any]]) -> None:
        """Load flags and overrides from an exported document.

        Raises:
            ConfigurationImportError: the document is malformed; nothing changed.
            FlagValidationError: a flag in the document is invalid.
        """
        parsed = parse_document(document)
        logger.info(
            f"Importing feature flag configuration: {len(parsed.flags)} flags, "
            f"{len(parsed.user_overrides)} users, {len(parsed.plugin_overrides)} plugins"
        )
        with self._persistence_suspended():
            self._import(parsed)
        self._committed(
            "import",
            FlagChangeEvent(
                FlagEventType.CONFIGURATION_IMPORTED,
                payload={"flag_count": len(parsed.flags), "imported_at": utc_now_iso()},
            ),
        )

    def _import(self, parsed: ConfigurationDocument) -> None:
        # TODO: validate every flag before registering any, so one bad entry
        # cannot leave an import half applied.
        for flag_document in parsed.flags:
            self.register_flag(flag_document.to_flag())

        self._user_overrides.replace_all(parsed.user_overrides)
        self._plugin_overrides.replace_all(parsed.plugin_overrides)
        for key in self._registry.keys():
            self._registry.replace(
                key,
                lambda flag: dataclasses.replace(
                    flag,
                    user_overrides=self._user_overrides.for_flag(flag.key),
                    plugin_overrides=self._plugin_overrides.for_flag(flag.key),
                ),
            )

    # Events and lifecycle

    def subscribe(self, subscriber: Subscriber) -> None:
        self.event_bus.subscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self.event_bus.unsubscribe(subscriber)

    def close(self) -> None:
        if self._owns_bus:
            self.event_bus.close()

    def _build_document(self) -> ConfigurationDocument:
        return build_document(
            self._registry.get_all(),
            self._user_overrides.snapshot(),
            self._plugin_overrides.snapshot(),
            utc_now_iso(),
        )

    def _committed(self, operation: str, event: FlagChangeEvent) -> None:
        feature_flag_mutations_total.labels(operation=operation).inc()
        feature_flag_registered_flags.set(len(self._registry))
        self.event_bus.publish(event)
        self._persist()

    @contextmanager
    def _persistence_suspended(self) -> Iterator[None]:
        self._persist_suspended += 1
        try:
            yield
        finally:
            self._persist_suspended -= 1

    def _persist(self) -> None:
        if self.store is None or not self.settings.AUTOSAVE or self._persist_suspended:
            return
        try:
            self.store.save(self._build_document().to_dict())
        except Exception as e:
            logger.error(f"Failed to persist feature flags: {e}", exc_info=True)


_manager: Optional[FeatureFlagManager] = None


def get_feature_flag_manager() -> FeatureFlagManager:
    """Get a process-wide manager for hosts that do not inject their own."""
    global _manager
    if _manager is None:
        settings = get_settings()
        store = JsonFileFlagStore(settings.CONFIG_FILE_PATH) if settings.CONFIG_FILE_PATH else None
        _manager = FeatureFlagManager(settings=settings, store=store)
    return _manager
