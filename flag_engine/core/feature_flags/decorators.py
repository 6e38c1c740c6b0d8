"""Feature Flag Decorators."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from flag_engine.core.feature_flags.manager import FeatureFlagManager
from flag_engine.core.feature_flags.models import EvaluationContext

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def feature_flag(
    flag_key: str,
    manager: FeatureFlagManager,
    fallback: Optional[Callable[..., Any]] = None,
    context_extractor: Optional[Callable[..., EvaluationContext]] = None,
) -> Callable[[F], F]:
    """Decorator to gate function execution behind a feature flag.

    Args:
        flag_key: Key of the feature flag
        manager: Manager the flag is evaluated with
        fallback: Function to call instead if the flag is disabled
        context_extractor: Function to build an EvaluationContext from args

    Example:
        @feature_flag("memory.enhanced_recall", manager, fallback=basic_recall)
        def enhanced_recall(query):
            return search_v2(query)

        @feature_flag("beta", manager, context_extractor=lambda req: EvaluationContext(user_id=req.user_id))
        async def beta_endpoint(request):
            return await beta_response(request)
    """

    def is_enabled(args: Any, kwargs: Any) -> bool:
        context = None
        if context_extractor:
            try:
                context = context_extractor(*args, **kwargs)
            except Exception as e:
                logger.warning(f"Failed to extract flag context: {e}", extra={"flag_key": flag_key})
        return manager.is_enabled(flag_key, context)

    def decorator(func: F) -> F:
        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if is_enabled(args, kwargs):
                    return await func(*args, **kwargs)
                if fallback:
                    result = fallback(*args, **kwargs)
                    if asyncio.iscoroutine(result):
                        result = await result
                    return result
                logger.debug(f"Feature flag '{flag_key}' is disabled, skipping {func.__name__}")
                return None

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if is_enabled(args, kwargs):
                return func(*args, **kwargs)
            if fallback:
                return fallback(*args, **kwargs)
            logger.debug(f"Feature flag '{flag_key}' is disabled, skipping {func.__name__}")
            return None

        return wrapper  # type: ignore

    return decorator
