"""Tests for the feature_flag decorator."""

import pytest

from flag_engine.core.feature_flags.decorators import feature_flag
from flag_engine.core.feature_flags.models import EvaluationContext


class TestFeatureFlagDecorator:
    """Tests for sync functions."""

    def test_enabled_runs_function(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=True))

        @feature_flag("test.flag", manager)
        def new_path(x):
            return x * 2

        assert new_path(3) == 6
        assert new_path.__name__ == "new_path"

    def test_disabled_returns_none(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=False))

        @feature_flag("test.flag", manager)
        def new_path():
            return "new"

        assert new_path() is None

    def test_disabled_uses_fallback(self, manager, make_flag):
        manager.register_flag(make_flag(enabled=False))

        @feature_flag("test.flag", manager, fallback=lambda x: f"old:{x}")
        def new_path(x):
            return f"new:{x}"

        assert new_path("a") == "old:a"

    def test_context_extractor(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=False))
        manager.set_user_override("vip", "test.flag", True)

        @feature_flag("test.flag", manager, context_extractor=lambda user: EvaluationContext(user_id=user))
        def greet(user):
            return f"hello {user}"

        assert greet("vip") == "hello vip"
        assert greet("someone") is None

    def test_failing_extractor_uses_default_context(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=True))

        def extractor(*args):
            raise KeyError("user")

        @feature_flag("test.flag", manager, context_extractor=extractor)
        def run():
            return "ran"

        assert run() == "ran"


class TestAsyncFeatureFlagDecorator:
    """Tests for coroutine functions."""

    @pytest.mark.asyncio
    async def test_enabled(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=True))

        @feature_flag("test.flag", manager)
        async def new_path():
            return "new"

        assert await new_path() == "new"

    @pytest.mark.asyncio
    async def test_async_fallback(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=False))

        async def old_path():
            return "old"

        @feature_flag("test.flag", manager, fallback=old_path)
        async def new_path():
            return "new"

        assert await new_path() == "old"

    @pytest.mark.asyncio
    async def test_sync_fallback(self, manager, make_flag):
        manager.register_flag(make_flag(default_value=False))

        @feature_flag("test.flag", manager, fallback=lambda: "old")
        async def new_path():
            return "new"

        assert await new_path() == "old"
