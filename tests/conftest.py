import os

import pytest

from flag_engine.core.config import Settings, reset_settings
from flag_engine.core.feature_flags.manager import FeatureFlagManager
from flag_engine.core.feature_flags.models import FeatureFlag, FlagType


@pytest.fixture(autouse=True)
def env_isolation():
    """Isolate FLAG_ENGINE_* environment variables between tests."""
    backup = {k: v for k, v in os.environ.items() if k.startswith("FLAG_ENGINE_")}
    reset_settings()
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith("FLAG_ENGINE_")]:
            os.environ.pop(k, None)
        os.environ.update(backup)
        reset_settings()


@pytest.fixture
def settings():
    return Settings(_env_file=None, ENVIRONMENT="development", SYSTEM_VERSION="2.0.0")


@pytest.fixture
def manager(settings):
    mgr = FeatureFlagManager(settings=settings)
    try:
        yield mgr
    finally:
        mgr.close()


@pytest.fixture
def make_flag():
    """Factory for valid flags with overridable fields."""

    def _make(key="test.flag", **fields):
        fields.setdefault("name", key.replace(".", " ").title())
        fields.setdefault("flag_type", FlagType.BOOLEAN)
        fields.setdefault("default_value", True)
        return FeatureFlag(key=key, **fields)

    return _make
