"""Tests for configuration export and import."""

import json

import pytest

from flag_engine.core.errors import ConfigurationImportError, ErrorCode, FlagValidationError
from flag_engine.core.feature_flags.models import (
    EvaluationContext,
    FlagCondition,
    FlagMetadata,
    FlagType,
)
from flag_engine.core.feature_flags.portability import parse_document


class TestExport:
    """Tests for export_configuration."""

    def test_document_shape(self, manager, make_flag):
        manager.register_flag(
            make_flag(
                rollout_percentage=40,
                conditions=[FlagCondition("environment", "equals", "staging", "Staging only")],
            )
        )
        manager.set_user_override("u1", "test.flag", False)
        document = json.loads(manager.export_configuration())
        assert set(document) == {"flags", "userOverrides", "pluginOverrides", "exportedAt"}
        flag = document["flags"][0]
        assert flag["key"] == "test.flag"
        assert flag["type"] == "boolean"
        assert flag["defaultValue"] is True
        assert flag["rolloutPercentage"] == 40
        assert flag["userOverrides"] == {"u1": False}
        assert flag["conditions"][0]["type"] == "environment"
        assert "createdAt" in flag["metadata"]
        assert document["userOverrides"] == {"u1": {"test.flag": False}}


class TestImport:
    """Tests for import_configuration."""

    def test_round_trip(self, manager, make_flag, settings):
        from flag_engine.core.feature_flags.manager import FeatureFlagManager

        manager.register_flag(
            make_flag(
                "a",
                environments={"production": False},
                rollout_percentage=20,
                conditions=[FlagCondition("custom", "greater_than", 3, attribute="seats")],
                metadata=FlagMetadata(category="core", tags=("x",), owner="team"),
            )
        )
        manager.register_flag(make_flag("b", flag_type=FlagType.JSON, default_value={"k": [1, 2]}))
        manager.set_user_override("u1", "a", True)
        manager.set_plugin_override("p1", "b", {"k": []})
        exported = manager.export_configuration()

        other = FeatureFlagManager(settings=settings)
        other.import_configuration(exported)
        assert sorted(other.get_all_flags(), key=lambda f: f.key) == sorted(
            manager.get_all_flags(), key=lambda f: f.key
        )
        assert other.get_user_overrides() == {"u1": {"a": True}}
        assert other.get_plugin_overrides() == {"p1": {"b": {"k": []}}}

        for ctx in (
            EvaluationContext(user_id="u1"),
            EvaluationContext(user_id="u2", custom_attributes={"seats": 5}),
            EvaluationContext(plugin_id="p1", environment="production"),
        ):
            for key in ("a", "b"):
                assert other.get_value(key, ctx) == manager.get_value(key, ctx)
        other.close()

    def test_round_trip_list_condition(self, manager, make_flag, settings):
        """Membership literals compare equal after export and import."""
        from flag_engine.core.feature_flags.manager import FeatureFlagManager

        manager.register_flag(make_flag("tuple", conditions=[FlagCondition("user_id", "in", ("u1", "u2"))]))
        manager.register_flag(make_flag("list", conditions=[FlagCondition("user_id", "not_in", ["u3"])]))
        document = json.loads(manager.export_configuration())
        assert document["flags"][0]["conditions"][0]["value"] == ["u1", "u2"]

        other = FeatureFlagManager(settings=settings)
        other.import_configuration(json.dumps(document))
        assert other.get_flag("tuple") == manager.get_flag("tuple")
        assert other.get_flag("list") == manager.get_flag("list")
        assert other.is_enabled("tuple", EvaluationContext(user_id="u2"))
        assert not other.is_enabled("list", EvaluationContext(user_id="u3"))
        other.close()

    def test_accepts_mapping(self, manager):
        manager.import_configuration(
            {"flags": [{"key": "x", "name": "X", "type": "boolean", "defaultValue": True}]}
        )
        assert manager.is_enabled("x", EvaluationContext(user_id="u1"))

    def test_import_replaces_overrides(self, manager, make_flag):
        manager.register_flag(make_flag())
        manager.set_user_override("old", "test.flag", False)
        manager.import_configuration({"flags": [], "userOverrides": {"new": {"test.flag": True}}})
        assert manager.get_user_overrides() == {"new": {"test.flag": True}}
        assert manager.get_flag("test.flag").user_overrides == {"new": True}

    @pytest.mark.parametrize(
        "document",
        [
            "{not json",
            '{"flags": "nope"}',
            '{"flags": [{"name": "no key"}]}',
            '{"userOverrides": {"u1": 5}}',
        ],
    )
    def test_malformed_document_changes_nothing(self, manager, make_flag, document):
        manager.register_flag(make_flag())
        manager.set_user_override("u1", "test.flag", False)
        before = manager.export_configuration()
        with pytest.raises(ConfigurationImportError) as exc_info:
            manager.import_configuration(document)
        assert exc_info.value.code is ErrorCode.IMPORT_FAILED
        after = manager.export_configuration()
        assert json.loads(before)["flags"] == json.loads(after)["flags"]
        assert manager.get_user_overrides() == {"u1": {"test.flag": False}}

    def test_invalid_flag_raises_validation_error(self, manager):
        with pytest.raises(FlagValidationError):
            manager.import_configuration({"flags": [{"key": "x", "name": "", "type": "boolean"}]})

    def test_missing_condition_value_is_rejected(self, manager):
        document = {
            "flags": [
                {
                    "key": "x",
                    "name": "X",
                    "type": "boolean",
                    "defaultValue": True,
                    "conditions": [{"type": "user_id", "operator": "equals"}],
                }
            ]
        }
        with pytest.raises(FlagValidationError, match="Condition value is required"):
            manager.import_configuration(document)


def test_parse_document_rejects_unsupported_type():
    with pytest.raises(ConfigurationImportError):
        parse_document(42)
