"""Configuration documents for export and import.

The document is JSON with camelCase keys::

    {"flags": [...], "userOverrides": {...}, "pluginOverrides": {...},
     "exportedAt": "2026-01-01T00:00:00+00:00"}
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from flag_engine.core.errors import ConfigurationImportError
from flag_engine.core.feature_flags.models import (
    MISSING,
    FeatureFlag,
    FlagCondition,
    FlagMetadata,
)


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConditionDocument(_Document):
    type: str = ""
    operator: str = ""
    value: Any = None
    description: str = ""
    attribute: Optional[str] = None

    @classmethod
    def from_condition(cls, condition: FlagCondition) -> "ConditionDocument":
        return cls(
            type=condition.condition_type,
            operator=condition.operator,
            value=condition.value,
            description=condition.description,
            attribute=condition.attribute,
        )

    def to_condition(self) -> FlagCondition:
        return FlagCondition(
            condition_type=self.type,
            operator=self.operator,
            value=self.value if "value" in self.model_fields_set else MISSING,
            description=self.description,
            attribute=self.attribute,
        )


class MetadataDocument(_Document):
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    owner: str = ""
    created_at: str = ""
    last_modified: str = ""
    version: str = ""


class FlagDocument(_Document):
    key: str
    name: str = ""
    description: str = ""
    type: str = ""
    default_value: Any = None
    enabled: bool = True
    environments: Dict[str, Any] = Field(default_factory=dict)
    user_overrides: Dict[str, Any] = Field(default_factory=dict)
    plugin_overrides: Dict[str, Any] = Field(default_factory=dict)
    rollout_percentage: int = 100
    conditions: List[ConditionDocument] = Field(default_factory=list)
    metadata: MetadataDocument = Field(default_factory=MetadataDocument)

    @classmethod
    def from_flag(cls, flag: FeatureFlag) -> "FlagDocument":
        return cls(
            key=flag.key,
            name=flag.name,
            description=flag.description,
            type=str(getattr(flag.flag_type, "value", flag.flag_type)),
            default_value=flag.default_value,
            enabled=flag.enabled,
            environments=dict(flag.environments),
            user_overrides=dict(flag.user_overrides),
            plugin_overrides=dict(flag.plugin_overrides),
            rollout_percentage=flag.rollout_percentage,
            conditions=[ConditionDocument.from_condition(c) for c in flag.conditions],
            metadata=MetadataDocument(
                category=flag.metadata.category,
                tags=list(flag.metadata.tags),
                owner=flag.metadata.owner,
                created_at=flag.metadata.created_at,
                last_modified=flag.metadata.last_modified,
                version=flag.metadata.version,
            ),
        )

    def to_flag(self) -> FeatureFlag:
        metadata = FlagMetadata(
            category=self.metadata.category,
            tags=tuple(self.metadata.tags),
            owner=self.metadata.owner,
            version=self.metadata.version,
            # Absent timestamps fall back to "now"
            **{
                name: getattr(self.metadata, name)
                for name in ("created_at", "last_modified")
                if getattr(self.metadata, name)
            },
        )
        return FeatureFlag(
            key=self.key,
            name=self.name,
            flag_type=self.type,
            default_value=self.default_value,
            description=self.description,
            enabled=self.enabled,
            environments=self.environments,
            user_overrides=self.user_overrides,
            plugin_overrides=self.plugin_overrides,
            rollout_percentage=self.rollout_percentage,
            conditions=tuple(c.to_condition() for c in self.conditions),
            metadata=metadata,
        )


class ConfigurationDocument(_Document):
    flags: List[FlagDocument] = Field(default_factory=list)
    user_overrides: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    plugin_overrides: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    exported_at: Optional[str] = None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def build_document(
    flags: List[FeatureFlag],
    user_overrides: Mapping[str, Mapping[str, Any]],
    plugin_overrides: Mapping[str, Mapping[str, Any]],
    exported_at: str,
) -> ConfigurationDocument:
    return ConfigurationDocument(
        flags=[FlagDocument.from_flag(flag) for flag in flags],
        user_overrides={k: dict(v) for k, v in user_overrides.items()},
        plugin_overrides={k: dict(v) for k, v in plugin_overrides.items()},
        exported_at=exported_at,
    )


def parse_document(document: Union[str, bytes, Mapping[str, Any]]) -> ConfigurationDocument:
    """Parse and shape-check a configuration document.

    Raises:
        ConfigurationImportError: the document is not valid JSON or does not
            have the expected shape.
    """
    try:
        if isinstance(document, (str, bytes)):
            return ConfigurationDocument.model_validate_json(document)
        if isinstance(document, Mapping):
            return ConfigurationDocument.model_validate(dict(document))
    except ValidationError as e:
        raise ConfigurationImportError(str(e)) from e
    except json.JSONDecodeError as e:
        raise ConfigurationImportError(str(e)) from e
    raise ConfigurationImportError(f"Unsupported document type: {type(document).__name__}")
