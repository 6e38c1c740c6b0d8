"""Shared error codes and exception types.

Mutation calls raise these; evaluation calls never do.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    FLAG_NOT_FOUND = "FLAG_NOT_FOUND"
    IMPORT_FAILED = "IMPORT_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FeatureFlagError(Exception):
    """Base class for feature flag engine errors."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code

    def __str__(self) -> str:
        return f"{self.code.value}: {super().__str__()}"


class FlagValidationError(FeatureFlagError):
    """Raised when a flag definition fails validation."""

    def __init__(
        self,
        errors: Sequence[str],
        warnings: Optional[Sequence[str]] = None,
        key: Optional[str] = None,
    ) -> None:
        self.errors: List[str] = list(errors)
        self.warnings: List[str] = list(warnings or [])
        self.key = key
        super().__init__(
            ErrorCode.VALIDATION_FAILED,
            f"Feature flag validation failed: {', '.join(self.errors)}",
        )


class FlagNotFoundError(FeatureFlagError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(ErrorCode.FLAG_NOT_FOUND, f"Feature flag not found: {key}")


class ConfigurationImportError(FeatureFlagError):
    def __init__(self, message: str) -> None:
        super().__init__(ErrorCode.IMPORT_FAILED, f"Configuration import failed: {message}")


__all__ = [
    "ErrorCode",
    "FeatureFlagError",
    "FlagValidationError",
    "FlagNotFoundError",
    "ConfigurationImportError",
]
