"""Deterministic rollout bucketing."""

from __future__ import annotations

import hashlib

from flag_engine.core.feature_flags.models import EvaluationContext

ANONYMOUS_IDENTITY = "anonymous"


def rollout_identity(context: EvaluationContext) -> str:
    """Identity used for bucketing: user, then plugin, then anonymous."""
    return context.user_id or context.plugin_id or ANONYMOUS_IDENTITY


def calculate_rollout_bucket(flag_key: str, identity: str) -> int:
    """Get bucket (0-99) for a flag and requester identity.

    The first 32 bits of an MD5 digest keep the bucket stable across
    processes and hosts, so a rolled-out user stays rolled out.
    """
    digest = hashlib.md5(f"{flag_key}:{identity}".encode()).hexdigest()  # nosec B324 - stable rollout hashing
    return int(digest[:8], 16) % 100
