"""Identity-scoped flag overrides.

One store per scope (user, plugin), mapping identity -> flag key -> value.
Per-identity maps are replaced wholesale on every write.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Mapping

from flag_engine.core.feature_flags.models import MISSING


class OverrideStore:
    """Identity -> flag key -> forced value."""

    def __init__(self, scope: str):
        self.scope = scope
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def set(self, identity: str, flag_key: str, value: Any) -> None:
        with self._lock:
            overrides = dict(self._entries.get(identity, {}))
            overrides[flag_key] = value
            entries = dict(self._entries)
            entries[identity] = overrides
            self._entries = entries

    def remove(self, identity: str, flag_key: str) -> bool:
        """Delete one override; returns False if there was nothing to delete."""
        with self._lock:
            current = self._entries.get(identity)
            if current is None or flag_key not in current:
                return False
            overrides = dict(current)
            del overrides[flag_key]
            entries = dict(self._entries)
            if overrides:
                entries[identity] = overrides
            else:
                del entries[identity]
            self._entries = entries
            return True

    def lookup(self, identity: str, flag_key: str, default: Any = MISSING) -> Any:
        return self._entries.get(identity, {}).get(flag_key, default)

    def has(self, identity: str, flag_key: str) -> bool:
        return flag_key in self._entries.get(identity, {})

    def for_flag(self, flag_key: str) -> Dict[str, Any]:
        """All overrides of one flag, keyed by identity."""
        return {
            identity: overrides[flag_key]
            for identity, overrides in self._entries.items()
            if flag_key in overrides
        }

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {identity: dict(overrides) for identity, overrides in self._entries.items()}

    def replace_all(self, entries: Mapping[str, Mapping[str, Any]]) -> None:
        fresh = {identity: dict(overrides) for identity, overrides in entries.items()}
        with self._lock:
            self._entries = fresh

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        return sum(len(overrides) for overrides in self._entries.values())
