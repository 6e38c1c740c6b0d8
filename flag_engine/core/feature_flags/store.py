"""Feature Flag Store.

Persistence adapters the manager loads from at startup and saves to after
committed mutations:
- In-memory store
- JSON file store
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class FlagStore(ABC):
    """Abstract base class for configuration persistence."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored configuration document, or None if empty."""
        pass

    @abstractmethod
    def save(self, document: Dict[str, Any]) -> None:
        """Persist a configuration document."""
        pass


class InMemoryFlagStore(FlagStore):
    """In-memory configuration storage."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self._document = copy.deepcopy(document) if document is not None else None
        self.save_count = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._document)

    def save(self, document: Dict[str, Any]) -> None:
        self._document = copy.deepcopy(document)
        self.save_count += 1


class JsonFileFlagStore(FlagStore):
    """File-based configuration storage."""

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self._lock = threading.Lock()

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.file_path.exists():
            return None
        try:
            return json.loads(self.file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load feature flags from {self.file_path}: {e}")
            return None

    def save(self, document: Dict[str, Any]) -> None:
        payload = json.dumps(document, indent=2)
        with self._lock:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.file_path)
