"""
Workspace state storage.

Holds small per-workspace values that outlive a single pass, most
importantly the last processed topology text used for de-duplication.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class WorkspaceState(ABC):
    """Abstract base class for workspace key/value storage."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored under key, or None."""
        pass

    @abstractmethod
    async def update(self, key: str, value: Any) -> None:
        """Store value under key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present."""
        pass

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """List keys with the given prefix."""
        pass


class MemoryWorkspaceState(WorkspaceState):
    """In-process workspace storage."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Optional[Any]:
        return self._values.get(key)

    async def update(self, key: str, value: Any) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._values if k.startswith(prefix)]


class FileWorkspaceState(WorkspaceState):
    """Workspace storage persisted as one JSON document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._values: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load workspace state from {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring workspace state in {self.path}: not a JSON object")
            return {}
        return data

    def _flush(self) -> None:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=2, default=str)
            logger.debug(f"Saved workspace state to {self.path}")
        except OSError as e:
            logger.error(f"Failed to save workspace state to {self.path}: {e}")
            raise

    async def get(self, key: str) -> Optional[Any]:
        return self._values.get(key)

    async def update(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._flush()

    async def delete(self, key: str) -> None:
        if self._values.pop(key, None) is not None:
            self._flush()

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._values if k.startswith(prefix)]
