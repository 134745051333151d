"""Key-value stores backing visit history and the decision cache.

The engine treats persistence as an injected, browser-storage-like
collaborator: string keys, JSON-serialized string values, enumerable
keys by index. Implementations raise ``StorageError`` on failure; callers
in the engine swallow it and degrade.
"""

import json
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import structlog

from ..exceptions import StorageError

logger = structlog.get_logger()


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for the per-visitor persistence layer."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored string for key, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete key if present."""
        ...

    def key(self, index: int) -> Optional[str]:
        """Return the key at position index, or None if out of range."""
        ...

    def __len__(self) -> int: ...


class MemoryStore:
    """Dict-backed store, insertion ordered.

    With ``fail=True`` every operation raises ``StorageError``, which is
    how an unavailable storage backend is simulated.
    """

    def __init__(self, fail: bool = False) -> None:
        self._data: dict[str, str] = {}
        self.fail = fail

    def _check(self) -> None:
        if self.fail:
            raise StorageError("Storage unavailable")

    def get(self, key: str) -> Optional[str]:
        self._check()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check()
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._check()
        self._data.pop(key, None)

    def key(self, index: int) -> Optional[str]:
        self._check()
        keys = list(self._data)
        if 0 <= index < len(keys):
            return keys[index]
        return None

    def __len__(self) -> int:
        self._check()
        return len(self._data)


class JsonFileStore:
    """Store persisting the whole key space as one JSON document on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(
                "Unreadable store file, treating as empty",
                path=str(self.path),
                error=str(exc),
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to write {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)

    def key(self, index: int) -> Optional[str]:
        keys = list(self._read_all())
        if 0 <= index < len(keys):
            return keys[index]
        return None

    def __len__(self) -> int:
        return len(self._read_all())


def keys_with_prefix(store: KeyValueStore, prefix: str) -> list[str]:
    """Collect all keys starting with prefix by index enumeration."""
    found = []
    for i in range(len(store)):
        key = store.key(i)
        if key and key.startswith(prefix):
            found.append(key)
    return found
