"""Key-value persistence for history and cached decisions."""

from .stores import JsonFileStore, KeyValueStore, MemoryStore, keys_with_prefix

__all__ = ["JsonFileStore", "KeyValueStore", "MemoryStore", "keys_with_prefix"]
