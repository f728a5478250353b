"""
LLMock Context Registry

Tracks named broadcast contexts (topics) with an active flag and a live
subscriber count.

Two kinds of context:
- Static: declared in configuration, created at startup, never removed
- Dynamic: created at runtime (on demand or via the admin API), removable

Names are case-insensitive. All state changes go through the registry's
lock-protected operations; callers only ever receive immutable snapshots.
"""

import json
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..common.exceptions import ConfigurationError


logger = logging.getLogger("llmock.realtime")


@dataclass(frozen=True)
class ContextConfig:
    """Declaration of a context and the request it simulates."""

    name: str
    description: Optional[str] = None
    method: str = "GET"
    path: str = "/data"
    shape: Optional[str] = None
    active: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ContextConfig':
        """Create ContextConfig from a config mapping."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Context must be a mapping, got {type(data).__name__}")

        shape = data.get('shape')
        if shape is not None and not isinstance(shape, str):
            shape = json.dumps(shape)

        active = data.get('active', data.get('isActive', True))
        if not isinstance(active, bool):
            raise ConfigurationError(f"Context 'active' must be a boolean, got {active!r}")

        return cls(
            name=data.get('name') or '',
            description=data.get('description'),
            method=(data.get('method') or 'GET').upper(),
            path=data.get('path') or '/data',
            shape=shape,
            active=active
        )


@dataclass(frozen=True)
class ContextEntry:
    """Snapshot of a context's state."""

    name: str
    is_active: bool = True
    connection_count: int = 0
    is_static: bool = False
    description: Optional[str] = None
    method: str = "GET"
    path: str = "/data"
    shape: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'isActive': self.is_active,
            'connectionCount': self.connection_count,
            'isStatic': self.is_static,
            'description': self.description,
            'method': self.method,
            'path': self.path,
            'shape': self.shape
        }


def _key(name: str) -> str:
    return name.strip().lower()


def _require_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError("Context name must be a non-empty string")
    return name.strip()


class ContextRegistry:
    """
    Thread-safe registry of broadcast contexts.

    ``increment`` is strict: it only counts for contexts that already exist.
    Callers that create contexts on demand call ``ensure`` first.

    Example:
        registry = ContextRegistry([ContextConfig('stocks')])
        registry.ensure('weather')
        registry.increment('weather')
        registry.list_active()  # ['stocks', 'weather']
    """

    def __init__(self, static_contexts: Iterable[ContextConfig] = ()):
        """
        Initialize registry.

        Args:
            static_contexts: Contexts from configuration (permanent)

        Raises:
            ConfigurationError: If a static context has no name
        """
        self._lock = threading.Lock()
        self._entries: Dict[str, ContextEntry] = {}

        for config in static_contexts:
            name = _require_name(config.name)
            key = _key(name)
            if key in self._entries:
                logger.warning(f"Duplicate static context '{name}' ignored")
                continue
            self._entries[key] = self._entry_from_config(config, name, is_static=True)

        if self._entries:
            logger.info(f"Loaded {len(self._entries)} static contexts")

    @staticmethod
    def _entry_from_config(config: ContextConfig, name: str, is_static: bool) -> ContextEntry:
        return ContextEntry(
            name=name,
            is_active=config.active,
            connection_count=0,
            is_static=is_static,
            description=config.description,
            method=config.method,
            path=config.path,
            shape=config.shape
        )

    def ensure(self, name: str) -> ContextEntry:
        """
        Return the context, creating an active dynamic one if absent.

        Raises:
            ConfigurationError: If name is blank
        """
        name = _require_name(name)
        key = _key(name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = ContextEntry(name=name)
                self._entries[key] = entry
                logger.info(f"Created dynamic context on demand: {name}")
            return entry

    def register(self, config: ContextConfig) -> bool:
        """
        Register a dynamic context with its metadata.

        Returns:
            True if created, False if a context with that name already exists

        Raises:
            ConfigurationError: If the config has no name
        """
        name = _require_name(config.name)
        key = _key(name)
        with self._lock:
            if key in self._entries:
                logger.warning(f"Context {name} already exists")
                return False
            self._entries[key] = self._entry_from_config(config, name, is_static=False)

        logger.info(f"Registered dynamic context: {name} ({config.method} {config.path})")
        return True

    def get(self, name: str) -> Optional[ContextEntry]:
        """Look up a context without creating it."""
        if not isinstance(name, str):
            return None
        with self._lock:
            return self._entries.get(_key(name))

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def increment(self, name: str) -> Optional[int]:
        """
        Add one subscriber to a known context.

        Returns:
            New count, or None if the context doesn't exist (nothing counted)
        """
        return self._adjust(name, 1)

    def decrement(self, name: str) -> Optional[int]:
        """
        Remove one subscriber from a known context, never going below zero.

        Returns:
            New count, or None if the context doesn't exist
        """
        return self._adjust(name, -1)

    def _adjust(self, name: str, delta: int) -> Optional[int]:
        if not isinstance(name, str):
            return None
        key = _key(name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            count = max(0, entry.connection_count + delta)
            self._entries[key] = replace(entry, connection_count=count)
            return count

    def delete(self, name: str) -> bool:
        """
        Remove a dynamic context.

        Returns:
            True if removed; False for unknown names and static contexts
        """
        if not isinstance(name, str):
            return False
        key = _key(name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_static:
                return False
            del self._entries[key]

        logger.info(f"Unregistered dynamic context: {entry.name}")
        return True

    def set_active(self, name: str, active: bool) -> bool:
        """
        Start or stop a context. Inactive contexts keep their count.

        Returns:
            True if the context exists
        """
        if not isinstance(name, str):
            return False
        key = _key(name)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            self._entries[key] = replace(entry, is_active=bool(active))

        logger.info(f"Context {entry.name} {'started' if active else 'stopped'}")
        return True

    def list_active(self) -> List[str]:
        """Names of active contexts (static and dynamic), sorted case-insensitively."""
        with self._lock:
            names = [entry.name for entry in self._entries.values() if entry.is_active]
        return sorted(names, key=str.lower)

    def list_entries(self, active_only: bool = False) -> List[ContextEntry]:
        """Snapshots of all contexts, sorted by name."""
        with self._lock:
            entries = list(self._entries.values())
        if active_only:
            entries = [e for e in entries if e.is_active]
        return sorted(entries, key=lambda e: e.name.lower())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
