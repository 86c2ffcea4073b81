"""!
@brief In-memory registry store.
@details Mirrors the :class:`csr_sweeper.registry_tools.RegistryStore`
semantics over a plain tree: key lookups are case-insensitive like the real
registry, children keep insertion order, and every mutating call is appended
to :attr:`MemoryRegistryStore.history` so callers can audit what a run did.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from . import registry_tools


@dataclass
class _Node:
    name: str
    children: Dict[str, "_Node"] = field(default_factory=dict)
    values: Dict[str, Tuple[str, Any]] = field(default_factory=dict)

    def child(self, name: str) -> "_Node | None":
        return self.children.get(name.casefold())

    def ensure_child(self, name: str) -> "_Node":
        existing = self.child(name)
        if existing is None:
            existing = _Node(name)
            self.children[name.casefold()] = existing
        return existing


class MemoryRegistryStore:
    """!
    @brief Registry store kept entirely in memory.
    """

    def __init__(self) -> None:
        self._root = _Node("")
        self.history: List[Tuple[str, str]] = []

    @classmethod
    def from_keys(
        cls,
        keys: Iterable[str],
        values: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> "MemoryRegistryStore":
        """!
        @brief Build a store containing ``keys`` and optional ``values``.
        @details Seeding does not show up in :attr:`history`.
        """

        store = cls()
        for key in keys:
            store._ensure(key)
        for key, named in (values or {}).items():
            node = store._ensure(key)
            for name, value in named.items():
                node.values[name.casefold()] = (name, value)
        return store

    def _find(self, path: str) -> _Node | None:
        node: _Node | None = self._root
        for segment in registry_tools.split_key(path):
            node = node.child(segment) if node is not None else None
            if node is None:
                return None
        return node

    def _ensure(self, path: str) -> _Node:
        node = self._root
        for segment in registry_tools.split_key(path):
            node = node.ensure_child(segment)
        return node

    def exists(self, path: str) -> bool:
        return self._find(path) is not None

    def list_children(self, path: str) -> List[str]:
        node = self._find(path)
        if node is None:
            return []
        return [child.name for child in node.children.values()]

    def get_value(self, path: str, name: str) -> Any | None:
        node = self._find(path)
        if node is None:
            return None
        entry = node.values.get(name.casefold())
        return entry[1] if entry is not None else None

    def set_value(self, path: str, name: str, value: Any) -> None:
        self.history.append(("set_value", f"{registry_tools.normalize_key(path)}\\{name}"))
        self._ensure(path).values[name.casefold()] = (name, value)

    def create_container(self, path: str) -> None:
        self.history.append(("create_container", registry_tools.normalize_key(path)))
        self._ensure(path)

    def delete_subtree(self, path: str) -> None:
        segments = registry_tools.split_key(path)
        if len(segments) < 2:
            raise registry_tools.UnsafeDeleteError(path, "refusing to delete a registry hive")
        self.history.append(("delete_subtree", "\\".join(segments)))
        parent = self._find("\\".join(segments[:-1]))
        if parent is None:
            return
        parent.children.pop(segments[-1].casefold(), None)

    def deleted_paths(self) -> List[str]:
        return [path for operation, path in self.history if operation == "delete_subtree"]


__all__ = ["MemoryRegistryStore"]
