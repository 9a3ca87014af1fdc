import threading
from enum import Enum
from typing import NamedTuple


class TriState(Enum):
    UNSET = "unset"
    TRUE = "true"
    FALSE = "false"

    @classmethod
    def from_annotation(cls, value: str | None) -> "TriState":
        if value is None:
            return cls.UNSET
        value = value.strip().lower()
        if value == "true":
            return cls.TRUE
        if value == "false":
            return cls.FALSE
        return cls.UNSET

    def as_bool(self) -> bool | None:
        if self is TriState.TRUE:
            return True
        if self is TriState.FALSE:
            return False
        return None


class NamespaceFlags(NamedTuple):
    enable_yunikorn: TriState = TriState.UNSET
    generate_app_id: TriState = TriState.UNSET


class NamespaceCache:
    """Per-namespace overrides, written by the cluster watcher and only read
    by the admission controller."""

    def __init__(self):
        self._lock = threading.RLock()
        self._namespaces: dict[str, NamespaceFlags] = {}

    def lookup(self, namespace: str) -> NamespaceFlags | None:
        with self._lock:
            return self._namespaces.get(namespace)

    def enable_yunikorn(self, namespace: str) -> TriState | None:
        flags = self.lookup(namespace)
        return flags.enable_yunikorn if flags is not None else None

    def generate_app_id(self, namespace: str) -> TriState | None:
        flags = self.lookup(namespace)
        return flags.generate_app_id if flags is not None else None

    def set(self, namespace: str, flags: NamespaceFlags):
        with self._lock:
            self._namespaces[namespace] = flags

    def delete(self, namespace: str):
        with self._lock:
            self._namespaces.pop(namespace, None)

    def __len__(self):
        with self._lock:
            return len(self._namespaces)


class PriorityClassCache:
    """Maps a priority class name to whether pods using it may be preempted."""

    def __init__(self):
        self._lock = threading.RLock()
        self._priority_classes: dict[str, bool] = {}

    def lookup(self, name: str) -> bool | None:
        with self._lock:
            return self._priority_classes.get(name)

    def is_preempt_self_allowed(self, name: str | None) -> bool:
        if not name:
            return True
        allowed = self.lookup(name)
        return True if allowed is None else allowed

    def set(self, name: str, allowed: bool):
        with self._lock:
            self._priority_classes[name] = allowed

    def delete(self, name: str):
        with self._lock:
            self._priority_classes.pop(name, None)

    def __len__(self):
        with self._lock:
            return len(self._priority_classes)
