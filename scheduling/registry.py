"""
scheduling/registry.py
----------------------
HookCron – Lock-guarded registries

The trigger registry, the reminder timer registry and the output cache are
all instances of `Registry`. The raw dict never leaves the class; every
operation takes the lock for the length of one dict operation only.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger("hookcron.scheduling.registry")

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class Registry(Generic[K, V]):
    """Thread-safe mapping with atomic replace/remove operations."""

    def __init__(self, name: str = ""):
        self.name   = name
        self._items: dict[K, V] = {}
        self._lock  = threading.Lock()

    def set(self, key: K, value: V) -> Optional[V]:
        """Install *value* under *key*, returning whatever it displaced."""
        with self._lock:
            previous = self._items.get(key)
            self._items[key] = value
            return previous

    def get(self, key: K) -> Optional[V]:
        with self._lock:
            return self._items.get(key)

    def pop(self, key: K) -> Optional[V]:
        with self._lock:
            return self._items.pop(key, None)

    def pop_if(self, key: K, value: V) -> bool:
        """Remove *key* only while it still maps to *value* (identity)."""
        with self._lock:
            if self._items.get(key) is value:
                del self._items[key]
                return True
            return False

    def pop_where(self, predicate: Callable[[K], bool]) -> list[V]:
        with self._lock:
            keys = [k for k in self._items if predicate(k)]
            return [self._items.pop(k) for k in keys]

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._items)

    def snapshot(self) -> dict[K, V]:
        with self._lock:
            return dict(self._items)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class OutputCache:
    """Most recent primary-webhook response per job id."""

    def __init__(self):
        self._outputs: Registry[str, str] = Registry("outputs")

    def store(self, job_id: str, output: str) -> None:
        self._outputs.set(job_id, output)
        logger.debug("[Outputs] Stored %d byte(s) for job %s", len(output), job_id)

    def get(self, job_id: str) -> str:
        return self._outputs.get(job_id) or ""

    def clear(self, job_id: str) -> None:
        self._outputs.pop(job_id)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._outputs

    def __len__(self) -> int:
        return len(self._outputs)
