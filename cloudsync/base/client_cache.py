"""
Shared provider clients.

Building a Compute Engine client opens a transport, so every controller
for the same provider, resource kind and config reuses one client.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable

CacheKey = tuple[str, str, str]


class ClientCache:
    """Process-wide, lock-guarded map of ``(provider, kind, config)`` to client."""

    _instance: ClientCache | None = None
    _clients: dict[CacheKey, Any]
    _lock: threading.Lock

    def __new__(cls) -> ClientCache:
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._clients = {}
            instance._lock = threading.Lock()
            cls._instance = instance
        return cls._instance

    @staticmethod
    def key(cloud_provider: str, kind: str, config: dict) -> CacheKey:
        return cloud_provider, kind, json.dumps(config, sort_keys=True, default=str)

    def get_or_create(
        self,
        cloud_provider: str,
        kind: str,
        config: dict,
        factory: Callable[[], Any],
    ) -> Any:
        """Return the client for this key, calling *factory* only on a miss."""
        key = self.key(cloud_provider, kind, config)
        with self._lock:
            if key not in self._clients:
                self._clients[key] = factory()
            return self._clients[key]

    def evict(self, cloud_provider: str, kind: str | None = None) -> int:
        """Drop the clients of one provider (or one of its kinds); return how many."""
        with self._lock:
            stale = [
                key for key in self._clients
                if key[0] == cloud_provider and (kind is None or key[1] == kind)
            ]
            for key in stale:
                del self._clients[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._clients.clear()

    def __len__(self) -> int:
        return len(self._clients)
