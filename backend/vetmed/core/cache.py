"""Process-local TTL cache for computed due boards.

Entries live under a scope (the household id) so that anything changing what
is due for a household can drop all of its boards at once. Per process only;
several workers each keep their own copy.
"""

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from vetmed.core.config import settings


class ScopedTTLCache:
    def __init__(self, ttl_seconds: float, timer: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._timer = timer
        self._scopes: Dict[Hashable, Dict[Hashable, Tuple[float, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, scope: Hashable, key: Hashable) -> Optional[Any]:
        with self._lock:
            entries = self._scopes.get(scope)
            if not entries or key not in entries:
                return None
            expires, value = entries[key]
            if self._timer() >= expires:
                del entries[key]
                return None
            return value

    def put(self, scope: Hashable, key: Hashable, value: Any) -> None:
        # a zero TTL turns caching off
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._scopes.setdefault(scope, {})[key] = (self._timer() + self.ttl_seconds, value)

    def drop_scope(self, scope: Hashable) -> int:
        """Forget every entry of one scope; returns how many were held."""
        with self._lock:
            return len(self._scopes.pop(scope, {}))

    def clear(self) -> None:
        with self._lock:
            self._scopes.clear()


due_boards = ScopedTTLCache(settings.due_cache_ttl_seconds)
