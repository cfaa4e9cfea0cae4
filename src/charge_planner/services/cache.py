from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

from django.core.cache import cache

logger = logging.getLogger(__name__)


class InflightRequests:
    """Collapses concurrent loads of the same key into a single call.

    The first caller for a key runs the loader; callers arriving while it is
    still running block on the same future and receive its result or error.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, Future[Any]] = {}

    def run(self, key: str, loader: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._pending.get(key)
            is_leader = future is None
            if is_leader:
                future = Future()
                self._pending[key] = future

        if not is_leader:
            logger.debug("Waiting on in-flight request for %s", key)
            return future.result()

        try:
            result = loader()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._pending.pop(key, None)


_inflight = InflightRequests()


def make_cache_key(prefix: str, raw: str) -> str:
    digest = hashlib.sha256(raw.encode()).hexdigest()
    return f"{prefix}:{digest}"


def get_or_load(key: str, loader: Callable[[], Any], timeout: int) -> Any:
    """Return the cached value for ``key``, loading and storing it on a miss.

    Values must be picklable; ``None`` is never cached.
    """
    cached = cache.get(key)
    if cached is not None:
        return cached

    def load() -> Any:
        value = cache.get(key)
        if value is None:
            value = loader()
            cache.set(key, value, timeout=timeout)
        return value

    return _inflight.run(key, load)
