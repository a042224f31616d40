"""In-process TTL cache with stale fallback for record repositories.

Uses cachetools.TTLCache for zero-infrastructure caching. Each repository
owns its cache instances, so two repositories over different stores never
share entries.

When the backing store fails, reads fall back to stale (TTL-expired)
cached values so dispatch keeps working with last-known-good records.
"""

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Sentinel object to distinguish "not in cache" from cached None values
MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """Async-aware TTL cache with a stale fallback store.

    Two tiers:
      1. ``_cache`` (TTLCache): fresh records, governed by *ttl*.
      2. ``_stale`` (OrderedDict, LRU, bounded by *maxsize*): last-known-good
         records that survive TTL expiry. Read only when the store fails.
    """

    def __init__(self, maxsize: int = 256, ttl: float = 300.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            if len(self._locks) > self._maxsize * 2:
                live = set(self._stale)
                for k in list(self._locks):
                    if k not in live and k not in self._cache and not self._locks[k].locked():
                        del self._locks[k]
        return self._locks[key]

    def get(self, key: str) -> Any:
        """Return fresh value or ``MISSING``."""
        return self._cache.get(key, MISSING)

    def set(self, key: str, value: Any) -> None:
        """Write to both fresh cache and stale store."""
        self._cache[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def invalidate(self, key: str) -> None:
        """Drop a key from both tiers.

        Record writes go through here, so a stale copy must not outlive the
        write that replaced it.
        """
        self._cache.pop(key, None)
        self._stale.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()
        self._stale.clear()

    def get_stale(self, key: str) -> Any:
        """Return last-known-good value or ``MISSING``."""
        value = self._stale.get(key, MISSING)
        if value is not MISSING:
            self._stale.move_to_end(key)
        return value

    @property
    def size(self) -> int:
        return len(self._cache)

    @property
    def stale_size(self) -> int:
        return len(self._stale)


def cached(
    cache: AsyncTTLCache | str,
    key_func: Callable[..., str],
    *,
    retry: int = 3,
    retry_delay: float = 0.5,
):
    """Decorator for caching async reads with store resilience.

    Parameters
    ----------
    cache : AsyncTTLCache | str
        The cache instance, or the name of an attribute holding it on the
        first positional argument (``self``) for per-instance caches.
    key_func : callable
        Receives the same ``(*args, **kwargs)`` as the decorated function
        and returns the cache key string.
    retry : int
        Max number of attempts on store failure (default 3).
    retry_delay : float
        Base delay between attempts; grows linearly with the attempt number.

    Behaviour on store failure
    --------------------------
    After *retry* attempts the decorator checks the **stale** store. If a
    stale value exists it is returned with a warning log, otherwise the
    original exception is re-raised.
    """

    def _resolve(args: tuple[Any, ...]) -> AsyncTTLCache:
        if isinstance(cache, str):
            return getattr(args[0], cache)
        return cache

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            store = _resolve(args)
            cache_key = key_func(*args, **kwargs)

            result = store.get(cache_key)
            if result is not MISSING:
                return result

            async with store._get_lock(cache_key):
                result = store.get(cache_key)
                if result is not MISSING:
                    return result

                last_exc: BaseException | None = None
                for attempt in range(1, retry + 1):
                    try:
                        result = await func(*args, **kwargs)
                        store.set(cache_key, result)
                        return result
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        last_exc = exc
                        if attempt < retry:
                            delay = retry_delay * attempt
                            logger.warning(
                                "Store attempt %d/%d failed for %s: %s, retrying in %.1fs…",
                                attempt,
                                retry,
                                cache_key,
                                type(exc).__name__,
                                delay,
                            )
                            await asyncio.sleep(delay)

                stale = store.get_stale(cache_key)
                if stale is not MISSING:
                    logger.warning(
                        "Returning stale data for %s (%s)",
                        cache_key,
                        type(last_exc).__name__,
                    )
                    return stale

                raise last_exc  # type: ignore[misc]

        return wrapper  # type: ignore[return-value]

    return decorator
