# edulink/core/cache_decorators.py
"""Cache decorators for FastAPI endpoints."""
import functools
from typing import Callable, Optional

from .cache import cache_manager


def tenant_cache_key(tenant_id: str, key_prefix: str, *parts) -> str:
    return cache_manager.make_key("tenant", tenant_id, key_prefix, *parts)


def cache_response(key_prefix: str, ttl: Optional[int] = None):
    """Cache a tenant-scoped endpoint's return value, keyed by its parameters.

    The endpoint must take a ``tenant_id`` keyword and return picklable data.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            key_parts = [
                f"{key}:{value}" for key, value in sorted(kwargs.items())
                if key not in ("tenant_id", "db", "request", "cache")
            ]
            cache_key = tenant_cache_key(kwargs.get("tenant_id"), key_prefix, *key_parts)

            cached_result = await cache_manager.get(cache_key)
            if cached_result is not None:
                return cached_result

            result = await func(*args, **kwargs)
            await cache_manager.set(cache_key, result, expire=ttl)
            return result

        return wrapper
    return decorator
