# edulink/utils/cache_invalidation.py
"""Cache invalidation utilities."""
from ..core.cache import cache_manager
from ..core.cache_decorators import tenant_cache_key

SUGGESTION_CACHE_PREFIX = "suggestions"


async def invalidate_suggestion_cache(tenant_id: str) -> int:
    """Drop every cached suggestion listing of one school."""
    pattern = tenant_cache_key(tenant_id, SUGGESTION_CACHE_PREFIX) + "*"
    return await cache_manager.delete_pattern(pattern)
