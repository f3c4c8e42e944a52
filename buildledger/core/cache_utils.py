"""
Read-through caching for the dashboard, the summary report and the product list.
The backend is django-redis when REDIS_URL is set, local memory otherwise.
"""
import hashlib
import logging
from functools import wraps

from django.core.cache import cache

logger = logging.getLogger(__name__)

# Seconds
PRODUCTS_LIST_CACHE_TTL = 120
DASHBOARD_CACHE_TTL = 60
REPORTS_CACHE_TTL = 300


def make_cache_key(prefix, *args, **kwargs):
    """`prefix:<md5 of the arguments>`; the prefix is what invalidation matches on"""
    raw = repr((args, sorted(kwargs.items())))
    return f"{prefix}:{hashlib.md5(raw.encode()).hexdigest()}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Cache a function's return value per argument set.

        @cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix='dashboard')
        def build_dashboard(day): ...

    Arguments must have a stable repr, so pass dates and tuples rather than querysets.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            key = make_cache_key(key_prefix, *args, **kwargs)
            hit = cache.get(key)
            if hit is not None:
                logger.debug(f"{key_prefix} served from cache ({key})")
                return hit
            value = func(*args, **kwargs)
            cache.set(key, value, cache_ttl)
            logger.debug(f"{key_prefix} cached for {cache_ttl}s ({key})")
            return value
        return wrapper
    return decorator
