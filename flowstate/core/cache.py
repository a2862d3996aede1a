"""
Caching
"""

# pyright: basic

from hashlib import blake2s

from aiocache import SimpleMemoryCache
from aiocache.serializers import JsonSerializer

from flowstate.core.config import settings

__all__ = ("FINGERPRINT_LENGTH", "cache", "fingerprint", "make_cache_key")

FINGERPRINT_LENGTH = 200

cache = SimpleMemoryCache(
    serializer=JsonSerializer(),
    namespace=settings.PROJECT_NAME,
    ttl=settings.ANALYSIS_CACHE_TTL,
)


def make_cache_key(*args: str) -> str:
    """Create a cache key by hashing the given arguments."""
    h = blake2s()
    for arg in args:
        h.update(arg.encode("utf-8"))
        h.update(b"\0")
    return h.hexdigest()


def fingerprint(html: str, *scope: str) -> str:
    """Content fingerprint of an element: a hash of its truncated markup plus any ``scope`` parts."""
    return make_cache_key("element", html[:FINGERPRINT_LENGTH], *scope)
