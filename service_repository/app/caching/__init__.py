"""
Response caching package.

Caches serialized read API responses keyed by request path, query string
and negotiated media type. Exactly one backend is active per process:
an in-process LRU store or a shared Redis store.
"""

from .backend import CacheBackend, CacheStatus
from .cache_manager import CacheControl, CacheManager, CacheState
from .local_store import LocalStore
from .policy import CachePolicy, Retention, parse_policy
from .redis_store import RedisStore

__all__ = [
    "CacheBackend",
    "CacheControl",
    "CacheManager",
    "CachePolicy",
    "CacheState",
    "CacheStatus",
    "LocalStore",
    "RedisStore",
    "Retention",
    "parse_policy",
]
