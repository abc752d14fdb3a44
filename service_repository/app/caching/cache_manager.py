"""
Response cache coordinator.

Sits between the HTTP pipeline and the active backend: looks a request up
before its handler runs, writes the handler's output back afterwards, and
serves the cache control surface (status, flush).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from fastapi import Request

from shared.errors import CacheBackendError
from shared.logging import get_logger
from ..negotiation import response_media_type
from .backend import CacheBackend, CacheStatus
from .cacheability import is_cacheable
from .keys import build_cache_key
from .local_store import LocalStore
from .policy import parse_policy
from .redis_store import RedisStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import BaseConfig
    from shared.metrics import MetricsCollector


CACHEABLE_METHODS = frozenset({"GET"})


class CacheState(str, Enum):
    """Per-request cache outcome, decided once before dispatch."""

    NONE = "none"
    MISS = "miss"
    HIT = "hit"


@dataclass(frozen=True)
class CacheControl:
    """Request-scoped cache state; never outlives its request."""

    state: CacheState
    key: Optional[str] = None
    media_type: Optional[str] = None
    value: Optional[str] = None

    @property
    def outcome(self) -> str:
        return self.state.value

    @property
    def hit(self) -> bool:
        return self.state is CacheState.HIT


NOT_CACHED = CacheControl(CacheState.NONE)


class CacheManager:
    """Coordinates the single active response cache backend.

    A manager without a backend (caching disabled, or the backend failed to
    start) treats every request as a non-candidate. Backend failures never
    reach the request path: a failed read is a miss and a failed write is
    logged and dropped.
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.backend = backend
        self.metrics = metrics
        self.logger = get_logger("repository.cache_manager")

    @classmethod
    def from_config(cls, config: "BaseConfig", metrics: Optional["MetricsCollector"] = None) -> "CacheManager":
        """Select and build the backend named by configuration."""
        logger = get_logger("repository.cache_manager")
        if not config.cache_enabled:
            logger.info("Response cache disabled")
            return cls(None, metrics=metrics)

        policy = parse_policy(config.cache)
        if config.redis_host:
            backend: CacheBackend = RedisStore(
                config.redis_host,
                policy,
                port=config.redis_port,
                db=config.redis_db,
                pool_size=config.redis_pool_size,
                pool_timeout=config.redis_pool_timeout,
                socket_timeout=config.redis_socket_timeout,
            )
        else:
            backend = LocalStore(policy)

        logger.info("Response cache configured", backend=backend.name)
        return cls(backend, metrics=metrics)

    @property
    def active(self) -> bool:
        return self.backend is not None and self.backend.ready

    @property
    def backend_name(self) -> Optional[str]:
        return self.backend.name if self.backend is not None else None

    async def start(self) -> None:
        """Open the backend; on failure caching stays off for the process lifetime."""
        if self.backend is None:
            return
        try:
            await self.backend.open()
        except CacheBackendError as exc:
            self.logger.error(
                "Cache backend unavailable, caching disabled",
                backend=self.backend.name,
                error=exc.message,
            )
            self.backend = None

    async def stop(self) -> None:
        if self.backend is not None:
            await self.backend.close()

    def is_candidate(self, path: str) -> bool:
        return self.active and is_cacheable(path)

    async def lookup(self, request: Request) -> CacheControl:
        """Decide the cache state of an inbound request."""
        if request.method not in CACHEABLE_METHODS:
            return NOT_CACHED
        return await self.evaluate(
            request.url.path,
            request.url.query,
            request.headers.get("accept"),
        )

    async def evaluate(self, path: str, raw_query: str, accept: Optional[str]) -> CacheControl:
        if not self.is_candidate(path):
            self._record_lookup("none")
            return NOT_CACHED

        media_type = response_media_type(accept)
        key = build_cache_key(path, raw_query, media_type)
        value = await self._safe_get(key)
        if value is None:
            self._record_lookup("miss")
            return CacheControl(CacheState.MISS, key, media_type)

        self._record_lookup("hit")
        return CacheControl(CacheState.HIT, key, media_type, value)

    async def _safe_get(self, key: str) -> Optional[str]:
        try:
            if self.metrics:
                with self.metrics.time_operation(
                    "cache_operation_duration_seconds", backend=self.backend_name, operation="get"
                ):
                    return await self.backend.get(key)
            return await self.backend.get(key)
        except CacheBackendError as exc:
            self.logger.warning("Cache fetch error, treating as miss", key=key, error=exc.message)
            self._record_error("get")
            return None

    async def remember(self, control: CacheControl, body: str) -> bool:
        """Write a handler's response back; only a MISS is ever stored."""
        if control.state is not CacheState.MISS or not self.active:
            return False

        try:
            await self.backend.put(control.key, body)
        except CacheBackendError as exc:
            self.logger.warning("Cache write dropped", key=control.key, error=exc.message)
            self._record_error("put")
            self._record_write("failed")
            return False

        self._record_write("stored")
        return True

    async def status(self) -> Optional[CacheStatus]:
        """Backend status, or None when caching is not active.

        Raises CacheBackendError when the backend cannot report.
        """
        if not self.active:
            return None
        try:
            return await self.backend.status()
        except CacheBackendError:
            self._record_error("status")
            raise

    async def control(self, command: Optional[str]) -> bool:
        """Run a control command; returns whether it was recognized."""
        if command == "flush":
            await self.flush()
            return True

        self.logger.info("Unknown cache command", command=command)
        return False

    async def flush(self) -> None:
        if not self.active:
            return
        try:
            await self.backend.invalidate_all()
        except CacheBackendError as exc:
            self.logger.error("Cache flush failed", backend=self.backend_name, error=exc.message)
            self._record_error("flush")

    def _record_lookup(self, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_lookup(self.backend_name or "disabled", result)

    def _record_write(self, result: str) -> None:
        if self.metrics:
            self.metrics.record_cache_write(self.backend_name, result)

    def _record_error(self, operation: str) -> None:
        if self.metrics:
            self.metrics.record_cache_error(self.backend_name, operation)
