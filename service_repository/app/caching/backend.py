"""
Storage contract shared by the response cache backends.
"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from .policy import CachePolicy


class CacheStatus(BaseModel):
    """Entry count and approximate memory use of the active backend."""

    entries: int
    size: int


class CacheBackend(ABC):
    """A blind string store keyed by request identity.

    Implementations own entry lifetime (capacity and retention eviction)
    and must be safe under concurrent use by in-flight requests.
    """

    name: str = "backend"

    def __init__(self, policy: Optional[CachePolicy] = None):
        self.policy = policy or CachePolicy()

    @property
    def ready(self) -> bool:
        """Whether the backend can serve requests."""
        return True

    async def open(self) -> None:
        """Acquire external resources before first use."""

    async def close(self) -> None:
        """Release external resources."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None; refreshes the entry's idle clock."""

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Store value under key, evicting as the policy requires."""

    @abstractmethod
    async def invalidate_all(self) -> None:
        """Drop every entry."""

    @abstractmethod
    async def status(self) -> CacheStatus:
        """Report entry count and approximate size in bytes."""
