"""
Decides which requests are response cache candidates.
"""

from typing import FrozenSet

# First path segment of the read API resource collections.
CACHEABLE_ROOTS: FrozenSet[str] = frozenset({
    "communities",
    "collections",
    "items",
    "bitstreams",
    "handle",
})

# Bitstream content is streamed, never cached.
STREAMED_SEGMENT = "retrieve"


def is_cacheable(path: str) -> bool:
    """Whether the response for ``path`` may be served from or stored in the cache."""
    segments = [segment for segment in path.split("/") if segment]
    if not segments or segments[0] not in CACHEABLE_ROOTS:
        return False
    return STREAMED_SEGMENT not in segments
