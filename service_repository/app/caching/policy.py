"""
Cache policy parsing.

The policy string has the form ``"<maxEntries>:<retention>"`` where either
side may be empty and retention is an integer followed by one of the unit
characters ``d``, ``h``, ``m`` or ``s`` (e.g. ``"500:2h"``, ``":30m"``,
``"1000:"``). A malformed sub-setting is logged and dropped; the other one
still applies.
"""

from dataclasses import dataclass
from typing import Optional

from shared.errors import CacheConfigurationError
from shared.logging import get_logger


logger = get_logger("repository.cache.policy")

UNIT_SECONDS = {
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}


@dataclass(frozen=True)
class Retention:
    """Idle lifetime of a cache entry."""

    magnitude: int
    unit: str

    @property
    def seconds(self) -> int:
        return self.magnitude * UNIT_SECONDS[self.unit]

    def __str__(self) -> str:
        return f"{self.magnitude}{self.unit}"


@dataclass(frozen=True)
class CachePolicy:
    """Capacity and retention bounds for the active cache backend."""

    max_entries: Optional[int] = None
    retention: Optional[Retention] = None

    @property
    def retention_seconds(self) -> Optional[int]:
        return self.retention.seconds if self.retention else None


def parse_max_entries(raw: str) -> int:
    """Parse the capacity field; raises CacheConfigurationError."""
    try:
        value = int(raw)
    except ValueError:
        raise CacheConfigurationError("Invalid cache size", {"value": raw})
    if value <= 0:
        raise CacheConfigurationError("Cache size must be positive", {"value": raw})
    return value


def parse_retention(raw: str) -> Retention:
    """Parse a retention field such as ``"15m"``; raises CacheConfigurationError."""
    unit = raw[-1]
    if unit not in UNIT_SECONDS:
        raise CacheConfigurationError("Unknown time unit", {"value": raw, "unit": unit})
    try:
        magnitude = int(raw[:-1])
    except ValueError:
        raise CacheConfigurationError("Invalid retention magnitude", {"value": raw})
    if magnitude <= 0:
        raise CacheConfigurationError("Retention must be positive", {"value": raw})
    return Retention(magnitude, unit)


def parse_policy(raw: Optional[str]) -> CachePolicy:
    """Parse a policy string into a CachePolicy.

    ``None`` or an empty string yields an unbounded policy. Fields beyond the
    second are ignored.
    """
    if not raw:
        return CachePolicy()

    fields = [field.strip() for field in raw.split(":")]
    size_field = fields[0]
    retain_field = fields[1] if len(fields) > 1 else ""

    max_entries = None
    if size_field:
        try:
            max_entries = parse_max_entries(size_field)
        except CacheConfigurationError as exc:
            logger.warning("Ignoring cache size setting", error=exc.message, **exc.details)

    retention = None
    if retain_field:
        try:
            retention = parse_retention(retain_field)
        except CacheConfigurationError as exc:
            logger.warning("Ignoring cache retention setting", error=exc.message, **exc.details)

    policy = CachePolicy(max_entries=max_entries, retention=retention)
    logger.info(
        "Cache policy parsed",
        max_entries=max_entries,
        retention=str(retention) if retention else None,
    )
    return policy
