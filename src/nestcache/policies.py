"""Expiration and persistence policies.

Both policy types map a named level to a duration in seconds and have a
canonical string form used by the durable index. Parsing is total: a string
that matches no policy yields ``None`` rather than raising.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional

CUSTOM_PREFIX = "custom:"


@dataclass(frozen=True)
class ExpirationPolicy:
    """In-memory time-to-live of a cache entry.

    Use the predefined levels or :meth:`custom` for an arbitrary duration.

    Examples:
        >>> ExpirationPolicy.SHORT.seconds
        60.0
        >>> ExpirationPolicy.custom(90).to_string()
        'custom:90.0'
        >>> ExpirationPolicy.from_string('custom:90.0') == ExpirationPolicy.custom(90)
        True
    """

    name: str
    seconds: float

    SHORT: ClassVar["ExpirationPolicy"]
    MEDIUM: ClassVar["ExpirationPolicy"]
    LONG: ClassVar["ExpirationPolicy"]
    MAX: ClassVar["ExpirationPolicy"]
    NEVER: ClassVar["ExpirationPolicy"]

    @classmethod
    def custom(cls, seconds: float) -> "ExpirationPolicy":
        """Create a policy with a caller supplied duration.

        Args:
            seconds: Duration in seconds (positive and finite)

        Returns:
            ExpirationPolicy with name ``custom``

        Raises:
            ValueError: If seconds is not a positive finite number
        """
        seconds = float(seconds)
        if not math.isfinite(seconds) or seconds <= 0:
            raise ValueError(f"Custom expiration must be positive and finite, got {seconds}")
        return cls("custom", seconds)

    @property
    def is_custom(self) -> bool:
        return self.name == "custom"

    @property
    def is_finite(self) -> bool:
        """False only for :attr:`NEVER`."""
        return math.isfinite(self.seconds)

    def to_string(self) -> str:
        """Canonical string form, e.g. ``'short'`` or ``'custom:90.0'``."""
        if self.is_custom:
            return f"{CUSTOM_PREFIX}{self.seconds!r}"
        return self.name

    @classmethod
    def from_string(cls, raw: Any) -> Optional["ExpirationPolicy"]:
        """Parse a canonical string.

        Args:
            raw: String produced by :meth:`to_string`

        Returns:
            The matching policy, or None if nothing matches
        """
        if not isinstance(raw, str):
            return None
        if raw in _NAMED_EXPIRATIONS:
            return _NAMED_EXPIRATIONS[raw]
        if not raw.startswith(CUSTOM_PREFIX):
            return None
        try:
            return cls.custom(float(raw[len(CUSTOM_PREFIX) :]))
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.to_string()


ExpirationPolicy.SHORT = ExpirationPolicy("short", 60.0)
ExpirationPolicy.MEDIUM = ExpirationPolicy("medium", 300.0)
ExpirationPolicy.LONG = ExpirationPolicy("long", 600.0)
ExpirationPolicy.MAX = ExpirationPolicy("max", 900.0)
ExpirationPolicy.NEVER = ExpirationPolicy("never", math.inf)

_NAMED_EXPIRATIONS = {
    policy.name: policy
    for policy in (
        ExpirationPolicy.SHORT,
        ExpirationPolicy.MEDIUM,
        ExpirationPolicy.LONG,
        ExpirationPolicy.MAX,
        ExpirationPolicy.NEVER,
    )
}


class PersistencePolicy(Enum):
    """On-disk time-to-live of a cache entry, independent of the memory TTL.

    Levels:
        DISABLED: Never written to disk
        MIRROR: Disk copy lives exactly as long as the memory copy
        SHORT: One day
        MEDIUM: Three days
        LONG: Ten days

    Examples:
        >>> PersistencePolicy.SHORT.duration_for(ExpirationPolicy.SHORT)
        86400.0
        >>> PersistencePolicy.MIRROR.duration_for(ExpirationPolicy.LONG)
        600.0
        >>> PersistencePolicy.from_string('bogus') is None
        True
    """

    DISABLED = "disabled"
    MIRROR = "mirror"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    def duration_for(self, expiration: ExpirationPolicy) -> float:
        """Resolve the on-disk duration in seconds.

        Args:
            expiration: Expiration policy of the same entry (used by MIRROR)

        Returns:
            Duration in seconds, 0 for DISABLED
        """
        if self is PersistencePolicy.MIRROR:
            return expiration.seconds
        return _PERSISTENCE_SECONDS[self]

    @property
    def is_enabled(self) -> bool:
        return self is not PersistencePolicy.DISABLED

    @property
    def keeps_entry_after_expiration(self) -> bool:
        """Whether the entry outlives its memory TTL (payload reloadable from disk)."""
        return self in (
            PersistencePolicy.SHORT,
            PersistencePolicy.MEDIUM,
            PersistencePolicy.LONG,
        )

    def to_string(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, raw: Any) -> Optional["PersistencePolicy"]:
        """Parse a canonical string, returning None if nothing matches."""
        try:
            return cls(raw)
        except (TypeError, ValueError):
            return None


_PERSISTENCE_SECONDS = {
    PersistencePolicy.DISABLED: 0.0,
    PersistencePolicy.SHORT: 86400.0,
    PersistencePolicy.MEDIUM: 259200.0,
    PersistencePolicy.LONG: 864000.0,
}
