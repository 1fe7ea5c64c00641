"""Cache entry: one key's metadata, payload and durable backing."""

import logging
import math
import threading
import time
from typing import Any, Callable, Optional, Tuple

from typing_extensions import TypedDict

from nestcache.errors import NestError
from nestcache.policies import ExpirationPolicy, PersistencePolicy

logger = logging.getLogger(__name__)

# Reads a backing file: (filename, codec name) -> payload, raising NestError
PayloadLoader = Callable[[str, str], Any]

DEFAULT_CODEC = "joblib"


class IndexRecord(TypedDict, total=False):
    """Metadata for one persisted entry in the durable index."""

    key: str
    expiration_policy: str  # e.g. 'short', 'custom:90.0'
    persistence_policy: str  # 'mirror', 'short', 'medium', 'long'
    filename: str  # Backing file name inside the storage directory
    codec: str  # Codec that wrote the backing file
    persistence_expires_at: float  # Unix timestamp when the disk copy expires


class Entry:
    """One cached item.

    Holds the key, both policies, the derived expiration timestamps and
    optionally the in-memory payload and the name of the backing file that
    mirrors it on disk.

    The payload and timestamps sit behind a per-entry lock so that a lazy
    reload from disk cannot race an invalidation or another reload. The key,
    policies, backing file name and generation never change after
    construction.

    Attributes:
        key: Cache key
        expiration_policy: In-memory time-to-live
        persistence_policy: On-disk time-to-live
        filename: Backing file name inside the storage directory, or None
        codec: Name of the codec that wrote the backing file
        generation: Store-assigned counter identifying this occupant of the key
    """

    def __init__(
        self,
        key: str,
        value: Any,
        expiration_policy: ExpirationPolicy,
        persistence_policy: PersistencePolicy = PersistencePolicy.DISABLED,
        filename: Optional[str] = None,
        codec: Optional[str] = None,
        generation: int = 0,
        loader: Optional[PayloadLoader] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.key = key
        self.expiration_policy = expiration_policy
        self.persistence_policy = persistence_policy
        self.filename = filename
        self.codec = codec if filename is not None else None
        self.generation = generation
        self._loader = loader
        self._clock = clock
        self._lock = threading.Lock()
        self._value = value

        self.expires_at: Optional[float] = None
        self.persistence_expires_at: Optional[float] = None
        if value is not None:
            self._set_expiration_dates()
        else:
            self._set_persistence_date()

    # =========================================================================
    # Payload
    # =========================================================================

    @property
    def is_loaded(self) -> bool:
        """True if the payload is currently held in memory."""
        with self._lock:
            return self._value is not None

    def value(self) -> Optional[Any]:
        """Get the payload, reloading it from the backing file if needed.

        A successful reload caches the payload and restarts both the memory
        and the disk time-to-live from now.

        Returns:
            The payload, or None if it is neither in memory nor readable
            from disk (the caller should then drop this entry)
        """
        return self.fetch()[0]

    def fetch(self) -> Tuple[Optional[Any], bool]:
        """Like value(), also reporting whether this call hit the disk.

        Of several threads racing on an evicted payload, exactly one sees
        ``reloaded=True``.

        Returns:
            (payload or None, True if the payload was reloaded by this call)
        """
        with self._lock:
            if self._value is not None:
                return self._value, False

            if self.filename is None or self._loader is None:
                return None, False

            try:
                value = self._loader(self.filename, self.codec or DEFAULT_CODEC)
            except NestError as e:
                logger.warning(f"Cannot reload '{self.key}' from {self.filename}: {e}")
                return None, False

            if value is None:
                return None, False

            self._value = value
            self._set_expiration_dates()
            logger.debug(f"Reloaded '{self.key}' from {self.filename}")
            return value, True

    def invalidate(self) -> None:
        """Drop the in-memory payload, keeping policies and backing file."""
        with self._lock:
            self._value = None

    # =========================================================================
    # Expiration
    # =========================================================================

    def is_expired(self, now: float) -> bool:
        """True if the memory time-to-live has passed at ``now``."""
        return self.expires_at is not None and self.expires_at <= now

    def is_persistence_expired(self, now: float) -> bool:
        """True if there is no live disk copy at ``now``."""
        return self.persistence_expires_at is None or self.persistence_expires_at <= now

    def _set_expiration_dates(self) -> None:
        self.expires_at = self._clock() + self.expiration_policy.seconds
        self._set_persistence_date()

    def _set_persistence_date(self) -> None:
        duration = self.persistence_policy.duration_for(self.expiration_policy)
        if duration > 0:
            self.persistence_expires_at = self._clock() + duration
        else:
            self.persistence_expires_at = None

    # =========================================================================
    # Index records
    # =========================================================================

    def to_record(self) -> IndexRecord:
        """Build the metadata record stored in the durable index.

        Returns:
            Dict with key, policy strings and, when present, the backing
            file, codec and finite disk expiration time. Never the payload.
        """
        record: IndexRecord = {
            "key": self.key,
            "expiration_policy": self.expiration_policy.to_string(),
            "persistence_policy": self.persistence_policy.to_string(),
        }
        if self.filename is not None:
            record["filename"] = self.filename
            record["codec"] = self.codec or DEFAULT_CODEC
        if self.persistence_expires_at is not None and math.isfinite(
            self.persistence_expires_at
        ):
            record["persistence_expires_at"] = self.persistence_expires_at
        return record

    @classmethod
    def from_record(
        cls,
        record: Any,
        generation: int = 0,
        loader: Optional[PayloadLoader] = None,
        clock: Callable[[], float] = time.time,
    ) -> Optional["Entry"]:
        """Rebuild an entry from an index record, without its payload.

        Args:
            record: Dict produced by to_record()
            generation: Generation to assign to the rebuilt entry
            loader: Reader used for lazy reloads
            clock: Time source

        Returns:
            Entry, or None if the key or either policy is missing or invalid
        """
        if not isinstance(record, dict):
            return None

        key = record.get("key")
        expiration_policy = ExpirationPolicy.from_string(record.get("expiration_policy"))
        persistence_policy = PersistencePolicy.from_string(record.get("persistence_policy"))
        if not isinstance(key, str) or expiration_policy is None or persistence_policy is None:
            return None

        filename = record.get("filename")
        if not isinstance(filename, str):
            filename = None
        codec = record.get("codec")
        if not isinstance(codec, str):
            codec = DEFAULT_CODEC

        entry = cls(
            key,
            None,
            expiration_policy,
            persistence_policy,
            filename=filename,
            codec=codec,
            generation=generation,
            loader=loader,
            clock=clock,
        )

        stored = record.get("persistence_expires_at")
        if isinstance(stored, (int, float)) and not isinstance(stored, bool):
            entry.persistence_expires_at = float(stored)

        return entry

    def __repr__(self) -> str:
        return (
            f"Entry(key={self.key!r}, expiration={self.expiration_policy}, "
            f"persistence={self.persistence_policy.to_string()}, "
            f"filename={self.filename!r}, generation={self.generation})"
        )
