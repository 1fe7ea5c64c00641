"""Store: the synchronized key -> Entry map with disk-backed persistence."""

import itertools
import logging
import threading
import time
import uuid
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from filelock import FileLock, Timeout

from nestcache.base.registry import CodecRegistry, get_registry
from nestcache.config import StoreConfig, get_global_config
from nestcache.entry import Entry
from nestcache.errors import CodecError, NestError, StorageError
from nestcache.policies import ExpirationPolicy, PersistencePolicy
from nestcache.scheduling import TimerScheduler
from nestcache.storage.backend import StorageBackend

logger = logging.getLogger(__name__)

INDEX_SCHEMA_VERSION = "1.0"


def key(owner: str, parameters: Iterable[Any] = ()) -> str:
    """Build a cache key grouped under an owner prefix.

    Args:
        owner: Owner prefix, usable later with Store.clear(owner)
        parameters: Values distinguishing entries of the same owner

    Returns:
        Key of the form ``"<owner>-<p1>|<p2>|..."``

    Examples:
        >>> key('user', ['42', 'avatar'])
        'user-42|avatar'
    """
    return f"{owner}-{'|'.join(str(p) for p in parameters)}"


class Store:
    """Process-embedded key-value cache with optional on-disk mirroring.

    Every entry has an in-memory time-to-live (ExpirationPolicy) and an
    independent on-disk time-to-live (PersistencePolicy). Persisted payloads
    are written to one backing file per add; a metadata-only durable index
    lets a new Store on the same directory rehydrate them lazily.

    Thread-safe: a single lock guards the key -> Entry map and is never held
    during file I/O. Index writes and file deletes run on one background
    worker, in submission order.

    Examples:
        >>> store = Store()
        >>> store.add([1, 2, 3], 'numbers', ExpirationPolicy.SHORT, PersistencePolicy.SHORT)
        >>> store.get('numbers')
        [1, 2, 3]
        >>> store.clear(owner='num')
        1
    """

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        storage: Optional[StorageBackend] = None,
        registry: Optional[CodecRegistry] = None,
        clock: Callable[[], float] = time.time,
        scheduler: Optional[TimerScheduler] = None,
    ):
        """Initialize the store and load the durable index.

        Args:
            config: Store configuration (defaults to StoreConfig())
            storage: Storage backend (resolved from config if None)
            registry: Codec registry (process-wide default if None)
            clock: Time source returning seconds since the epoch
            scheduler: Timer scheduler for expiration callbacks
        """
        self.config = config or StoreConfig()
        self._registry = registry or get_registry()
        self._clock = clock
        self._scheduler = scheduler or TimerScheduler()

        if not self.config.persistence_enabled:
            self._storage = StorageBackend(None)
        else:
            self._storage = storage or StorageBackend.resolve(
                self.config.cache_dir, self.config.fallback_dir
            )
            if not self._storage.available:
                warnings.warn(
                    f"No writable storage directory (tried {self.config.cache_dir}); "
                    f"persistence is disabled for this store"
                )

        self._lock = threading.RLock()
        self._entries: Dict[str, Entry] = {}
        self._generations = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="nestcache-io")
        self._closed = False

        self._load()

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    @property
    def persistence_available(self) -> bool:
        """True if adds can be mirrored to disk."""
        return self._storage.available

    # =========================================================================
    # Add / get
    # =========================================================================

    def add(
        self,
        value: Any,
        key: str,
        expiration_policy: ExpirationPolicy,
        persistence_policy: PersistencePolicy = PersistencePolicy.DISABLED,
    ) -> None:
        """Cache a value, replacing any entry under the same key.

        If persistence is requested, the value is serialized and written to a
        new backing file first. Any failure on that path (no capable codec,
        encode error, no storage directory, write error) silently downgrades
        the entry to PersistencePolicy.DISABLED.

        Args:
            value: Value to cache (not None)
            key: Cache key
            expiration_policy: In-memory time-to-live
            persistence_policy: On-disk time-to-live

        Raises:
            ValueError: If value is None
            TypeError: If key is not a string
        """
        if value is None:
            raise ValueError("Cannot cache None")
        if not isinstance(key, str):
            raise TypeError(f"Cache keys must be strings, got {type(key).__name__}")

        filename, codec_name = None, None
        resolved = persistence_policy
        if resolved.is_enabled:
            filename, codec_name = self._write_payload(key, value)
            if filename is None:
                resolved = PersistencePolicy.DISABLED

        with self._lock:
            entry = Entry(
                key,
                value,
                expiration_policy,
                resolved,
                filename=filename,
                codec=codec_name,
                generation=next(self._generations),
                loader=self._read_payload,
                clock=self._clock,
            )
            previous = self._entries.get(key)
            self._entries[key] = entry

        logger.debug(f"Added {entry!r}")

        if previous is not None and previous.filename is not None:
            self._delete_file_async(previous.filename)

        if resolved.is_enabled or (
            previous is not None and previous.persistence_policy.is_enabled
        ):
            self._persist()

        self._schedule_expiration(entry)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value.

        A payload evicted from memory is reloaded from its backing file while
        the disk copy is alive. An entry whose payload cannot be produced is
        removed.

        Args:
            key: Cache key
            default: Value returned on a miss

        Returns:
            The cached value, or default
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return default

        value, reloaded = entry.fetch()
        if value is None:
            logger.debug(f"Pruning unavailable entry '{key}'")
            self._remove(key, expected=entry)
            return default

        if reloaded:
            # The disk hit moved persistence_expires_at; the index must follow
            if entry.persistence_policy.is_enabled:
                self._persist()
            self._schedule_expiration(entry)
        return value

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def keys(self) -> List[str]:
        """Keys of every entry, including ones whose payload is on disk only."""
        return list(self._snapshot().keys())

    # =========================================================================
    # Remove / clear
    # =========================================================================

    def remove(self, key: str) -> bool:
        """Remove an entry and reclaim its backing file.

        Args:
            key: Cache key

        Returns:
            True if an entry was removed, False if the key was absent
        """
        return self._remove(key) is not None

    def clear(self, owner: Optional[str] = None) -> int:
        """Remove every entry, or every entry whose key starts with owner.

        Args:
            owner: Key prefix (see key()); None clears the whole store

        Returns:
            Number of removed entries
        """
        if owner is None:
            with self._lock:
                entries = list(self._entries.values())
                self._entries.clear()
            for entry in entries:
                if entry.filename is not None:
                    self._delete_file_async(entry.filename)
            self._persist()
            logger.debug(f"Cleared {len(entries)} entries")
            return len(entries)

        removed = []
        for entry_key in self._snapshot():
            if entry_key.startswith(owner):
                entry = self._remove(entry_key, persist=False)
                if entry is not None:
                    removed.append(entry)

        if any(entry.persistence_policy.is_enabled for entry in removed):
            self._persist()
        logger.debug(f"Cleared {len(removed)} entries of owner '{owner}'")
        return len(removed)

    def clear_expired(self) -> int:
        """Remove every entry whose memory time-to-live has passed.

        Unlike the expiration timer, this removes entries regardless of
        their persistence policy and reclaims their backing files.

        Returns:
            Number of removed entries
        """
        now = self._clock()
        expired = [entry for entry in self._snapshot().values() if entry.is_expired(now)]

        removed = []
        for entry in expired:
            if self._remove(entry.key, expected=entry, persist=False) is not None:
                removed.append(entry)

        if any(entry.persistence_policy.is_enabled for entry in removed):
            self._persist()
        return len(removed)

    def _remove(
        self, key: str, expected: Optional[Entry] = None, persist: bool = True
    ) -> Optional[Entry]:
        """Detach an entry from the map and reclaim its backing file.

        Args:
            key: Cache key
            expected: Only remove if this exact entry still occupies the key
            persist: Re-persist the index if the entry was persisted

        Returns:
            The removed entry, or None
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or (expected is not None and entry is not expected):
                return None
            del self._entries[key]

        if entry.filename is not None:
            self._delete_file_async(entry.filename)
        if persist and entry.persistence_policy.is_enabled:
            self._persist()
        return entry

    # =========================================================================
    # Expiration
    # =========================================================================

    def _schedule_expiration(self, entry: Entry) -> None:
        if self._closed or not entry.expiration_policy.is_finite:
            return
        entry_key, generation = entry.key, entry.generation
        self._scheduler.schedule(
            entry.expiration_policy.seconds,
            lambda: self._expire(entry_key, generation),
        )

    def _expire(self, key: str, generation: int) -> None:
        """Timer callback: evict the payload or the whole entry.

        Ignored if the key has since been removed or re-added.
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            return

        if entry.persistence_policy.keeps_entry_after_expiration:
            entry.invalidate()
            logger.debug(f"Evicted payload of '{key}' from memory")
        else:
            self._remove(key, expected=entry)
            logger.debug(f"Expired '{key}'")

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self, key: str) -> Optional[Dict[str, Any]]:
        """Get metadata for one entry without loading its payload.

        Args:
            key: Cache key

        Returns:
            Status dict, or None if the key is absent
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        ttl_remaining = None
        if entry.expires_at is not None:
            ttl_remaining = max(0.0, entry.expires_at - now)

        return {
            "key": entry.key,
            "loaded": entry.is_loaded,
            "expiration_policy": entry.expiration_policy.to_string(),
            "persistence_policy": entry.persistence_policy.to_string(),
            "expires_at": entry.expires_at,
            "persistence_expires_at": entry.persistence_expires_at,
            "ttl_remaining": ttl_remaining,
            "filename": entry.filename,
            "codec": entry.codec,
            "generation": entry.generation,
        }

    # =========================================================================
    # Payload files
    # =========================================================================

    def _write_payload(self, key: str, value: Any) -> Tuple[Optional[str], Optional[str]]:
        """Serialize value into a new backing file.

        Returns:
            (filename, codec name), or (None, None) if the value could not be
            persisted
        """
        if not self._storage.available:
            return None, None

        codec = self._registry.detect(value)
        if codec is None:
            logger.debug(f"No codec can serialize {type(value).__name__} for '{key}'")
            return None, None

        data = codec.try_encode(value)
        if data is None:
            logger.warning(
                f"Cannot serialize {type(value).__name__} for '{key}'; not persisting"
            )
            return None, None

        filename = uuid.uuid4().hex
        try:
            self._storage.write_bytes(filename, data)
        except StorageError as e:
            logger.warning(f"Cannot persist '{key}': {e}")
            return None, None

        return filename, codec.name

    def _read_payload(self, filename: str, codec_name: str) -> Any:
        try:
            codec = self._registry.get(codec_name)
        except KeyError as e:
            raise CodecError(str(e)) from e
        return codec.decode(self._storage.read_bytes(filename))

    def _delete_file_async(self, filename: str) -> None:
        if self._storage.available:
            self._submit(self._delete_file, filename)

    def _delete_file(self, filename: str) -> None:
        try:
            self._storage.delete_file(filename)
        except StorageError as e:
            logger.warning(f"Failed to delete backing file: {e}")

    # =========================================================================
    # Durable index
    # =========================================================================

    def _persist(self) -> None:
        """Snapshot the persisted entries and write the index in the background."""
        if not self._storage.available:
            return
        with self._lock:
            records = [
                entry.to_record()
                for entry in self._entries.values()
                if entry.persistence_policy.is_enabled
            ]
            # Queued under the lock so index writes land in snapshot order
            if self._enqueue(self._write_index, records):
                return
        self._write_index(records)

    def _write_index(self, records: List[Dict[str, Any]]) -> None:
        index_name = self.config.index_filename
        try:
            lock_path = self._storage.path_for(f"{index_name}.lock")
            with FileLock(lock_path, timeout=self.config.lock_timeout):
                self._storage.write_json(
                    index_name,
                    {"schema_version": INDEX_SCHEMA_VERSION, "entries": records},
                )
        except Timeout:
            logger.warning(
                f"Timeout acquiring lock for {index_name} after "
                f"{self.config.lock_timeout} seconds; index not written"
            )
        except StorageError as e:
            logger.warning(f"Cannot write durable index: {e}")

    def _load(self) -> None:
        """Rehydrate persisted entries from the durable index.

        Entries come back without their payload, which is reloaded on first
        access. Entries whose disk copy has expired are dropped and their
        backing files deleted. A missing or corrupt index yields an empty
        store.
        """
        if not self._storage.available:
            return

        index_name = self.config.index_filename
        if not self._storage.exists(index_name):
            return

        try:
            data = self._storage.read_json(index_name)
        except NestError as e:
            logger.warning(f"Ignoring unreadable durable index: {e}")
            return

        records = data.get("entries") if isinstance(data, dict) else data
        if not isinstance(records, list):
            logger.warning(f"Ignoring durable index with unexpected layout in {index_name}")
            return

        now = self._clock()
        loaded = 0
        stale_files = []
        dropped = 0
        with self._lock:
            for record in records:
                entry = Entry.from_record(
                    record,
                    generation=next(self._generations),
                    loader=self._read_payload,
                    clock=self._clock,
                )
                if entry is None:
                    logger.warning(f"Dropping malformed index record: {record!r}")
                    dropped += 1
                    continue
                if entry.filename is None or entry.is_persistence_expired(now):
                    if entry.filename is not None:
                        stale_files.append(entry.filename)
                    dropped += 1
                    continue
                self._entries[entry.key] = entry
                loaded += 1

        for filename in stale_files:
            self._delete_file_async(filename)
        if dropped:
            self._persist()
        logger.debug(f"Loaded {loaded} entries from durable index ({dropped} dropped)")

    # =========================================================================
    # Background I/O and lifecycle
    # =========================================================================

    def _enqueue(self, fn: Callable[..., None], *args: Any) -> bool:
        """Queue fn on the I/O worker; False if the worker has been shut down."""
        if self._closed:
            return False
        try:
            self._executor.submit(fn, *args)
        except RuntimeError:
            # Executor shut down by a concurrent close()
            return False
        return True

    def _submit(self, fn: Callable[..., None], *args: Any) -> None:
        if not self._enqueue(fn, *args):
            fn(*args)

    def _snapshot(self) -> Dict[str, Entry]:
        with self._lock:
            return dict(self._entries)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until all queued background I/O has completed.

        Args:
            timeout: Maximum seconds to wait (None waits indefinitely)
        """
        if self._closed:
            return
        self._executor.submit(lambda: None).result(timeout=timeout)

    def close(self) -> None:
        """Finish pending I/O, cancel expiration timers and stop the worker.

        Operations after close keep working; their file I/O runs on the
        calling thread and no new expiration timers are started, so entries
        added or reloaded afterwards stay in memory until removed or swept
        by clear_expired().
        """
        if self._closed:
            return
        self._closed = True
        self._scheduler.cancel_all()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    key = staticmethod(key)


# Process-wide store instance
_shared_store: Optional[Store] = None
_shared_lock = threading.Lock()


def get_shared_store() -> Store:
    """Get the process-wide store, creating it from the global config on first use.

    Returns:
        Shared Store instance
    """
    global _shared_store
    with _shared_lock:
        if _shared_store is None:
            _shared_store = Store(get_global_config())
        return _shared_store


def set_shared_store(store: Optional[Store]) -> None:
    """Replace the process-wide store.

    Args:
        store: Store to share, or None to drop the current one
    """
    global _shared_store
    with _shared_lock:
        _shared_store = store
