"""nestcache: process-embedded key-value cache with in-memory and on-disk expiration."""

__version__ = "0.1.0"

from nestcache.config import StoreConfig
from nestcache.entry import Entry
from nestcache.errors import (
    CodecError,
    NestError,
    StorageError,
    StoragePermissionError,
    StorageUnavailableError,
)
from nestcache.policies import ExpirationPolicy, PersistencePolicy
from nestcache.store import Store, get_shared_store, key, set_shared_store

__all__ = [
    "Store",
    "StoreConfig",
    "Entry",
    "ExpirationPolicy",
    "PersistencePolicy",
    "key",
    "get_shared_store",
    "set_shared_store",
    "NestError",
    "StorageError",
    "StoragePermissionError",
    "StorageUnavailableError",
    "CodecError",
    "__version__",
]
