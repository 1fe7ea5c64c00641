"""Storage backend for file I/O operations.

This module resolves the on-disk directory used for the durable index and
backing payload files and performs all reads, writes and deletes in it.
"""

from nestcache.storage.backend import StorageBackend

__all__ = ["StorageBackend"]
