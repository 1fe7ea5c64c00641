"""Exception hierarchy for nestcache.

The store never lets these escape from its public operations: they are raised
by the storage backend and the payload codecs and caught at every persistence
boundary, where the failure degrades to "less durable".
"""


class NestError(Exception):
    """Base exception for nestcache errors."""

    pass


class StorageError(NestError):
    """Raised when the storage backend cannot read, write or delete a file."""

    pass


class StoragePermissionError(StorageError):
    """Raised when the storage directory permissions are insufficient."""

    pass


class StorageUnavailableError(StorageError):
    """Raised when no writable storage directory could be resolved."""

    pass


class CodecError(NestError):
    """Raised when a payload cannot be encoded or decoded."""

    pass
