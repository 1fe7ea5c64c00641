"""Storage backend for handling file I/O operations.

This module resolves the directory that holds the durable index and the
backing payload files, and performs every read, write and delete inside it.
All paths handed to the backend are opaque names relative to that directory.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from nestcache.errors import StorageError, StoragePermissionError, StorageUnavailableError

logger = logging.getLogger(__name__)


class StorageBackend:
    """Handles all file I/O operations for a Store.

    Provides a flat namespace of files inside one base directory:
    - Raw bytes I/O for backing payload files (atomic writes)
    - JSON I/O for the durable index (orjson)
    - Best-effort deletes

    A backend created without a base directory is *unavailable*: every
    operation raises StorageUnavailableError and the store keeps working in
    memory only.

    Examples:
        >>> storage = StorageBackend.resolve(Path('/tmp/nest'))
        >>> storage.write_bytes('payload', b'data')
        >>> storage.read_bytes('payload')
        b'data'
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """Initialize the backend.

        Args:
            base_dir: Existing directory to store files in, or None if no
                directory is available
        """
        self.base_dir = Path(base_dir) if base_dir is not None else None

    @classmethod
    def resolve(
        cls,
        preferred: Optional[Union[str, Path]] = None,
        fallback: Optional[Union[str, Path]] = ".nestcache",
    ) -> "StorageBackend":
        """Create a backend on the first directory that can be created.

        Args:
            preferred: Preferred storage directory (e.g. ~/.nestcache)
            fallback: Relative directory tried when the preferred one fails

        Returns:
            StorageBackend, unavailable if no candidate could be created
        """
        for candidate in (preferred, fallback):
            if candidate is None:
                continue
            path = Path(candidate).expanduser()
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Cannot use storage directory {path}: {e}")
                continue
            if not os.access(path, os.W_OK):
                logger.warning(f"Storage directory {path} is not writable")
                continue
            return cls(path)

        return cls(None)

    @property
    def available(self) -> bool:
        """True if a storage directory was resolved."""
        return self.base_dir is not None

    def path_for(self, name: str) -> Path:
        """Get the full path of a file inside the storage directory.

        Args:
            name: File name (flat, no separators)

        Returns:
            Absolute or relative path of the file

        Raises:
            StorageUnavailableError: If no storage directory is available
            ValueError: If name would escape the storage directory
        """
        if self.base_dir is None:
            raise StorageUnavailableError("No storage directory is available")
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid storage file name: {name!r}")
        return self.base_dir / name

    def exists(self, name: str) -> bool:
        """Check if a file exists.

        Args:
            name: File name

        Returns:
            True if the file exists, False otherwise (including when storage
            is unavailable)
        """
        if self.base_dir is None:
            return False
        return self.path_for(name).exists()

    # =========================================================================
    # Bytes I/O
    # =========================================================================

    def write_bytes(self, name: str, data: bytes) -> None:
        """Write bytes to a file atomically.

        The data is written to a temporary file first and renamed into place,
        so readers never observe a partially written file.

        Args:
            name: File name
            data: Bytes to write

        Raises:
            StorageUnavailableError: If no storage directory is available
            StoragePermissionError: If the directory is not writable
            StorageError: On any other OS error
        """
        path = self.path_for(name)
        temp_path = path.with_name(path.name + ".tmp")

        try:
            with open(temp_path, "wb") as f:
                f.write(data)
            os.replace(temp_path, path)
        except PermissionError as e:
            self._discard(temp_path)
            raise StoragePermissionError(f"Cannot write storage file {path}: {e}") from e
        except OSError as e:
            self._discard(temp_path)
            raise StorageError(f"Cannot write storage file {path}: {e}") from e

    def read_bytes(self, name: str) -> bytes:
        """Read the contents of a file.

        Args:
            name: File name

        Returns:
            File contents

        Raises:
            StorageUnavailableError: If no storage directory is available
            StorageError: If the file is missing or unreadable
        """
        path = self.path_for(name)
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Cannot read storage file {path}: {e}") from e

    def delete_file(self, name: str) -> None:
        """Delete a file. A missing file is not an error.

        Args:
            name: File name

        Raises:
            StorageUnavailableError: If no storage directory is available
            StorageError: If the file exists but cannot be removed
        """
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot delete storage file {path}: {e}") from e

    # =========================================================================
    # JSON I/O
    # =========================================================================

    def write_json(self, name: str, data: Any) -> None:
        """Write JSON data to a file atomically.

        Args:
            name: File name
            data: Data to serialize

        Examples:
            >>> storage.write_json('nest_index.json', {'entries': []})
        """
        import orjson

        content = orjson.dumps(data, option=orjson.OPT_INDENT_2)
        self.write_bytes(name, content)

    def read_json(self, name: str) -> Any:
        """Read JSON data from a file.

        Args:
            name: File name

        Returns:
            Deserialized data

        Raises:
            StorageError: If the file cannot be read or is not valid JSON
        """
        import orjson

        content = self.read_bytes(name)
        try:
            return orjson.loads(content)
        except orjson.JSONDecodeError as e:
            raise StorageError(f"Corrupt JSON in storage file {name}: {e}") from e

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except OSError as e:
            logger.debug(f"Failed to clean up temp file {path}: {e}")
