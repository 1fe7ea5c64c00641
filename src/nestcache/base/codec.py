"""Base codec interface for payload serialization.

Codecs turn cached values into the bytes stored in backing files and back.
The store only needs the contract below; which codec writes a payload is
decided by auto-detection in the CodecRegistry and recorded in the index so
the same codec reads it back.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from nestcache.errors import CodecError


class BaseCodec(ABC):
    """Abstract base class for payload codecs.

    Codecs are responsible for:
    1. Capability detection (can_encode)
    2. Serializing a value to bytes (encode)
    3. Reconstructing a value from bytes (decode)

    Examples:
        Create a custom codec (minimal implementation):
        >>> class TextCodec(BaseCodec):
        ...     @property
        ...     def name(self) -> str:
        ...         return "text"
        ...
        ...     def can_encode(self, value: Any) -> bool:
        ...         return isinstance(value, str)
        ...
        ...     def encode(self, value: Any) -> bytes:
        ...         return value.encode("utf-8")
        ...
        ...     def decode(self, data: bytes) -> Any:
        ...         return data.decode("utf-8")
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this codec.

        Stored in the durable index next to each backing file.

        Returns:
            Codec name (e.g., 'json', 'joblib')
        """
        pass

    @abstractmethod
    def can_encode(self, value: Any) -> bool:
        """Check if this codec can serialize the given value.

        Args:
            value: Value to check

        Returns:
            True if encode() is expected to succeed
        """
        pass

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Serialize a value.

        Args:
            value: Value to serialize

        Returns:
            Serialized bytes

        Raises:
            CodecError: If the value cannot be serialized
        """
        pass

    @abstractmethod
    def decode(self, data: bytes) -> Any:
        """Reconstruct a value.

        Args:
            data: Bytes produced by encode()

        Returns:
            The reconstructed value

        Raises:
            CodecError: If the bytes cannot be decoded
        """
        pass

    def try_encode(self, value: Any) -> Optional[bytes]:
        """Serialize a value, returning None instead of raising on failure.

        Args:
            value: Value to serialize

        Returns:
            Serialized bytes, or None if the value is not serializable
        """
        try:
            return self.encode(value)
        except CodecError:
            return None
