"""Codec for arbitrary picklable objects."""

import io
from typing import Any

from nestcache.base.codec import BaseCodec
from nestcache.errors import CodecError


class JoblibCodec(BaseCodec):
    """Generic codec backed by joblib.

    Works with any object joblib can pickle (custom classes, numpy arrays,
    models, tuples, sets, ...). Capability is only known for sure once
    encoding is attempted: unpicklable values (locks, lambdas, open files)
    make encode() raise CodecError, which the store turns into a
    non-persisted add.

    Examples:
        >>> codec = JoblibCodec()
        >>> codec.decode(codec.encode((1, 2, 3)))
        (1, 2, 3)
    """

    @property
    def name(self) -> str:
        """Return codec identifier."""
        return "joblib"

    def can_encode(self, value: Any) -> bool:
        """Accept every value; failures surface from encode()."""
        return value is not None

    def encode(self, value: Any) -> bytes:
        """Serialize a value with joblib.dump.

        Args:
            value: Picklable value

        Returns:
            Pickled bytes

        Raises:
            CodecError: If the value cannot be pickled
        """
        import joblib

        buffer = io.BytesIO()
        try:
            joblib.dump(value, buffer)
        except Exception as e:
            raise CodecError(
                f"Cannot serialize {type(value).__name__} with joblib: {e}"
            ) from e
        return buffer.getvalue()

    def decode(self, data: bytes) -> Any:
        """Reconstruct a value with joblib.load.

        Args:
            data: Bytes produced by encode()

        Returns:
            The unpickled value

        Raises:
            CodecError: If the bytes are not a valid joblib payload
        """
        import joblib

        try:
            return joblib.load(io.BytesIO(data))
        except Exception as e:
            raise CodecError(f"Cannot deserialize joblib payload: {e}") from e
