"""Codec for JSON-serializable data."""

from typing import Any

from nestcache.base.codec import BaseCodec
from nestcache.errors import CodecError


class JsonCodec(BaseCodec):
    """Codec for plain JSON containers stored as .json payloads.

    Only plain dicts and lists are auto-detected, and only when they survive
    an orjson round trip unchanged. Subclasses such as OrderedDict, tuples,
    non-string keys or NaN would come back different, so those values fall
    through to the generic codec.

    Examples:
        >>> codec = JsonCodec()
        >>> codec.can_encode({'learning_rate': 0.01})
        True
        >>> codec.can_encode({1: 'a'})
        False
    """

    @property
    def name(self) -> str:
        """Return codec identifier."""
        return "json"

    def can_encode(self, value: Any) -> bool:
        """Check if value is a dict or list that round-trips through JSON.

        Args:
            value: Value to check

        Returns:
            True if decode(encode(value)) == value
        """
        if type(value) not in (dict, list):
            return False

        import orjson

        try:
            return orjson.loads(orjson.dumps(value)) == value
        except (TypeError, ValueError):
            return False

    def encode(self, value: Any) -> bytes:
        import orjson

        try:
            return orjson.dumps(value)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Value is not JSON-serializable: {e}") from e

    def decode(self, data: bytes) -> Any:
        import orjson

        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise CodecError(f"Payload is not valid JSON: {e}") from e
