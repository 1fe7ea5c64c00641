"""Codec registry for managing payload codecs.

This module provides a registry for registering and retrieving codecs.
The registry supports:
1. Registering codecs by name
2. Retrieving codecs by name (when reading a backing file)
3. Auto-detecting a codec based on the value being cached
"""

from typing import Any, Dict, List, Optional

from nestcache.base.codec import BaseCodec


class CodecRegistry:
    """Registry of payload codecs.

    Detection tries codecs in registration order, so more specific codecs
    must be registered before generic ones.

    Examples:
        >>> registry = CodecRegistry()
        >>> registry.register(JsonCodec())
        >>> registry.register(JoblibCodec())
        >>> registry.detect({'a': 1}).name
        'json'
    """

    def __init__(self):
        """Initialize an empty registry."""
        self._codecs: Dict[str, BaseCodec] = {}

    def register(self, codec: BaseCodec) -> None:
        """Register a codec.

        Args:
            codec: Codec instance to register

        Raises:
            ValueError: If a codec with the same name is already registered
        """
        name = codec.name
        if name in self._codecs:
            raise ValueError(
                f"Codec already registered with name: {name}. "
                f"Cannot register {codec.__class__.__name__}."
            )
        self._codecs[name] = codec

    def get(self, name: str) -> BaseCodec:
        """Get codec by name.

        Args:
            name: Codec name (e.g., 'joblib')

        Returns:
            Codec instance

        Raises:
            KeyError: If no codec is registered under that name
        """
        if name not in self._codecs:
            available = ", ".join(sorted(self._codecs.keys()))
            raise KeyError(
                f"No codec registered with name: '{name}'. Available codecs: {available}"
            )
        return self._codecs[name]

    def detect(self, value: Any) -> Optional[BaseCodec]:
        """Auto-detect the codec for a value.

        Args:
            value: Value to be cached

        Returns:
            First codec whose can_encode() accepts the value, or None
        """
        for codec in self._codecs.values():
            if codec.can_encode(value):
                return codec
        return None

    def list_names(self) -> List[str]:
        """List all registered codec names in detection order."""
        return list(self._codecs.keys())

    def is_registered(self, name: str) -> bool:
        """Check if a codec is registered under the given name."""
        return name in self._codecs


def create_default_registry() -> CodecRegistry:
    """Create a registry holding the built-in codecs.

    Returns:
        CodecRegistry with JsonCodec and JoblibCodec, most specific first
    """
    from nestcache.codecs import JoblibCodec, JsonCodec

    registry = CodecRegistry()
    registry.register(JsonCodec())  # 1. dict/list that round-trip through JSON
    registry.register(JoblibCodec())  # 2. anything picklable (generic)
    return registry


_registry: Optional[CodecRegistry] = None


def get_registry() -> CodecRegistry:
    """Get the process-wide codec registry, creating it on first use.

    Returns:
        The default CodecRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = create_default_registry()
    return _registry


def register_codec(codec: BaseCodec) -> None:
    """Register a codec in the process-wide registry.

    Custom codecs registered here are tried after the built-in ones.

    Args:
        codec: Codec instance to register

    Raises:
        ValueError: If a codec with the same name is already registered
    """
    get_registry().register(codec)
