"""Base classes for the payload codec system.

- BaseCodec: Abstract base class for all payload codecs
- CodecRegistry: Registry for managing codecs
- Convenience functions: get_registry, register_codec
"""

from nestcache.base.codec import BaseCodec
from nestcache.base.registry import (
    CodecRegistry,
    create_default_registry,
    get_registry,
    register_codec,
)

__all__ = [
    "BaseCodec",
    "CodecRegistry",
    "create_default_registry",
    "get_registry",
    "register_codec",
]
