"""Built-in payload codecs.

Available codecs:
- JsonCodec: dicts and lists that round-trip through JSON (json)
- JoblibCodec: any picklable object (joblib)

Usage:
    The default registry (nestcache.base.get_registry) holds both codecs,
    JSON first so plain containers are stored as readable JSON.
"""

from nestcache.codecs.joblib_data import JoblibCodec
from nestcache.codecs.json_data import JsonCodec

__all__ = ["JsonCodec", "JoblibCodec"]
