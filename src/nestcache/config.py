"""Store configuration management."""

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

DEFAULT_CACHE_DIR = Path.home() / ".nestcache"
DEFAULT_INDEX_FILENAME = "nest_index.json"


@dataclass
class StoreConfig:
    """Configuration for a Store.

    Attributes:
        cache_dir: Directory holding the durable index and backing files
            (defaults to ~/.nestcache)
        fallback_dir: Relative directory tried when cache_dir cannot be
            created; None disables the fallback
        index_filename: Fixed name of the durable index inside cache_dir
        persistence_enabled: If False, every add is treated as non-persisted
            and nothing is read from or written to disk
        lock_timeout: Seconds to wait for the index file lock before giving
            up on one index write
    """

    cache_dir: Path = DEFAULT_CACHE_DIR
    fallback_dir: Optional[Path] = Path(".nestcache")
    index_filename: str = DEFAULT_INDEX_FILENAME
    persistence_enabled: bool = True
    lock_timeout: float = 10.0

    def __post_init__(self):
        """Ensure directory fields are Path objects."""
        if self.cache_dir is None:
            self.cache_dir = DEFAULT_CACHE_DIR
        self.cache_dir = Path(self.cache_dir).expanduser()
        if self.fallback_dir is not None:
            self.fallback_dir = Path(self.fallback_dir)

    @classmethod
    def load(cls, config_path: Path) -> "StoreConfig":
        """Load configuration from a JSON file written by save().

        Unknown keys are ignored so older files keep loading.

        Args:
            config_path: Path to config file

        Returns:
            StoreConfig instance (defaults if the file does not exist)
        """
        if not config_path.exists():
            return cls()

        with open(config_path, "r") as f:
            data = json.load(f)

        known = {field.name for field in fields(cls)}
        return cls(**{name: value for name, value in data.items() if name in known})

    def save(self, config_path: Path) -> None:
        """Save configuration to a JSON file.

        Args:
            config_path: Path to config file
        """
        data = asdict(self)
        for name in ("cache_dir", "fallback_dir"):
            if data[name] is not None:
                data[name] = str(data[name])

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create configuration from environment variables.

        Environment variables:
            NESTCACHE_DIR: Storage directory path
            NESTCACHE_PERSISTENCE: Enable disk persistence (true/false)
            NESTCACHE_INDEX_FILENAME: Name of the durable index file

        Returns:
            StoreConfig instance; unset variables keep their defaults
        """
        overrides = {}
        if os.getenv("NESTCACHE_DIR"):
            overrides["cache_dir"] = os.environ["NESTCACHE_DIR"]
        if os.getenv("NESTCACHE_PERSISTENCE"):
            overrides["persistence_enabled"] = (
                os.environ["NESTCACHE_PERSISTENCE"].lower() == "true"
            )
        if os.getenv("NESTCACHE_INDEX_FILENAME"):
            overrides["index_filename"] = os.environ["NESTCACHE_INDEX_FILENAME"]
        return cls(**overrides)


# Configuration used by the shared store
_global_config: Optional[StoreConfig] = None


def get_global_config() -> StoreConfig:
    """Get the configuration of the shared store, read from the environment on first use."""
    global _global_config
    if _global_config is None:
        _global_config = StoreConfig.from_env()
    return _global_config


def set_global_config(config: Optional[StoreConfig]) -> None:
    """Set the configuration of the shared store.

    Args:
        config: StoreConfig instance, or None to re-read the environment next time
    """
    global _global_config
    _global_config = config
