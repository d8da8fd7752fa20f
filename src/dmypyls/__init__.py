"""dmypyls: a language server that relays mypy daemon results."""

from dmypyls.exceptions import (
    ConfigError,
    DmypylsError,
    EncodingError,
    NoCommandConfigured,
    PathError,
    SpawnError,
)

__all__ = [
    "__version__",
    "ConfigError",
    "DmypylsError",
    "EncodingError",
    "NoCommandConfigured",
    "PathError",
    "SpawnError",
]

__version__ = "0.1.0"
