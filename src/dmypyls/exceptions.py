"""Error taxonomy for dmypyls."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator


class DmypylsError(RuntimeError):
    pass


class PathError(DmypylsError):
    """A document or daemon filename cannot be expressed relative to the root."""


class EncodingError(DmypylsError):
    """Daemon output is not valid UTF-8 text."""


class NoCommandConfigured(DmypylsError):
    def __init__(self, message: str = "No dmypy command found (see dmypyls.yaml)") -> None:
        super().__init__(message)


class SpawnError(DmypylsError):
    """The daemon command could not be launched."""

    def __init__(self, argv: list[str], cause: OSError) -> None:
        super().__init__(f"failed to execute {argv!r}: {cause}")
        self.argv = argv
        self.cause = cause


class ConfigError(DmypylsError):
    pass


@contextmanager
def log_failure(context: str, *, logger: logging.Logger | None = None) -> Iterator[None]:
    """Log a recoverable error under ``context`` and skip the rest of the block."""
    try:
        yield
    except DmypylsError as exc:
        (logger or logging.getLogger("dmypyls")).error("[%s] %s", context, exc)
