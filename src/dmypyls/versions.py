from __future__ import annotations

import threading


class DocumentVersionTable:
    """Last edit version seen for each open document, keyed by URI.

    Shared by all handler threads. Every access holds the table lock only for
    the dictionary operation itself.
    """

    DEFAULT_VERSION = 0

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: dict[str, int] = {}

    def record(self, uri: str, version: int) -> None:
        with self._lock:
            self._versions[uri] = version

    def latest(self, uri: str) -> int:
        with self._lock:
            return self._versions.get(uri, self.DEFAULT_VERSION)
