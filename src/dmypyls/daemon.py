"""Drive the mypy daemon through its command line.

Every call is a blocking child process. Nothing here holds a lock, and there
is no timeout: a call runs until the process exits.
"""

from __future__ import annotations

import json
import logging
import subprocess
from enum import Enum
from pathlib import Path, PurePath
from typing import Callable, Sequence, TypeAlias

from dmypyls.exceptions import NoCommandConfigured, SpawnError

logger = logging.getLogger(__name__)

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
Runner: TypeAlias = Callable[..., subprocess.CompletedProcess[bytes]]

RUNNING_BANNER = "Daemon is up and running"

RUN_FLAGS: tuple[str, ...] = (
    "--show-absolute-path",
    "--show-column-numbers",
    "--show-error-end",
    "--hide-error-codes",
    "--hide-error-context",
    "--no-color-output",
    "--no-error-summary",
    "--no-pretty",
)


class DaemonState(Enum):
    UNKNOWN = "unknown"
    RUNNING = "running"
    STOPPED = "stopped"


class LifecyclePolicy(Enum):
    PROBE = "probe"
    RESTART = "restart"


class DmypyDaemon:
    def __init__(
        self,
        command: Sequence[str],
        root: Path,
        *,
        run: Runner = subprocess.run,
    ) -> None:
        self._template = tuple(command)
        self.root = root
        self._run = run
        self.state = DaemonState.UNKNOWN

    def command(self, *args: str) -> list[str]:
        if not self._template:
            raise NoCommandConfigured()
        return [*self._template, *args]

    def _invoke(self, argv: list[str]) -> subprocess.CompletedProcess[bytes]:
        logger.info("running command: %s [cwd=%s]", argv, self.root)
        try:
            return self._run(argv, cwd=self.root, capture_output=True, check=False)
        except OSError as exc:
            raise SpawnError(argv, exc) from exc

    def is_running(self) -> bool:
        argv = self.command("status")
        try:
            result = self._invoke(argv)
        except SpawnError as exc:
            logger.info("dmypy status could not be run, assuming not running: %s", exc)
            running = False
        else:
            stdout = result.stdout.decode("utf-8", errors="replace")
            running = stdout.startswith(RUNNING_BANNER)
        self.state = DaemonState.RUNNING if running else DaemonState.STOPPED
        return running

    def start(self) -> bool:
        argv = self.command("run", "--", *RUN_FLAGS, str(self.root))
        try:
            result = self._invoke(argv)
        except SpawnError as exc:
            logger.error("dmypy run failed to start: %s", exc)
            return False
        logger.info("dmypy run status: %s", result.returncode)
        if result.returncode != 0:
            logger.error(
                "dmypy run exited with %s: %s",
                result.returncode,
                result.stderr.decode("utf-8", errors="replace").strip(),
            )
            return False
        self.state = DaemonState.RUNNING
        return True

    def ensure_running(self, policy: LifecyclePolicy = LifecyclePolicy.PROBE) -> None:
        if policy is LifecyclePolicy.RESTART:
            logger.info("restarting dmypy")
            self.stop()
            self.start()
            return
        if self.is_running():
            logger.info("dmypy is already running")
            return
        logger.info("dmypy is not yet running, starting it...")
        self.start()

    def check(self, path: PurePath) -> bytes:
        result = self._invoke(self.command("check", str(path)))
        # A non-zero exit means errors were found.
        logger.info("dmypy check exit status: %s", result.returncode)
        return result.stdout

    def inspect(self, path: Path) -> JSONValue | None:
        result = self._invoke(self.command("inspect", str(path)))
        if result.returncode != 0:
            logger.info("dmypy inspect exited with %s", result.returncode)
            return None
        try:
            return json.loads(result.stdout)
        except ValueError as exc:
            logger.warning("dmypy inspect output is not JSON: %s", exc)
            return None

    def stop(self) -> None:
        try:
            result = self._invoke(self.command("stop"))
        except SpawnError as exc:
            logger.warning("dmypy stop failed: %s", exc)
            return
        logger.info(
            "dmypy stop: %s %s",
            result.returncode,
            result.stdout.decode("utf-8", errors="replace").strip(),
        )
        self.state = DaemonState.STOPPED
