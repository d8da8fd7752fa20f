from __future__ import annotations

import json
from pathlib import Path, PurePath

import pytest

from dmypyls.daemon import RUN_FLAGS, DaemonState, DmypyDaemon, LifecyclePolicy
from dmypyls.exceptions import NoCommandConfigured, SpawnError
from tests.daemon_helpers import FakeRunner


def _daemon(root: Path, runner: FakeRunner, command=("dmypy",)) -> DmypyDaemon:
    return DmypyDaemon(command, root, run=runner)


def test_command_appends_arguments_to_template(root: Path) -> None:
    daemon = _daemon(root, FakeRunner(), command=("poetry", "run", "dmypy"))
    assert daemon.command("check", "a.py") == ["poetry", "run", "dmypy", "check", "a.py"]
    assert daemon.command("stop") == ["poetry", "run", "dmypy", "stop"]


def test_empty_template_fails_at_every_invocation(root: Path) -> None:
    daemon = _daemon(root, FakeRunner(), command=())
    with pytest.raises(NoCommandConfigured):
        daemon.is_running()
    with pytest.raises(NoCommandConfigured):
        daemon.check(PurePath("a.py"))
    with pytest.raises(NoCommandConfigured):
        daemon.inspect(root / "a.py")
    with pytest.raises(NoCommandConfigured):
        daemon.stop()


def test_is_running_when_banner_printed(root: Path) -> None:
    runner = FakeRunner(outputs={"status": (0, b"Daemon is up and running")})
    daemon = _daemon(root, runner)
    assert daemon.is_running() is True
    assert daemon.state is DaemonState.RUNNING
    assert runner.calls == [["dmypy", "status"]]
    assert runner.cwds == [root]


@pytest.mark.parametrize("stdout", [b"", b"No status file found\n", b"daemon is up and running"])
def test_is_not_running_without_banner(root: Path, stdout: bytes) -> None:
    daemon = _daemon(root, FakeRunner(outputs={"status": (2, stdout)}))
    assert daemon.is_running() is False
    assert daemon.state is DaemonState.STOPPED


def test_is_not_running_when_spawn_fails(root: Path) -> None:
    daemon = _daemon(root, FakeRunner(missing={"status"}))
    assert daemon.is_running() is False


def test_ensure_running_starts_absent_daemon(root: Path) -> None:
    runner = FakeRunner(outputs={"status": (2, b"No status file found")})
    daemon = _daemon(root, runner)
    daemon.ensure_running()
    assert runner.subcommands() == ["status", "run"]
    assert runner.calls[1] == ["dmypy", "run", "--", *RUN_FLAGS, str(root)]
    assert daemon.state is DaemonState.RUNNING


def test_ensure_running_skips_running_daemon(root: Path) -> None:
    runner = FakeRunner(outputs={"status": (0, b"Daemon is up and running\n")})
    _daemon(root, runner).ensure_running(LifecyclePolicy.PROBE)
    assert runner.subcommands() == ["status"]


def test_ensure_running_restart_policy(root: Path) -> None:
    runner = FakeRunner(outputs={"status": (0, b"Daemon is up and running\n")})
    _daemon(root, runner).ensure_running(LifecyclePolicy.RESTART)
    assert runner.subcommands() == ["stop", "run"]


def test_start_failures_are_not_raised(root: Path) -> None:
    daemon = _daemon(root, FakeRunner(missing={"run"}))
    assert daemon.start() is False
    daemon = _daemon(root, FakeRunner(outputs={"run": (1, b"")}))
    assert daemon.start() is False
    assert daemon.state is DaemonState.UNKNOWN


def test_run_flags_order() -> None:
    assert RUN_FLAGS == (
        "--show-absolute-path",
        "--show-column-numbers",
        "--show-error-end",
        "--hide-error-codes",
        "--hide-error-context",
        "--no-color-output",
        "--no-error-summary",
        "--no-pretty",
    )


def test_check_returns_stdout_regardless_of_exit(root: Path) -> None:
    report = b"a.py:1:1:1:2: error: boom\n"
    runner = FakeRunner(outputs={"check": (1, report)})
    assert _daemon(root, runner).check(PurePath("pkg/a.py")) == report
    assert runner.calls == [["dmypy", "check", "pkg/a.py"]]


def test_check_spawn_failure_raises(root: Path) -> None:
    with pytest.raises(SpawnError):
        _daemon(root, FakeRunner(missing={"check"})).check(PurePath("a.py"))


def test_inspect_returns_structured_payload(root: Path) -> None:
    payload = {"types": ["builtins.int"], "nested": [1, 2, {"k": None}]}
    runner = FakeRunner(outputs={"inspect": (0, json.dumps(payload).encode())})
    assert _daemon(root, runner).inspect(root / "a.py") == payload
    assert runner.calls == [["dmypy", "inspect", str(root / "a.py")]]


def test_inspect_non_zero_exit_is_no_content(root: Path) -> None:
    runner = FakeRunner(outputs={"inspect": (2, b"Can't find expression")})
    assert _daemon(root, runner).inspect(root / "a.py") is None


def test_inspect_non_json_is_no_content(root: Path) -> None:
    runner = FakeRunner(outputs={"inspect": (0, b"int")})
    assert _daemon(root, runner).inspect(root / "a.py") is None


def test_stop_is_best_effort(root: Path) -> None:
    daemon = _daemon(root, FakeRunner(missing={"stop"}))
    daemon.stop()
    assert daemon.state is DaemonState.UNKNOWN
    daemon = _daemon(root, FakeRunner(outputs={"stop": (2, b"Daemon is not running")}))
    daemon.stop()
    assert daemon.state is DaemonState.STOPPED
