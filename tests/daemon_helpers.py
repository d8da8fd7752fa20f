from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class FakeRunner:
    """Stand-in for ``subprocess.run`` keyed by the dmypy subcommand."""

    outputs: dict[str, tuple[int, bytes]] = field(default_factory=dict)
    missing: set[str] = field(default_factory=set)
    calls: list[list[str]] = field(default_factory=list)
    cwds: list[Path] = field(default_factory=list)

    def __call__(self, argv, *, cwd=None, capture_output=False, check=False):
        argv = list(argv)
        self.calls.append(argv)
        self.cwds.append(cwd)
        subcommand = _subcommand(argv)
        if subcommand in self.missing:
            raise FileNotFoundError(2, "No such file or directory", argv[0])
        returncode, stdout = self.outputs.get(subcommand, (0, b""))
        return subprocess.CompletedProcess(argv, returncode, stdout=stdout, stderr=b"")

    def subcommands(self) -> list[str]:
        return [_subcommand(argv) for argv in self.calls]


def _subcommand(argv: list[str]) -> str:
    for token in argv:
        if token in {"status", "run", "check", "inspect", "stop"}:
            return token
    return ""
