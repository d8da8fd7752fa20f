"""Translate ``dmypy check`` text output into LSP diagnostics."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from lsprotocol.types import Diagnostic, DiagnosticSeverity, Position, Range

from dmypyls.exceptions import EncodingError, PathError
from dmypyls.paths import RootRelativePath

logger = logging.getLogger(__name__)

DIAGNOSTIC_SOURCE = "dmypy"

# <filename>:<line>:<col>:<endline>:<endcol>: <severity>: <message>
_DIAGNOSTIC_RE = re.compile(
    r"^(?P<filename>.*):(?P<line>\d+):(?P<col>\d+):(?P<end_line>\d+):(?P<end_col>\d+):"
    r" (?P<severity>\w+): (?P<message>.*)$"
)

_SEVERITY_KEYWORDS: dict[str, DiagnosticSeverity] = {
    "error": DiagnosticSeverity.Error,
    "warning": DiagnosticSeverity.Warning,
    "information": DiagnosticSeverity.Information,
    "hint": DiagnosticSeverity.Hint,
}


def severity_from_keyword(keyword: str) -> DiagnosticSeverity | None:
    return _SEVERITY_KEYWORDS.get(keyword.lower())


def _zero_based(value: int) -> int:
    return max(value - 1, 0)


class DiagnosticKey(NamedTuple):
    start_line: int
    start_character: int
    end_line: int
    end_character: int
    message: str
    severity: DiagnosticSeverity | None
    source: str


@dataclass(frozen=True)
class DiagnosticRecord:
    filename: str
    start_line: int
    start_character: int
    end_line: int
    end_character: int
    severity: DiagnosticSeverity | None
    message: str
    source: str = DIAGNOSTIC_SOURCE

    @property
    def key(self) -> DiagnosticKey:
        return DiagnosticKey(
            self.start_line,
            self.start_character,
            self.end_line,
            self.end_character,
            self.message,
            self.severity,
            self.source,
        )

    def to_lsp(self) -> Diagnostic:
        return Diagnostic(
            range=Range(
                start=Position(line=self.start_line, character=self.start_character),
                end=Position(line=self.end_line, character=self.end_character),
            ),
            message=self.message,
            severity=self.severity,
            source=self.source,
        )


def parse_line(line: str) -> DiagnosticRecord | None:
    """Parse one line of daemon output.

    Returns ``None`` for anything that is not a diagnostic, which includes the
    daemon's banners and summary lines. Positions are converted from the
    daemon's 1-based coordinates to 0-based ones, clamping at zero.
    """
    match = _DIAGNOSTIC_RE.match(line)
    if match is None:
        return None
    return DiagnosticRecord(
        filename=match.group("filename"),
        start_line=_zero_based(int(match.group("line"))),
        start_character=_zero_based(int(match.group("col"))),
        end_line=_zero_based(int(match.group("end_line"))),
        end_character=_zero_based(int(match.group("end_col"))),
        severity=severity_from_keyword(match.group("severity")),
        message=match.group("message"),
    )


def decode_output(output: bytes) -> str:
    try:
        return output.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise EncodingError(f"from_utf8 failed for dmypy output: {exc}") from exc


def build_diagnostics(
    target: RootRelativePath,
    root: Path,
    output: bytes,
    *,
    context: str = "parse_diagnostics",
) -> list[Diagnostic]:
    """Diagnostics for ``target`` from a full ``dmypy check`` report.

    Lines reported against other files are dropped, and lines that produce the
    same range, message, severity and source are collapsed into one. The order
    of the result is not meaningful.
    """
    text = decode_output(output)
    logger.debug("[%s/parse_diagnostics] parsing: %s", context, text)
    unique: dict[DiagnosticKey, DiagnosticRecord] = {}
    for line in text.splitlines():
        record = parse_line(line)
        if record is None:
            continue
        try:
            filename = RootRelativePath.from_filename(root, record.filename)
        except PathError as exc:
            logger.info("[%s] ignoring diagnostic for %s: %s", context, record.filename, exc)
            continue
        if filename != target:
            logger.info(
                "[%s] ignoring diagnostic for %s [target_filename=%s]",
                context,
                filename,
                target,
            )
            continue
        unique.setdefault(record.key, record)
    return [record.to_lsp() for record in unique.values()]
