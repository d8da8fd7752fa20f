from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import typer
from lsprotocol.types import Diagnostic

from dmypyls.config import DmypylsConfig, read_config
from dmypyls.daemon import DmypyDaemon, Runner
from dmypyls.diagnostics import build_diagnostics
from dmypyls.exceptions import ConfigError, DmypylsError
from dmypyls.logging_config import setup_logging
from dmypyls.paths import RootRelativePath, canonical_root

app = typer.Typer(add_completion=False, invoke_without_command=True)
DEFAULT_RUNNER: Runner = subprocess.run


@dataclass(frozen=True)
class CliContext:
    root: Path
    config: DmypylsConfig
    log_file: Path


RootOption = typer.Option(None, "--root", help="Project root (default: current directory).")
ConfigOption = typer.Option(None, "--config", help="Explicit dmypyls.yaml path.")
LogLevelOption = typer.Option(None, "--log-level", help="Log level (default: $DMYPYLS_LOG_LEVEL or INFO).")
LogFileOption = typer.Option(None, "--log-file", help="Log file path.")


def _bootstrap(
    root: Path | None,
    config_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> CliContext:
    try:
        written = setup_logging(log_level, log_file)
    except OSError as exc:
        typer.echo(f"failed to set up logging: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    resolved_root = canonical_root(root if root is not None else Path.cwd())
    try:
        config = read_config(project_dir=resolved_root, config_path=config_path)
    except ConfigError as exc:
        typer.echo(f"Failed to read configuration: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    if log_level is None and config.log_level:
        setup_logging(config.log_level, written)
    return CliContext(root=resolved_root, config=config, log_file=written)


def _daemon(ctx: CliContext, run: Runner) -> DmypyDaemon:
    return DmypyDaemon(ctx.config.command_template(), ctx.root, run=run)


def _diagnostic_payload(path: str, diagnostic: Diagnostic) -> dict[str, object]:
    return {
        "path": path,
        "line": diagnostic.range.start.line,
        "col": diagnostic.range.start.character,
        "end_line": diagnostic.range.end.line,
        "end_col": diagnostic.range.end.character,
        "severity": diagnostic.severity.name.lower() if diagnostic.severity else None,
        "message": diagnostic.message,
    }


def run_serve(ctx: CliContext, *, start_fn: Callable[..., None] | None = None) -> None:
    from dmypyls.server import create_server

    server = create_server(ctx.config, ctx.root, run=DEFAULT_RUNNER)
    (start_fn or server.start_io)()


@app.callback()
def main_callback(
    typer_ctx: typer.Context,
    root: Optional[Path] = RootOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Language server for the mypy daemon. Serves over stdio by default."""
    if typer_ctx.invoked_subcommand is None:
        run_serve(_bootstrap(root, config, log_level, log_file))


@app.command("serve")
def serve(
    root: Optional[Path] = RootOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Serve the language server protocol over stdio."""
    run_serve(_bootstrap(root, config, log_level, log_file))


@app.command("check")
def check(
    path: Path = typer.Argument(..., help="Python file to check."),
    root: Optional[Path] = RootOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Check one file with the daemon and print diagnostics as JSON lines."""
    ctx = _bootstrap(root, config, log_level, log_file)
    daemon = _daemon(ctx, DEFAULT_RUNNER)
    try:
        absolute = path if path.is_absolute() else ctx.root / path
        target = RootRelativePath.from_uri(ctx.root, absolute.resolve().as_uri())
        daemon.ensure_running(ctx.config.daemon_lifecycle)
        diagnostics = build_diagnostics(target, ctx.root, daemon.check(target.relative), context="cli")
    except DmypylsError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    for diagnostic in diagnostics:
        typer.echo(json.dumps(_diagnostic_payload(str(target.relative), diagnostic), sort_keys=True))
    if diagnostics:
        raise typer.Exit(code=1)


@app.command("status")
def status(
    root: Optional[Path] = RootOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Report whether the daemon is running."""
    ctx = _bootstrap(root, config, log_level, log_file)
    try:
        running = _daemon(ctx, DEFAULT_RUNNER).is_running()
    except DmypylsError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    typer.echo("running" if running else "not running")
    if not running:
        raise typer.Exit(code=1)


@app.command("stop")
def stop(
    root: Optional[Path] = RootOption,
    config: Optional[Path] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    log_file: Optional[Path] = LogFileOption,
) -> None:
    """Stop the daemon."""
    ctx = _bootstrap(root, config, log_level, log_file)
    try:
        _daemon(ctx, DEFAULT_RUNNER).stop()
    except DmypylsError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc
    typer.echo("stopped")


def main() -> None:  # pragma: no cover
    app()
