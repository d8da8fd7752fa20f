"""Language server surface: pygls wiring around :class:`DmypyBackend`."""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Protocol

from lsprotocol.types import (
    INITIALIZE,
    SHUTDOWN,
    TEXT_DOCUMENT_DIAGNOSTIC,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    TEXT_DOCUMENT_HOVER,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    DiagnosticOptions,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    DocumentDiagnosticParams,
    Hover,
    HoverParams,
    InitializeParams,
    MarkupContent,
    MarkupKind,
    PublishDiagnosticsParams,
    RelatedFullDocumentDiagnosticReport,
    TextDocumentSyncKind,
)
from pygls.exceptions import JsonRpcInternalError, JsonRpcInvalidParams
from pygls.lsp.server import LanguageServer

from dmypyls import __version__
from dmypyls.config import APP_NAME, DmypylsConfig
from dmypyls.daemon import DmypyDaemon, Runner
from dmypyls.diagnostics import build_diagnostics
from dmypyls.exceptions import DmypylsError, PathError, log_failure
from dmypyls.paths import RootRelativePath, uri_to_path
from dmypyls.versions import DocumentVersionTable

logger = logging.getLogger(__name__)

PYTHON_EXTENSION = "py"


class DiagnosticsPublisher(Protocol):
    def text_document_publish_diagnostics(self, params: PublishDiagnosticsParams) -> None: ...


class DmypyBackend:
    def __init__(
        self,
        publisher: DiagnosticsPublisher,
        config: DmypylsConfig,
        root: Path,
        daemon: DmypyDaemon,
        versions: DocumentVersionTable,
    ) -> None:
        self.publisher = publisher
        self.config = config
        self.root = root
        self.daemon = daemon
        self.versions = versions

    def initialize(self) -> None:
        logger.info("[initialize] Initializing dmypyls")
        with log_failure("initialize", logger=logger):
            self.daemon.ensure_running(self.config.daemon_lifecycle)

    def check_file(self, context: str, uri: str) -> None:
        target = RootRelativePath.from_uri(self.root, uri)
        if target.extension != PYTHON_EXTENSION:
            logger.info("[%s] ignoring non-Python file: %s", context, target)
            return
        logger.info("[%s] checking file %s", context, target)
        output = self.daemon.check(target.relative)
        diagnostics = build_diagnostics(target, self.root, output, context=context)
        # Read after the check so the newest known edit is the one tagged.
        version = self.versions.latest(uri)
        logger.info("[%s] publishing %d diagnostics for %s:%s", context, len(diagnostics), target, version)
        self.publisher.text_document_publish_diagnostics(
            PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics, version=version)
        )

    def did_open(self, params: DidOpenTextDocumentParams) -> None:
        document = params.text_document
        self.versions.record(document.uri, document.version)
        with log_failure("did_open", logger=logger):
            self.check_file("did_open", document.uri)

    def did_change(self, params: DidChangeTextDocumentParams) -> None:
        document = params.text_document
        logger.debug("[did_change] %s:%s", document.uri, document.version)
        self.versions.record(document.uri, document.version)

    def did_save(self, params: DidSaveTextDocumentParams) -> None:
        with log_failure("did_save", logger=logger):
            self.check_file("did_save", params.text_document.uri)

    def did_close(self, params: DidCloseTextDocumentParams) -> None:
        logger.info("[did_close] %s", params.text_document.uri)

    def did_change_configuration(self, params: DidChangeConfigurationParams) -> None:
        if params.settings is None:
            return
        logger.info("[did_change_configuration] settings changes are not applied: %s", params.settings)

    def diagnostic(self, params: DocumentDiagnosticParams) -> RelatedFullDocumentDiagnosticReport:
        # Diagnostics are pushed on open and save.
        return RelatedFullDocumentDiagnosticReport(items=[])

    def hover(self, params: HoverParams) -> Hover | None:
        uri = params.text_document.uri
        try:
            path = uri_to_path(uri).resolve(strict=True)
        except (PathError, OSError) as exc:
            raise JsonRpcInvalidParams(f"No document found for url '{uri}': {exc}") from exc
        try:
            payload = self.daemon.inspect(path)
        except DmypylsError as exc:
            logger.error("[hover] %s", exc)
            raise JsonRpcInternalError(str(exc)) from exc
        if payload is None:
            return None
        return Hover(contents=MarkupContent(kind=MarkupKind.PlainText, value=json.dumps(payload)))

    def shutdown(self) -> None:
        logger.info("Shutting down dmypyls (stopping dmypy)")
        with log_failure("shutdown", logger=logger):
            self.daemon.stop()


class DmypyLanguageServer(LanguageServer):
    backend: DmypyBackend


def create_server(
    config: DmypylsConfig,
    root: Path,
    *,
    run: Runner = subprocess.run,
) -> DmypyLanguageServer:
    server = DmypyLanguageServer(
        APP_NAME,
        __version__,
        text_document_sync_kind=TextDocumentSyncKind.Full,
    )
    daemon = DmypyDaemon(config.command_template(), root, run=run)
    backend = DmypyBackend(server, config, root, daemon, DocumentVersionTable())
    server.backend = backend

    @server.feature(INITIALIZE)
    @server.thread()
    def initialize(ls: DmypyLanguageServer, params: InitializeParams) -> None:
        backend.initialize()

    @server.feature(TEXT_DOCUMENT_DID_OPEN)
    @server.thread()
    def did_open(ls: DmypyLanguageServer, params: DidOpenTextDocumentParams) -> None:
        backend.did_open(params)

    @server.feature(TEXT_DOCUMENT_DID_CHANGE)
    def did_change(ls: DmypyLanguageServer, params: DidChangeTextDocumentParams) -> None:
        backend.did_change(params)

    @server.feature(TEXT_DOCUMENT_DID_SAVE)
    @server.thread()
    def did_save(ls: DmypyLanguageServer, params: DidSaveTextDocumentParams) -> None:
        backend.did_save(params)

    @server.feature(TEXT_DOCUMENT_DID_CLOSE)
    def did_close(ls: DmypyLanguageServer, params: DidCloseTextDocumentParams) -> None:
        backend.did_close(params)

    @server.feature(WORKSPACE_DID_CHANGE_CONFIGURATION)
    def did_change_configuration(
        ls: DmypyLanguageServer, params: DidChangeConfigurationParams
    ) -> None:
        backend.did_change_configuration(params)

    @server.feature(
        TEXT_DOCUMENT_DIAGNOSTIC,
        DiagnosticOptions(inter_file_dependencies=False, workspace_diagnostics=False),
    )
    def diagnostic(
        ls: DmypyLanguageServer, params: DocumentDiagnosticParams
    ) -> RelatedFullDocumentDiagnosticReport:
        return backend.diagnostic(params)

    @server.feature(TEXT_DOCUMENT_HOVER)
    @server.thread()
    def hover(ls: DmypyLanguageServer, params: HoverParams) -> Hover | None:
        return backend.hover(params)

    @server.feature(SHUTDOWN)
    def shutdown(ls: DmypyLanguageServer, params: None = None) -> None:
        backend.shutdown()

    return server
