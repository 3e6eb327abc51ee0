from __future__ import annotations

import logging

from boxflow.app.core.config import Settings
from boxflow.app.engine.context import lib_context
from boxflow.app.engine.errors import BoxError
from boxflow.app.engine.flattener import Flattener
from boxflow.app.engine.resolver import CycleResolver
from boxflow.app.models.document import ArityResponse, BoxGraphDocument, CompileResponse
from boxflow.app.services.document_service import DocumentService

logger = logging.getLogger(__name__)


class CompilationError(Exception):
    def __init__(self, diagnostics: list[str]):
        self.diagnostics = diagnostics
        super().__init__("Box graph compilation failed")


class CompilerService:
    """Compiles box graph documents, one short-lived box context per request."""

    def __init__(self, settings: Settings, document_service: DocumentService) -> None:
        self._settings = settings
        self._document_service = document_service

    def compile_document(self, document: BoxGraphDocument) -> CompileResponse:
        try:
            with lib_context(self._settings) as context:
                root = self._document_service.import_graph(context, document)
                signals = Flattener(context).flatten(root)
                arity = root.arity
                exported = self._document_service.export_signals(signals)
        except BoxError as error:
            logger.warning("Box graph compilation failed for root '%s': %s", document.root, error)
            raise CompilationError([str(error)]) from error

        logger.info(
            "Compiled box graph '%s' (%d nodes) into %d signal(s)",
            document.root,
            len(document.nodes),
            len(signals),
        )
        return CompileResponse(inputs=arity.inputs, outputs=arity.outputs, signals=exported)

    def describe_arity(self, document: BoxGraphDocument) -> ArityResponse:
        try:
            with lib_context(self._settings) as context:
                root = self._document_service.import_graph(context, document)
                arity = CycleResolver(context).resolve(root).arity
        except BoxError as error:
            logger.warning("Box graph validation failed for root '%s': %s", document.root, error)
            raise CompilationError([str(error)]) from error

        return ArityResponse(inputs=arity.inputs, outputs=arity.outputs)
