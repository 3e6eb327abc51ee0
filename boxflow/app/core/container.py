from __future__ import annotations

from dataclasses import dataclass

from boxflow.app.core.config import Settings
from boxflow.app.services.compiler_service import CompilerService
from boxflow.app.services.document_service import DocumentService


@dataclass(slots=True)
class AppContainer:
    settings: Settings
    document_service: DocumentService
    compiler_service: CompilerService
