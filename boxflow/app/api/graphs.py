from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from boxflow.app.api.deps import get_container
from boxflow.app.core.container import AppContainer
from boxflow.app.models.document import ArityResponse, BoxGraphDocument, CompileResponse
from boxflow.app.services.compiler_service import CompilationError

router = APIRouter(prefix="/graphs", tags=["graphs"])


@router.post("/compile", response_model=CompileResponse)
async def compile_graph(
    document: BoxGraphDocument,
    container: AppContainer = Depends(get_container),
) -> CompileResponse:
    try:
        return container.compiler_service.compile_document(document)
    except CompilationError as error:
        raise HTTPException(status_code=422, detail={"diagnostics": error.diagnostics}) from error


@router.post("/arity", response_model=ArityResponse)
async def describe_arity(
    document: BoxGraphDocument,
    container: AppContainer = Depends(get_container),
) -> ArityResponse:
    try:
        return container.compiler_service.describe_arity(document)
    except CompilationError as error:
        raise HTTPException(status_code=422, detail={"diagnostics": error.diagnostics}) from error
