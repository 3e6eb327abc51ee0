from __future__ import annotations

import argparse
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from boxflow.app.api import graphs
from boxflow.app.core.config import Settings, get_settings
from boxflow.app.core.container import AppContainer
from boxflow.app.core.logging import configure_logging
from boxflow.app.services.compiler_service import CompilerService
from boxflow.app.services.document_service import DocumentService


def _build_container(settings: Settings) -> AppContainer:
    document_service = DocumentService()
    compiler_service = CompilerService(settings=settings, document_service=document_service)
    return AppContainer(
        settings=settings,
        document_service=document_service,
        compiler_service=compiler_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.debug, settings.engine_debug)
    app.state.container = _build_container(settings)
    yield


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

    app.include_router(graphs.router, prefix=settings.api_prefix)

    @app.get(f"{settings.api_prefix}/health")
    async def health() -> dict[str, str]:
        return {
            "status": "ok",
            "version": settings.app_version,
            "feedback_group_prefix": settings.feedback_group_prefix,
        }

    return app


app = create_app()


def run() -> None:
    parser = argparse.ArgumentParser(description="Run the boxflow compilation API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--log-level", default="info")
    parser.add_argument("--reload", action=argparse.BooleanOptionalAction, default=False)
    parser.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--engine-debug", action=argparse.BooleanOptionalAction, default=None)
    args = parser.parse_args()

    if args.debug is not None:
        os.environ["BOXFLOW_DEBUG"] = "1" if args.debug else "0"
    if args.engine_debug is not None:
        os.environ["BOXFLOW_ENGINE_DEBUG"] = "1" if args.engine_debug else "0"

    get_settings.cache_clear()
    globals()["app"] = create_app()

    uvicorn.run(
        "boxflow.app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    run()
