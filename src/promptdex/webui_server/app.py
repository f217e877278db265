from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from .. import __version__
from ..baseline import BaselineSource, load_baseline
from ..errors import MalformedInputError
from ..session import PromptSession
from ..snapshot import SnapshotStore
from .deps import Services
from .routers.dictionary import router as dictionary_router
from .routers.editor import router as editor_router
from .routers.presets import router as presets_router
from .settings import load_webui_settings


def create_app() -> FastAPI:
    settings = load_webui_settings()
    source = BaselineSource(settings.baseline_location)
    session = PromptSession(
        baseline_loader=lambda: load_baseline(source),
        store=SnapshotStore(settings.state_path),
        save_delay_seconds=settings.save_delay_seconds,
    )
    services = Services(settings=settings, session=session)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.session.initialize()
        app.state.services = services
        services.session.saver.start()
        if services.session.restore_warning:
            print(f"[warn] snapshot not restored: {services.session.restore_warning}", flush=True)
        print(
            f"[start] webui-server listening on http://{settings.bind_host}:{settings.bind_port}{settings.base_path}",
            flush=True,
        )
        try:
            yield
        finally:
            services.session.saver.shutdown()

    app = FastAPI(title="PromptDex Web UI", version="1.0", lifespan=lifespan)
    api_prefix = f"{settings.base_path}/api/v1"

    @app.get("/")
    async def root_redirect() -> Response:
        return RedirectResponse(url=f"{api_prefix}/health", status_code=307)

    @app.get(f"{api_prefix}/health")
    async def health() -> dict[str, Any]:
        dataset = services.session.dataset
        return {
            "ok": True,
            "base_path": settings.base_path,
            "version": __version__,
            "baseline": settings.baseline_location,
            "categories": len(dataset.categories) if dataset else 0,
            "tags": dataset.tag_count() if dataset else 0,
            "languages": services.session.languages,
        }

    app.include_router(dictionary_router, prefix=api_prefix)
    app.include_router(editor_router, prefix=api_prefix)
    app.include_router(presets_router, prefix=api_prefix)

    @app.exception_handler(MalformedInputError)
    async def malformed_input_handler(_request: Request, exc: MalformedInputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": "malformed_input", "detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_request: Request, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": "runtime_error", "detail": str(exc)})

    return app
