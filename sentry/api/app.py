"""
HTTP API - single ``POST /audit`` endpoint in front of the audit pipeline.

Audits share one sandbox directory, so requests are serialized with an
``asyncio.Lock`` held for the whole pipeline run.
"""

import asyncio
import json

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sentry import __version__
from sentry.core.config.settings import Settings, get_settings
from sentry.core.logger.logger import get_logger
from sentry.pipeline.orchestrator import AuditPipeline

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    pipeline: AuditPipeline | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings, global ones by default.
        pipeline: Pipeline to run, built lazily from settings by default.

    Returns:
        Configured FastAPI app.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="SENTRY",
        description="Hypothesize-then-prove verification of smart contract access control",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["POST"],
        allow_headers=["*"],
    )

    app.state.audit_lock = asyncio.Lock()
    app.state.pipeline = pipeline

    def get_pipeline() -> AuditPipeline:
        if app.state.pipeline is None:
            app.state.pipeline = AuditPipeline()
        return app.state.pipeline

    @app.post("/audit")
    async def audit(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None

        code = body.get("code") if isinstance(body, dict) else None
        if not isinstance(code, str) or not code.strip():
            return JSONResponse(status_code=400, content={"error": "No code provided"})

        try:
            async with app.state.audit_lock:
                result = await get_pipeline().run(code)
        except Exception:
            logger.exception("Pipeline failed")
            return JSONResponse(status_code=500, content={"error": "Pipeline execution failed"})

        return JSONResponse(content=result.model_dump(mode="json"))

    return app


def start_server(host: str | None = None, port: int | None = None) -> None:
    """Serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    host = host or settings.server.host
    port = port or settings.server.port

    logger.info(f"SENTRY Server running on http://{host}:{port}")
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
