from __future__ import annotations

from fastapi import FastAPI

from pixelchain.application.dtos.common_dto import HealthResponse, RootResponse
from pixelchain.infrastructure.api.dependencies import build_coordinator, build_interceptors
from pixelchain.infrastructure.api.middlewares import add_default_middlewares
from pixelchain.infrastructure.api.routes.auth_routes import router as auth_router
from pixelchain.infrastructure.api.routes.image_routes import router as image_router
from pixelchain.infrastructure.auth.supabase_auth import SupabaseAuthAdapter
from pixelchain.infrastructure.config import Settings
from pixelchain.infrastructure.logging.event_log import EventLogSink, LogSink, setup_logging


def create_app(
    settings: Settings | None = None,
    sink: LogSink | None = None,
    auth: SupabaseAuthAdapter | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings)
    sink = sink or EventLogSink()
    auth = auth or SupabaseAuthAdapter.from_settings(settings)

    app = FastAPI(
        title="PixelChain Backend",
        version="0.1.0",
        description="""
        ## PixelChain Backend API

        FastAPI backend that applies resize, crop, format, rotate and filter
        operations to a base64 image, one at a time or as an ordered pipeline.

        ### Authentication
        Processing endpoints require a Bearer token in the Authorization header:
        ```
        Authorization: Bearer your-jwt-token
        ```

        ### Error Responses
        - **400 Bad Request**: Malformed body, unsupported operation, or no operation produced
        - **401 Unauthorized**: Missing or invalid authentication token
        - **500 Internal Server Error**: Encoding or unexpected failure
        - **504 Gateway Timeout**: Pipeline exceeded its deadline
        """,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )
    app.state.settings = settings
    app.state.coordinator = build_coordinator(settings, sink)
    app.state.interceptors = build_interceptors(auth, sink)
    add_default_middlewares(app, settings)

    @app.get(
        "/",
        response_model=RootResponse,
        summary="API Root",
        description="Get basic information about the PixelChain API",
    )
    def root():
        """Get API root information."""
        return {"status": "ok", "service": "pixelchain-backend", "version": app.version}

    @app.get(
        "/health",
        response_model=HealthResponse,
        summary="Health Check",
        description="Check if the API service is running and healthy",
    )
    def health():
        """Check API health status."""
        return {"status": "healthy"}

    app.include_router(auth_router)
    app.include_router(image_router)
    return app


def run() -> None:
    """Serve the app with uvicorn; HOST and PORT come from the environment."""
    import os

    import uvicorn

    uvicorn.run(
        "pixelchain.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )
