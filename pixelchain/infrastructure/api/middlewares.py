from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from pixelchain.infrastructure.config import Settings

LOCAL_FRONTEND_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def cors_origins(settings: Settings) -> list[str]:
    """Explicit CORS_ORIGINS win; otherwise local frontends outside production."""
    if settings.cors_origins:
        return list(settings.cors_origins)
    if settings.env in ("development", "staging"):
        return list(LOCAL_FRONTEND_ORIGINS)
    return ["*"]


def add_default_middlewares(app: FastAPI, settings: Settings) -> None:
    origins = cors_origins(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
