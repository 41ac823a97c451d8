"""
FastAPI application factory for the pill scanner status API.

Routes:
- /api/* -> REST API (health, status, detections, recognition, scans)
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Pill Scanner",
        version="0.1.0",
        description="On-device pill detection and label recognition",
    )

    # CORS for development (local UI dev server)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    return app


# Exported application instance for uvicorn
app = create_app()
