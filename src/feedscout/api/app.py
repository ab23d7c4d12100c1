"""FastAPI application entrypoint."""

from __future__ import annotations

from fastapi import FastAPI

from feedscout.api.routes import router


def create_app() -> FastAPI:
    """Create the FastAPI application exposing the discovery API."""

    app = FastAPI(title="FeedScout", description="Article discovery API")
    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
