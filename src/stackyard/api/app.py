"""FastAPI app entrypoint."""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from stackyard.api.routes.projects import router as projects_router
from stackyard.logging import configure_logging


def create_app() -> FastAPI:
    app = FastAPI(title="stackyard API", version="0.1.0")
    app.include_router(projects_router)

    @app.get("/api/v1/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    configure_logging()
    uvicorn.run("stackyard.api.app:app", host="0.0.0.0", port=8000, reload=False)
