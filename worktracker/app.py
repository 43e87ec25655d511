import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from worktracker.infrastructure import HttpSheetsSyncClient, configure_sheets_client
from worktracker.routes import records, summary


def create_app() -> FastAPI:
    logging.basicConfig(
        level=os.getenv("WORKTRACKER_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Work Tracker API", version="0.1.0")

    sync_url = os.getenv("SHEETS_SYNC_URL")
    if sync_url:
        client = HttpSheetsSyncClient(sync_url, os.getenv("SHEETS_SYNC_TOKEN"))
        configure_sheets_client(client)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:5173", "http://127.0.0.1:5173"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(records.router, prefix="/api")
    app.include_router(summary.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Work Tracker API",
                "docs": "/docs",
                "health": "/api/tables",
            }
        )

    return app


app = create_app()
