"""agentwatch FastAPI app: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agentwatch import config
from agentwatch.routers.monitor import monitor_router
from agentwatch.services.monitor import MonitorService
from agentwatch.observability import initialize as initialize_observability, shutdown as shutdown_observability

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agentwatch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("agentwatch starting up")
    initialize_observability(app)
    app.state.monitor_service = MonitorService()
    logger.info(
        "Watching opencode=%s codex=%s claude=%s",
        config.opencode_data_root(),
        config.codex_sessions_root(),
        config.claude_projects_root(),
    )

    yield

    logger.info("agentwatch shutting down")
    shutdown_observability(app)


app = FastAPI(
    title="agentwatch API",
    description="Point-in-time view of running coding-agent sessions",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the UI dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(monitor_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    service = getattr(app.state, "monitor_service", None)
    return {
        "status": "ok",
        "monitor": "ready" if service is not None else "starting",
    }


def run() -> None:
    import uvicorn

    uvicorn.run("agentwatch.main:app", host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
