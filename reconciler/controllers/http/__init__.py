"""
Reconciler HTTP Server

FastAPI-based HTTP endpoints for cleanup, member deletes and profile sweeps.
"""

from datetime import datetime, timezone

from fastapi import FastAPI

from reconciler import __version__
from reconciler.controllers.http.api import router as api_router

# Track server startup time
_startup_time = datetime.now(timezone.utc).isoformat()


def get_startup_time() -> str:
    """Get the server startup time."""
    return _startup_time


# Create FastAPI app
app = FastAPI(
    title="Reconciler Server",
    description="HTTP endpoints for member data reconciliation",
    version=__version__,
)

# Include routers
app.include_router(api_router, tags=["api"])


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "started_at": get_startup_time()}


def run_server(host: str = "0.0.0.0", port: int = 8090):
    """Run the FastAPI server."""
    import uvicorn
    from reconciler.configs import get_logger
    logger = get_logger("http")
    logger.info(f"Starting HTTP server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="warning")
