"""
Historian HTTP Server

FastAPI endpoints exposing the search engine.
"""

from datetime import datetime, timezone

from fastapi import FastAPI

from historian.http.api import router as api_router

# Track server startup time
_startup_time = datetime.now(timezone.utc).isoformat()


def get_startup_time() -> str:
    """Get the server startup time."""
    return _startup_time


# Create FastAPI app
app = FastAPI(
    title="Code Historian",
    description="Hybrid search over code change history",
    version="0.1.0",
)

app.include_router(api_router, tags=["api"])


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "started_at": get_startup_time()}


def run_server(host: str = "127.0.0.1", port: int = 8080):
    """Run the FastAPI server."""
    import uvicorn

    from historian.configs import get_logger, setup_logging

    setup_logging()
    logger = get_logger("http")
    logger.info(f"Starting HTTP server on {host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="warning")
