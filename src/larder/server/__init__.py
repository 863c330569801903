"""HTTP server for Larder: FastAPI app, dependencies and uvicorn runner."""

from larder.server.app import app, create_app

__all__ = ["app", "create_app"]
