"""HTTP middleware and exception handlers."""

from fastapi import FastAPI

from studyhall.config import Settings
from studyhall.middleware.cors import setup_cors
from studyhall.middleware.error_handler import setup_error_handlers
from studyhall.middleware.logging import setup_logging
from studyhall.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Logging first, then handlers; CORS is added last so it is outermost."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
