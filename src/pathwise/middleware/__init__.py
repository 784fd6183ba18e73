"""Middleware registration."""

from fastapi import FastAPI

from pathwise.config import Settings
from pathwise.middleware.error_handler import setup_error_handlers
from pathwise.middleware.logging import setup_logging
from pathwise.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and request-id propagation."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
