"""Middleware and exception handler registration."""

from fastapi import FastAPI

from codetime.config import Settings
from codetime.middleware.cors import setup_cors
from codetime.middleware.error_handler import setup_error_handlers
from codetime.middleware.logging import setup_logging
from codetime.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers, request ids and CORS.

    The last middleware added runs outermost, so CORS is added last and its
    headers also reach error responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
