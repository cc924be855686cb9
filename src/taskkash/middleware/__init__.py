"""Middleware registration."""

from fastapi import FastAPI

from taskkash.config import Settings
from taskkash.middleware.cors import setup_cors
from taskkash.middleware.error_handler import setup_error_handlers
from taskkash.middleware.logging import setup_logging
from taskkash.middleware.rate_limit import RateLimitMiddleware
from taskkash.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware; the last one added runs outermost.

    CORS goes last so its headers are also set on 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
