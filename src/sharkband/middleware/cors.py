"""CORS for the business dashboard and the mobile web client."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sharkband.config import Settings

# The gateway principal and request id travel as custom headers.
_ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-User-Id", "X-Request-Id"]
_EXPOSED_HEADERS = ["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Register CORS unless no browser origins are configured."""
    if not settings.cors_origins:
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=_ALLOWED_HEADERS,
        expose_headers=_EXPOSED_HEADERS,
        max_age=600,
    )
