"""
Request logging middleware
"""
import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REDACTED_HEADERS = frozenset({"authorization", "cookie", "set-cookie", "x-api-key"})


def redact_headers(headers) -> dict:
    """Copy headers with credential-bearing values replaced"""
    return {
        name: "***" if name.lower() in REDACTED_HEADERS else value
        for name, value in headers.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    One line per request with status and timing

    Request bodies are never read here: auth routes carry passwords and tokens.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        client = request.client.host if request.client else "-"
        logger.debug(f"{request.method} {request.url.path} headers={redact_headers(request.headers)}")

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.perf_counter() - started
            logger.error(f"❌ {request.method} {request.url.path} from {client} failed after {elapsed:.3f}s: {e}")
            raise

        elapsed = time.perf_counter() - started
        logger.info(f"{request.method} {request.url.path} from {client} -> {response.status_code} ({elapsed:.3f}s)")
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        return response
