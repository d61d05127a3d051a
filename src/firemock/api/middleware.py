from __future__ import annotations

from collections.abc import Awaitable, Callable
import logging
import time

from fastapi import FastAPI, Request
from starlette.responses import Response

LOGGER = logging.getLogger(__name__)


def install_request_logging_middleware(app: FastAPI, *, label: str) -> None:
    @app.middleware("http")
    async def _request_logging_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        LOGGER.info(
            "[%s] %s %s -> %s (%.1f ms)",
            label,
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
