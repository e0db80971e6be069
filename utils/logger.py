import logging
import os
import sys
import time
import uuid
from typing import Awaitable, Callable, Optional

from fastapi import Request
from starlette.responses import Response

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
REQUEST_ID_HEADER = "x-request-id"

http_logger = logging.getLogger("backend.http")


def setup_logging(level: Optional[str] = None) -> None:
    """Send root logging to stdout at LOG_LEVEL (default INFO).

    Handlers already installed by uvicorn or a function host are kept.
    """
    resolved = getattr(logging, (level or os.getenv("LOG_LEVEL") or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT)))
        root.addHandler(handler)
    root.setLevel(resolved)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(resolved)


async def log_requests(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """One access line per request, tagged with a request id.

    The id is taken from X-Request-ID when the caller sends one and is
    returned on the response either way.
    """
    rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = rid
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        http_logger.exception("%s %s failed rid=%s", request.method, request.url.path, rid)
        raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers[REQUEST_ID_HEADER] = rid
    http_logger.info(
        "%s %s -> %s in %.1fms rid=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        rid,
    )
    return response
