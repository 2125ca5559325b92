import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Per-request correlation ID
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # provide %(correlation_id)s to all formatters
        record.correlation_id = correlation_id_ctx.get()
        return True


_CONFIGURED = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Idempotent logging setup that ensures %(correlation_id)s is available in all log lines.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    filt = CorrelationIdFilter()
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(filt)

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level or logging.INFO)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        logging.getLogger(name).addFilter(filt)

    _CONFIGURED = True


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    - Generates UUID correlation ID per request (also in request.state.correlation_id)
    - Logs start/end/errors
    - Adds X-Correlation-ID response header
    """

    def __init__(self, app, log_requests: bool = True):
        super().__init__(app)
        self._logger = logging.getLogger("request")
        self._log_requests = log_requests

    async def dispatch(self, request: Request, call_next):
        cid = uuid.uuid4().hex
        token = correlation_id_ctx.set(cid)
        request.state.correlation_id = cid

        method = request.method
        path = request.url.path
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception as e:
            dur_ms = int((time.perf_counter() - start) * 1000)
            self._logger.exception("!! %s %s error after %dms: %s", method, path, dur_ms, e)
            raise
        finally:
            correlation_id_ctx.reset(token)

        dur_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Correlation-ID"] = cid
        if self._log_requests:
            self._logger.info("%s %s %d %dms", method, path, response.status_code, dur_ms)
        return response
