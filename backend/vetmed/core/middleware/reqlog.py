import time
import uuid
import json
import logging
from typing import Callable
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from vetmed.core.config import settings

logger = logging.getLogger("vetmed.request")


def _emit(ctx: dict):
    if settings.reqlog_format.lower() == "json":
        logger.info(json.dumps(ctx, default=str))
        return
    line = (
        "req={req} method={method} path={path} query={query} status={status} "
        "dur_ms={dur_ms:.2f} user={user}"
    ).format(**ctx)
    if ctx.get("error"):
        line += f" error={ctx['error']}"
        logger.error(line)
    else:
        logger.info(line)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Request/response logging with timing and correlation id (X-Request-ID)."""

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        req_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        ctx = {
            "req": req_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or "-",
            "status": None,
            "dur_ms": 0.0,
            "user": request.headers.get("X-User-Id", "-"),
            "error": None,
        }
        try:
            response = await call_next(request)
        except Exception as e:
            ctx["dur_ms"] = (time.perf_counter() - start) * 1000.0
            ctx["status"] = 500
            ctx["error"] = str(e)
            _emit(ctx)
            logger.exception("stacktrace for req=%s", req_id)
            raise
        ctx["dur_ms"] = (time.perf_counter() - start) * 1000.0
        ctx["status"] = response.status_code
        _emit(ctx)
        response.headers["X-Request-ID"] = req_id
        return response
