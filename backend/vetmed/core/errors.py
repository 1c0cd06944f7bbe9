"""Module: errors.

Typed failures raised by the scheduling core and the services on top of it.
Routes let these propagate; ``register_exception_handlers`` turns them into
JSON responses so every failure path ends as a typed result, never a crash.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class VetmedError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, detail: str, **extra):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"detail": self.detail, "code": self.code}
        body.update(self.extra)
        return body


# Malformed input (timezone, HH:MM, ids, schedule shape). Never retried.
class ValidationError(VetmedError):
    status_code = 422
    code = "validation_error"


class Unauthorized(VetmedError):
    status_code = 401
    code = "unauthorized"


class Forbidden(VetmedError):
    status_code = 403
    code = "forbidden"


class NotFound(VetmedError):
    status_code = 404
    code = "not_found"


# Inventory source expired or mismatched; the caller may retry with allow_override.
class Blocked(VetmedError):
    status_code = 409
    code = "blocked"

    def __init__(self, detail: str, reasons: list[str]):
        super().__init__(detail, reasons=list(reasons), override_allowed=True)
        self.reasons = list(reasons)


# Non-idempotent state conflicts (e.g. already co-signed). Duplicate
# idempotency keys are never reported through this.
class Conflict(VetmedError):
    status_code = 409
    code = "conflict"


async def _vetmed_error_handler(request: Request, exc: VetmedError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
    else:
        logger.info("path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(VetmedError, _vetmed_error_handler)
