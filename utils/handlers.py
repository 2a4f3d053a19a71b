from __future__ import annotations

import logging

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from utils.errors import InvalidOtp


logger = logging.getLogger(__name__)


def _field_error(err: dict) -> dict:
    loc = list(err.get("loc") or [])
    location = str(loc.pop(0)) if loc else "body"
    kind = err.get("type")
    if kind == "json_invalid":
        loc = []
    return {
        "type": "field",
        "location": location,
        "path": ".".join(str(p) for p in loc),
        "msg": err.get("msg", "Invalid value"),
        "value": None if kind in ("missing", "json_invalid") else jsonable_encoder(err.get("input")),
    }


async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [_field_error(e) for e in exc.errors()]
    logger.debug("validation_error | path=%s errors=%s", request.url.path, errors)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


async def _invalid_otp_handler(request: Request, exc: InvalidOtp):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid OTP"})


class ServerErrorJSONMiddleware(BaseHTTPMiddleware):
    """Turns unhandled errors into a JSON 500 inside the CORS layer."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal Server Error"},
            )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(InvalidOtp, _invalid_otp_handler)
