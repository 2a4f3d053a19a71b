from __future__ import annotations

import json
from typing import Callable, Type, TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

from config import Settings
from utils.brevo_email import EnquiryMailer
from utils.otp_service import OtpStore
from utils.recaptcha import RecaptchaVerifier


ModelT = TypeVar("ModelT", bound=BaseModel)

FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


# Collaborators are built once by main.create_app() and kept on app.state.

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_otp_store(request: Request) -> OtpStore:
    return request.app.state.otp_store


def get_mailer(request: Request) -> EnquiryMailer:
    return request.app.state.mailer


def get_recaptcha(request: Request) -> RecaptchaVerifier:
    return request.app.state.recaptcha


async def _read_body(request: Request) -> object:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in FORM_TYPES:
        form = await request.form()
        return {k: form[k] for k in form.keys()}

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body", 0), "msg": "JSON decode error", "input": {}, "ctx": {"error": str(e)}}]
        )


def form_or_json(model: Type[ModelT]) -> Callable:
    """
    Dependency that validates a JSON or form-encoded body against `model`.

    Errors are reported as RequestValidationError with body-prefixed locations,
    same as FastAPI's own body validation.
    """

    async def dependency(request: Request) -> ModelT:
        data = await _read_body(request)
        try:
            return model.model_validate(data)
        except ValidationError as e:
            errors = []
            for err in e.errors(include_url=False):
                err = dict(err)
                err["loc"] = ("body", *err.get("loc", ()))
                errors.append(err)
            raise RequestValidationError(errors)

    return dependency
