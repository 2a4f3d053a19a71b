from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from deps import form_or_json, get_recaptcha
from utils.errors import RecaptchaError
from utils.recaptcha import RecaptchaVerifier


logger = logging.getLogger(__name__)

router = APIRouter(tags=["recaptcha"])


class RecaptchaIn(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    token: Optional[str] = None


@router.post("/verify-recaptcha")
def verify_recaptcha(
    payload: RecaptchaIn = Depends(form_or_json(RecaptchaIn)),
    verifier: RecaptchaVerifier = Depends(get_recaptcha),
):
    """Relays Google's siteverify result untouched; the client decides on score/action."""
    try:
        return verifier.verify(payload.token)
    except RecaptchaError as e:
        logger.error("reCAPTCHA verification error: %s", e)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
