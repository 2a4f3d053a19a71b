from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator
from pydantic_core import PydanticCustomError

from utils.otp_service import OTP_RE, PHONE_RE


def check_phone(v: str) -> str:
    if not PHONE_RE.match(v or ""):
        raise PydanticCustomError("phone_format", "Phone number must be 10 digits")
    return v


def check_otp(v: str) -> str:
    if not OTP_RE.match(v or ""):
        raise PydanticCustomError("otp_format", "OTP must be 6 digits")
    return v


Phone = Annotated[str, AfterValidator(check_phone)]
OtpCode = Annotated[str, AfterValidator(check_otp)]
