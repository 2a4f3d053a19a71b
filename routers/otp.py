from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from deps import form_or_json, get_otp_store
from utils.errors import InvalidOtp
from utils.otp_service import OtpStore
from utils.validators import OtpCode, Phone


router = APIRouter(tags=["otp"])


class SendOtpIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)

    phone: Phone


class VerifyOtpIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)

    phone: Phone
    otp: OtpCode


@router.post("/send-otp")
def send_otp(
    payload: SendOtpIn = Depends(form_or_json(SendOtpIn)),
    store: OtpStore = Depends(get_otp_store),
):
    # The code is only logged; it never goes back to the caller.
    store.issue(payload.phone)
    return {"message": "OTP sent successfully!"}


@router.post("/verify-otp")
def verify_otp(
    payload: VerifyOtpIn = Depends(form_or_json(VerifyOtpIn)),
    store: OtpStore = Depends(get_otp_store),
):
    if not store.verify(payload.phone, payload.otp):
        raise InvalidOtp()
    return {"message": "OTP verified successfully!"}
