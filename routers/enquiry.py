from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic_core import PydanticCustomError

from deps import form_or_json, get_mailer
from utils.brevo_email import EnquiryMailer
from utils.errors import EmailDeliveryError
from utils.validators import Phone


logger = logging.getLogger(__name__)

router = APIRouter(tags=["enquiry"])


class EnquiryIn(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    full_name: str = Field(alias="fullName")
    phone: Phone
    email: EmailStr
    state: str = ""
    campus: str = ""
    course: str = ""

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if len(v) < 3:
            raise PydanticCustomError("full_name_length", "Full name must be at least 3 characters")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v


@router.post("/submit-form")
def submit_form(
    payload: EnquiryIn = Depends(form_or_json(EnquiryIn)),
    mailer: EnquiryMailer = Depends(get_mailer),
):
    try:
        mailer.send_enquiry(
            full_name=payload.full_name,
            email=payload.email,
            phone=payload.phone,
            state=payload.state,
            campus=payload.campus,
            course=payload.course,
        )
    except EmailDeliveryError as e:
        logger.error("Error sending email: %s", e)
        return JSONResponse(status_code=500, content={"error": "Failed to send email", "details": str(e)})
    return {"message": "Form data sent to developer successfully!"}
