from __future__ import annotations

import logging
import re

import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from utils.otp_service import MemoryOtpStore


OTP_LOG_RE = re.compile(r"^OTP for (\d{10}): (\d{6})$")


class StubMailer:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.sent: list[dict] = []

    def send_enquiry(self, **fields):
        if self.error:
            raise self.error
        self.sent.append(fields)
        return {"messageId": "<stub@brevo>"}


class StubRecaptcha:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result if result is not None else {"success": True}
        self.error = error
        self.tokens: list = []

    def verify(self, token):
        self.tokens.append(token)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    return Settings(
        client_url="http://localhost:5173",
        sendinblue_api_key="test-key",
        recaptcha_secret_key="test-secret",
        rate_limit_max=1000,
    )


@pytest.fixture
def store():
    return MemoryOtpStore()


@pytest.fixture
def mailer():
    return StubMailer()


@pytest.fixture
def recaptcha():
    return StubRecaptcha()


@pytest.fixture
def app(settings, store, mailer, recaptcha):
    return create_app(settings, otp_store=store, mailer=mailer, recaptcha=recaptcha)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def otp_log(caplog):
    """Returns a function that reads the last code written to the OTP log for a phone."""
    caplog.set_level(logging.INFO, logger="utils.otp_service")

    def last_code(phone: str) -> str:
        codes = []
        for rec in caplog.records:
            m = OTP_LOG_RE.match(rec.getMessage())
            if m and m.group(1) == phone:
                codes.append(m.group(2))
        assert codes, f"no OTP logged for {phone}"
        return codes[-1]

    return last_code

