from __future__ import annotations


class InvalidOtp(Exception):
    """Submitted code does not match a pending OTP (or none was issued)."""


class UpstreamError(RuntimeError):
    """An outbound call to a third-party API failed."""


class RecaptchaError(UpstreamError):
    pass


class EmailDeliveryError(UpstreamError):
    pass
