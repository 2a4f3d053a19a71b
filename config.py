from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    port: int = 3000
    client_url: str = "http://localhost:5173"

    # Brevo (formerly Sendinblue) transactional email
    sendinblue_api_key: Optional[str] = None
    enquiry_to_email: str = "developer@ctgroup.in"
    enquiry_from_email: str = "madhavarora132005@gmail.com"

    recaptcha_secret_key: Optional[str] = None
    recaptcha_retries: int = 2
    upstream_timeout_seconds: int = 10

    # Shared backend for OTPs and rate-limit counters; in-memory when unset.
    redis_url: Optional[str] = None

    # 0 keeps the historical behaviour: codes never expire, unlimited attempts.
    otp_ttl_seconds: int = 0
    otp_max_attempts: int = 0

    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 15 * 60

    cleanup_interval_minutes: int = 10
    log_level: str = "INFO"

    @property
    def enquiry_recipients(self) -> list[str]:
        return [e.strip() for e in self.enquiry_to_email.split(",") if e.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            port=_int_env("PORT", 3000),
            client_url=os.getenv("CLIENT_URL", cls.client_url),
            sendinblue_api_key=os.getenv("SENDINBLUE_API_KEY") or os.getenv("BREVO_API_KEY"),
            enquiry_to_email=os.getenv("ENQUIRY_TO_EMAIL", cls.enquiry_to_email),
            enquiry_from_email=os.getenv("ENQUIRY_FROM_EMAIL", cls.enquiry_from_email),
            recaptcha_secret_key=os.getenv("RECAPTCHA_SECRET_KEY"),
            recaptcha_retries=_int_env("RECAPTCHA_RETRIES", 2),
            upstream_timeout_seconds=_int_env("UPSTREAM_TIMEOUT_SECONDS", 10),
            redis_url=os.getenv("REDIS_URL") or None,
            otp_ttl_seconds=max(0, _int_env("OTP_TTL_SECONDS", 0)),
            otp_max_attempts=max(0, _int_env("OTP_MAX_ATTEMPTS", 0)),
            rate_limit_max=_int_env("RATE_LIMIT_MAX", 100),
            rate_limit_window_seconds=_int_env("RATE_LIMIT_WINDOW_SECONDS", 15 * 60),
            cleanup_interval_minutes=max(1, _int_env("CLEANUP_INTERVAL_MINUTES", 10)),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )
