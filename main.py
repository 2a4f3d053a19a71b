from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from config import Settings
from routers.enquiry import router as enquiry_router
from routers.otp import router as otp_router
from routers.recaptcha import router as recaptcha_router
from utils.brevo_email import EnquiryMailer
from utils.handlers import ServerErrorJSONMiddleware, register_exception_handlers
from utils.otp_service import OtpStore, build_otp_store
from utils.rate_limit import RateLimiter, RateLimitMiddleware, build_rate_limiter
from utils.recaptcha import RecaptchaVerifier


logger = logging.getLogger("main")


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _cleanup_expired(app: FastAPI) -> int:
    """Drop expired OTPs and finished rate-limit windows."""
    purged = app.state.otp_store.purge_expired()
    purged += app.state.rate_limiter.purge_expired()
    logger.debug("Cleanup purged %d entries", purged)
    return purged


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    sched = BackgroundScheduler(timezone=os.getenv("TZ", "UTC"))
    sched.add_job(
        _cleanup_expired,
        "interval",
        args=[app],
        minutes=settings.cleanup_interval_minutes,
        id="cleanup_expired",
        replace_existing=True,
    )
    sched.start()
    app.state._scheduler = sched
    logger.info("Server running on http://localhost:%s", settings.port)
    try:
        yield
    finally:
        sched.shutdown(wait=False)


def create_app(
    settings: Optional[Settings] = None,
    *,
    otp_store: Optional[OtpStore] = None,
    rate_limiter: Optional[RateLimiter] = None,
    mailer: Optional[EnquiryMailer] = None,
    recaptcha: Optional[RecaptchaVerifier] = None,
) -> FastAPI:
    if settings is None:
        settings = Settings.from_env()
    _configure_logging(settings)

    app = FastAPI(title="Enquiry Backend", lifespan=_lifespan)

    app.state.settings = settings
    app.state.otp_store = otp_store if otp_store is not None else build_otp_store(settings)
    app.state.rate_limiter = rate_limiter if rate_limiter is not None else build_rate_limiter(settings)
    app.state.mailer = mailer if mailer is not None else EnquiryMailer(settings)
    app.state.recaptcha = recaptcha if recaptcha is not None else RecaptchaVerifier(settings)

    register_exception_handlers(app)

    # Last added is outermost: CORS answers preflights and decorates every
    # response, including throttled ones and unexpected 500s.
    app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)
    app.add_middleware(ServerErrorJSONMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(recaptcha_router)
    app.include_router(otp_router)
    app.include_router(enquiry_router)

    @app.get("/", response_class=PlainTextResponse)
    def root():
        return f"Server is running on port {settings.port}"

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
