from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import Settings
from utils.errors import RecaptchaError


logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


def _session(retries: int) -> requests.Session:
    # siteverify is idempotent for a given token, so transient failures are retried.
    retry = Retry(
        total=max(0, retries),
        connect=max(0, retries),
        read=max(0, retries),
        status=max(0, retries),
        backoff_factor=0.3,
        status_forcelist=(502, 503, 504),
        allowed_methods=frozenset({"POST"}),
        raise_on_status=False,
    )
    s = requests.Session()
    s.mount("https://", HTTPAdapter(max_retries=retry))
    s.mount("http://", HTTPAdapter(max_retries=retry))
    return s


class RecaptchaVerifier:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.secret = settings.recaptcha_secret_key
        self.timeout = settings.upstream_timeout_seconds
        self.session = session or _session(settings.recaptcha_retries)

    def verify(self, token: Optional[str]) -> Dict[str, Any]:
        """Returns Google's verification JSON as-is."""
        try:
            resp = self.session.post(
                SITEVERIFY_URL,
                params={"secret": self.secret, "response": token},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RecaptchaError(str(e)) from e
