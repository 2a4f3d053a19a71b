from __future__ import annotations

import html
import logging
from typing import Iterable, Optional

import requests

from config import Settings
from utils.errors import EmailDeliveryError


logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"
ENQUIRY_SUBJECT = "New Enquiry Form Submission"


def send_email(
    *,
    api_key: Optional[str],
    sender: str,
    to_emails: Iterable[str],
    subject: str,
    html_content: str,
    timeout: float = 15,
) -> dict:
    """
    Sends one email through the Brevo (Sendinblue) transactional email API.

    Not retried: a timed-out request may still have been delivered.
    Raises EmailDeliveryError with the upstream detail on any failure.
    """
    if not api_key:
        raise EmailDeliveryError("SENDINBLUE_API_KEY is not set")

    recipients = [{"email": e} for e in to_emails]
    if not recipients:
        raise EmailDeliveryError("No recipients configured")

    payload = {
        "sender": {"email": sender},
        "to": recipients,
        "subject": subject,
        "htmlContent": html_content,
    }

    try:
        resp = requests.post(
            BREVO_SEND_URL,
            headers={
                "accept": "application/json",
                "api-key": api_key,
                "content-type": "application/json",
            },
            json=payload,
            timeout=timeout,
        )
    except requests.RequestException as e:
        raise EmailDeliveryError(str(e)) from e

    if resp.status_code >= 300:
        raise EmailDeliveryError(f"Brevo send failed ({resp.status_code}): {resp.text}")

    try:
        return resp.json()
    except ValueError:
        return {}


def render_enquiry_html(
    *, full_name: str, email: str, phone: str, state: str, campus: str, course: str
) -> str:
    rows = [
        ("Name", full_name),
        ("Email", email),
        ("Phone", phone),
        ("State", state),
        ("Campus", campus),
        ("Course", course),
    ]
    lines = ["<h2>New Enquiry Received</h2>"]
    lines += [f"<p><strong>{label}:</strong> {html.escape(value or '')}</p>" for label, value in rows]
    return "\n".join(lines)


class EnquiryMailer:
    """Relays enquiry form submissions to the configured inbox."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def send_enquiry(self, **fields: str) -> dict:
        result = send_email(
            api_key=self.settings.sendinblue_api_key,
            sender=self.settings.enquiry_from_email,
            to_emails=self.settings.enquiry_recipients,
            subject=ENQUIRY_SUBJECT,
            html_content=render_enquiry_html(**fields),
            timeout=self.settings.upstream_timeout_seconds,
        )
        logger.info("Enquiry email sent to %s", ",".join(self.settings.enquiry_recipients))
        return result
