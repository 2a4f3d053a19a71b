import pytest
import requests
from fastapi.testclient import TestClient

from conftest import StubRecaptcha
from main import create_app
from utils.errors import RecaptchaError
from utils.recaptcha import RecaptchaVerifier, SITEVERIFY_URL


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def _client(settings, store, mailer, recaptcha):
    return TestClient(create_app(settings, otp_store=store, mailer=mailer, recaptcha=recaptcha))


def test_relays_upstream_json(client, recaptcha):
    res = client.post("/verify-recaptcha", json={"token": "tok-123"})

    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert recaptcha.tokens == ["tok-123"]


def test_relays_v3_fields_verbatim(settings, store, mailer):
    upstream = {
        "success": True,
        "score": 0.9,
        "action": "submit",
        "challenge_ts": "2024-05-01T10:00:00Z",
        "hostname": "example.com",
    }
    client = _client(settings, store, mailer, StubRecaptcha(result=upstream))
    assert client.post("/verify-recaptcha", json={"token": "t"}).json() == upstream


def test_upstream_failure_is_500(settings, store, mailer):
    client = _client(settings, store, mailer, StubRecaptcha(error=RecaptchaError("timed out")))

    res = client.post("/verify-recaptcha", json={"token": "t"})

    assert res.status_code == 500
    assert res.json() == {"error": "Internal Server Error"}


def test_verifier_posts_secret_and_token(settings):
    session = FakeSession(response=FakeResponse(payload={"success": False, "error-codes": ["invalid-input-response"]}))
    verifier = RecaptchaVerifier(settings, session=session)

    result = verifier.verify("abc")

    assert result == {"success": False, "error-codes": ["invalid-input-response"]}
    url, kwargs = session.calls[0]
    assert url == SITEVERIFY_URL
    assert kwargs["params"] == {"secret": "test-secret", "response": "abc"}
    assert kwargs["timeout"] == settings.upstream_timeout_seconds


def test_verifier_wraps_network_error(settings):
    verifier = RecaptchaVerifier(settings, session=FakeSession(error=requests.ConnectionError("dns failure")))
    with pytest.raises(RecaptchaError, match="dns failure"):
        verifier.verify("abc")


def test_verifier_wraps_http_error(settings):
    verifier = RecaptchaVerifier(settings, session=FakeSession(response=FakeResponse(status_code=503)))
    with pytest.raises(RecaptchaError):
        verifier.verify("abc")


def test_network_error_through_route_is_500(settings, store, mailer):
    verifier = RecaptchaVerifier(settings, session=FakeSession(error=requests.ConnectionError("reset")))
    client = _client(settings, store, mailer, verifier)

    res = client.post("/verify-recaptcha", json={"token": "t"})

    assert res.status_code == 500
    assert res.json() == {"error": "Internal Server Error"}


def test_default_session_retries_post(settings):
    verifier = RecaptchaVerifier(settings)
    retry = verifier.session.get_adapter(SITEVERIFY_URL).max_retries
    assert retry.total == settings.recaptcha_retries
    assert "POST" in retry.allowed_methods


def test_form_encoded_token(client, recaptcha):
    res = client.post("/verify-recaptcha", data={"token": "tok-form"})
    assert res.status_code == 200
    assert recaptcha.tokens == ["tok-form"]
