from fastapi.testclient import TestClient

from config import Settings
from main import create_app
import utils.rate_limit as rate_limit
from utils.rate_limit import MemoryRateLimiter, THROTTLED_MESSAGE


def _app(**overrides):
    settings = Settings(client_url="http://localhost:5173", **overrides)
    return create_app(settings)


def test_101st_request_is_throttled():
    client = TestClient(_app(rate_limit_max=100, rate_limit_window_seconds=900))

    for i in range(100):
        res = client.get("/")
        assert res.status_code == 200, i

    res = client.get("/")
    assert res.status_code == 429
    assert res.json() == {"error": THROTTLED_MESSAGE}
    assert int(res.headers["Retry-After"]) > 0


def test_limit_is_shared_across_routes():
    client = TestClient(_app(rate_limit_max=2))

    assert client.get("/").status_code == 200
    assert client.post("/send-otp", json={"phone": "12"}).status_code == 400
    res = client.post("/send-otp", json={"phone": "1234567890"})
    assert res.status_code == 429


def test_remaining_header():
    client = TestClient(_app(rate_limit_max=5))
    res = client.get("/")
    assert res.headers["X-RateLimit-Limit"] == "5"
    assert res.headers["X-RateLimit-Remaining"] == "4"


def test_window_resets(monkeypatch):
    now = [1_000.0]
    monkeypatch.setattr(rate_limit.time, "time", lambda: now[0])
    limiter = MemoryRateLimiter(max_requests=2, window_seconds=60)

    assert limiter.hit("1.2.3.4").allowed
    assert limiter.hit("1.2.3.4").allowed
    assert not limiter.hit("1.2.3.4").allowed
    assert limiter.hit("5.6.7.8").allowed

    now[0] += 60
    hit = limiter.hit("1.2.3.4")
    assert hit.allowed
    assert hit.count == 1


def test_purge_expired_windows(monkeypatch):
    now = [1_000.0]
    monkeypatch.setattr(rate_limit.time, "time", lambda: now[0])
    limiter = MemoryRateLimiter(max_requests=2, window_seconds=60)
    limiter.hit("a")
    now[0] += 30
    limiter.hit("b")
    now[0] += 31

    assert limiter.purge_expired() == 1


def test_cors_preflight_allowed_origin():
    client = TestClient(_app())
    res = client.options(
        "/send-otp",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )
    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "http://localhost:5173"
    assert res.headers["access-control-allow-credentials"] == "true"


def test_cors_rejects_other_origin():
    client = TestClient(_app())
    res = client.options(
        "/send-otp",
        headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
    )
    assert res.status_code == 400
    assert "access-control-allow-origin" not in res.headers
