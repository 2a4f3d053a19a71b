"""
Pending one-time passcodes keyed by phone number.

Two backends share the same contract:
  - MemoryOtpStore: process-local dict, guarded by a lock
  - RedisOtpStore: used when REDIS_URL is set, so several workers see the same codes

Issue and verify are atomic per phone. A successful verify consumes the code.
Expiry and attempt limits are opt-in (0 disables them).
"""

from __future__ import annotations

import logging
import re
import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from config import Settings
from utils.redis_client import get_redis


logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^[0-9]{10}$")
OTP_RE = re.compile(r"^[0-9]{6}$")

OTP_MIN = 100000
OTP_MAX = 999999


@dataclass
class OtpEntry:
    phone: str
    code: str
    created_at: float = field(default_factory=time.time)
    expires_at: Optional[float] = None
    attempts: int = 0

    def expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.time()) >= self.expires_at


def _gen_otp() -> str:
    return f"{OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1)}"


def _check_phone(phone: str) -> str:
    phone = (phone or "").strip()
    if not PHONE_RE.match(phone):
        raise ValueError("Phone number must be 10 digits")
    return phone


class OtpStore:
    """Base class: code generation and logging live here, storage in subclasses."""

    def __init__(self, *, ttl_seconds: int = 0, max_attempts: int = 0):
        self.ttl_seconds = max(0, int(ttl_seconds or 0))
        self.max_attempts = max(0, int(max_attempts or 0))

    def issue(self, phone: str) -> OtpEntry:
        phone = _check_phone(phone)
        now = time.time()
        entry = OtpEntry(
            phone=phone,
            code=_gen_otp(),
            created_at=now,
            expires_at=(now + self.ttl_seconds) if self.ttl_seconds else None,
        )
        self._save(entry)
        # No SMS gateway: the log is the delivery channel.
        logger.info("OTP for %s: %s", phone, entry.code)
        return entry

    def verify(self, phone: str, code: str) -> bool:
        phone = (phone or "").strip()
        code = (code or "").strip()
        if not PHONE_RE.match(phone) or not OTP_RE.match(code):
            return False
        ok = self._consume(phone, code)
        if ok:
            logger.info("OTP verified for %s", phone)
        else:
            logger.info("OTP verification failed for %s", phone)
        return ok

    def purge_expired(self) -> int:
        return 0

    def _save(self, entry: OtpEntry) -> None:
        raise NotImplementedError

    def _consume(self, phone: str, code: str) -> bool:
        raise NotImplementedError


class MemoryOtpStore(OtpStore):
    def __init__(self, *, ttl_seconds: int = 0, max_attempts: int = 0):
        super().__init__(ttl_seconds=ttl_seconds, max_attempts=max_attempts)
        self._entries: dict[str, OtpEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, phone: str) -> Optional[OtpEntry]:
        with self._lock:
            entry = self._entries.get(phone)
            if entry and entry.expired():
                self._entries.pop(phone, None)
                return None
            return entry

    def _save(self, entry: OtpEntry) -> None:
        with self._lock:
            self._entries[entry.phone] = entry

    def _consume(self, phone: str, code: str) -> bool:
        with self._lock:
            entry = self._entries.get(phone)
            if not entry:
                return False
            if entry.expired():
                self._entries.pop(phone, None)
                return False
            if secrets.compare_digest(entry.code, code):
                self._entries.pop(phone, None)
                return True
            entry.attempts += 1
            if self.max_attempts and entry.attempts >= self.max_attempts:
                logger.warning("OTP for %s dropped after %d failed attempts", phone, entry.attempts)
                self._entries.pop(phone, None)
            return False

    def purge_expired(self) -> int:
        now = time.time()
        with self._lock:
            stale = [p for p, e in self._entries.items() if e.expired(now)]
            for p in stale:
                del self._entries[p]
        return len(stale)


# KEYS[1] = code key, KEYS[2] = attempts key; ARGV[1] = submitted code, ARGV[2] = max attempts
_CONSUME_LUA = """
local stored = redis.call('GET', KEYS[1])
if not stored then
  return 0
end
if stored == ARGV[1] then
  redis.call('DEL', KEYS[1], KEYS[2])
  return 1
end
local attempts = redis.call('INCR', KEYS[2])
local ttl = redis.call('PTTL', KEYS[1])
if ttl > 0 then
  redis.call('PEXPIRE', KEYS[2], ttl)
end
local max = tonumber(ARGV[2])
if max > 0 and attempts >= max then
  redis.call('DEL', KEYS[1], KEYS[2])
end
return 0
"""


class RedisOtpStore(OtpStore):
    def __init__(self, client, *, ttl_seconds: int = 0, max_attempts: int = 0):
        super().__init__(ttl_seconds=ttl_seconds, max_attempts=max_attempts)
        self.client = client
        self._consume_script = client.register_script(_CONSUME_LUA)

    @staticmethod
    def _keys(phone: str) -> tuple[str, str]:
        return f"otp:{phone}", f"otp_attempts:{phone}"

    def _save(self, entry: OtpEntry) -> None:
        code_key, attempts_key = self._keys(entry.phone)
        pipe = self.client.pipeline(transaction=True)
        if self.ttl_seconds:
            pipe.set(code_key, entry.code, ex=self.ttl_seconds)
        else:
            pipe.set(code_key, entry.code)
        pipe.delete(attempts_key)
        pipe.execute()

    def _consume(self, phone: str, code: str) -> bool:
        keys = list(self._keys(phone))
        return bool(self._consume_script(keys=keys, args=[code, self.max_attempts]))


def build_otp_store(settings: Settings) -> OtpStore:
    """Redis when REDIS_URL is configured, in-memory otherwise."""
    r = get_redis(settings.redis_url)
    if r:
        logger.info("OTP store: redis")
        return RedisOtpStore(r, ttl_seconds=settings.otp_ttl_seconds, max_attempts=settings.otp_max_attempts)
    logger.info("OTP store: in-memory")
    return MemoryOtpStore(ttl_seconds=settings.otp_ttl_seconds, max_attempts=settings.otp_max_attempts)
