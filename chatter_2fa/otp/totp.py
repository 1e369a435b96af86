"""
TOTP engine (RFC 6238, HMAC-SHA1).

Thin layer over ``pyotp``: secrets are validated by the strict Base32 codec
before they reach ``pyotp``, and time is always passed in explicitly as a
timezone-aware UTC datetime so the computed counter never depends on the
host's local time zone.

A code is ``digits`` decimal characters derived from
``HMAC-SHA1(secret, floor(unix_time / time_step))`` by dynamic truncation.
``verify`` accepts any counter in ``[c - window, c + window]``, tolerating
``window * time_step`` seconds of clock drift in either direction.
"""

import re
import time
from datetime import datetime, timezone

import pyotp

from chatter_2fa.exceptions import MalformedSecretError
from chatter_2fa.otp import base32

DEFAULT_TIME_STEP = 30
DEFAULT_DIGITS = 6
DEFAULT_WINDOW = 1


def _build_totp(secret: str, time_step_seconds: int, digits: int) -> pyotp.TOTP:
    if time_step_seconds <= 0:
        raise ValueError("time_step_seconds must be positive")
    if not 1 <= digits <= 10:
        raise ValueError("digits must be between 1 and 10")

    canonical = base32.normalize(secret)
    if not canonical:
        raise MalformedSecretError("Stored 2FA secret is empty")
    return pyotp.TOTP(canonical, digits=digits, interval=time_step_seconds)


def _as_utc(unix_time: float | None) -> datetime:
    if unix_time is None:
        unix_time = time.time()
    return datetime.fromtimestamp(unix_time, tz=timezone.utc)


def generate(
    secret: str,
    time_step_seconds: int = DEFAULT_TIME_STEP,
    digits: int = DEFAULT_DIGITS,
    unix_time: float | None = None,
) -> str:
    """
    Compute the TOTP code for ``secret`` at ``unix_time`` (default: now).

    Raises:
        MalformedSecretError: if the secret is not valid Base32.
    """
    totp = _build_totp(secret, time_step_seconds, digits)
    return totp.at(_as_utc(unix_time))


def _clean_candidate(candidate_code: str, digits: int) -> str | None:
    if not isinstance(candidate_code, str):
        return None
    # Authenticator apps display codes as "123 456"
    cleaned = candidate_code.strip().replace(" ", "", 1)
    if len(cleaned) != digits or not re.fullmatch(r"[0-9]+", cleaned):
        return None
    return cleaned


def verify(
    secret: str,
    candidate_code: str,
    time_step_seconds: int = DEFAULT_TIME_STEP,
    window: int = DEFAULT_WINDOW,
    unix_time: float | None = None,
    digits: int = DEFAULT_DIGITS,
) -> bool:
    """
    Check ``candidate_code`` against the ``2 * window + 1`` codes around ``unix_time``.

    Returns False for a wrong or badly formatted code. A malformed secret is
    raised rather than reported as a wrong code.

    Raises:
        MalformedSecretError: if the secret is not valid Base32.
    """
    if window < 0:
        raise ValueError("window must not be negative")

    totp = _build_totp(secret, time_step_seconds, digits)
    cleaned = _clean_candidate(candidate_code, digits)
    if cleaned is None:
        return False
    return totp.verify(cleaned, for_time=_as_utc(unix_time), valid_window=window)
