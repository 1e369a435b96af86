"""
Single-use recovery codes.

Codes are shown to the user once, when 2FA is enabled, and each one can
replace a TOTP code exactly once at login. Only SHA-256 hashes of the
normalized codes are stored. ``consume`` is pure: persisting the reduced list
atomically is the caller's job.
"""

import hashlib
import hmac
import secrets

DEFAULT_BACKUP_CODE_COUNT = 8


def generate_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> list[str]:
    """
    Generate backup codes.

    Each code is 4 random bytes as upper-case hex, formatted ``XXXX-XXXX``.
    """
    codes = []
    for _ in range(count):
        code = secrets.token_hex(4).upper()
        codes.append(f"{code[:4]}-{code[4:]}")
    return codes


def normalize_code(code: str) -> str:
    """Upper-case a code and drop hyphens and surrounding whitespace."""
    return code.strip().replace("-", "").upper()


def hash_code(code: str) -> str:
    """Hash a backup code for storage."""
    return hashlib.sha256(normalize_code(code).encode()).hexdigest()


def consume(hashed_codes: list[str], candidate: str) -> tuple[bool, list[str]]:
    """
    Match ``candidate`` against stored code hashes and remove the first match.

    Returns:
        ``(found, remaining)``. When nothing matches, ``remaining`` is an
        unchanged copy of ``hashed_codes``.
    """
    remaining = list(hashed_codes)
    if not isinstance(candidate, str) or not normalize_code(candidate):
        return False, remaining

    wanted = hash_code(candidate)
    for index, stored in enumerate(remaining):
        if hmac.compare_digest(stored, wanted):
            del remaining[index]
            return True, remaining

    return False, remaining
