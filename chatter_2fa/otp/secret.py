"""Shared-secret generation for TOTP enrollment."""

import secrets

from chatter_2fa.otp import base32

DEFAULT_SECRET_BYTES = 20

# RFC 4226 section 4: the shared secret MUST be at least 128 bits
MIN_SECRET_BYTES = 16


def generate_secret(length_bytes: int = DEFAULT_SECRET_BYTES) -> str:
    """
    Generate a fresh TOTP shared secret.

    Draws ``length_bytes`` from the operating system CSPRNG and returns them
    Base32-encoded (``A-Z2-7``, no padding). 20 bytes give the 160-bit secret
    (32 characters) authenticator apps expect.

    ``pyotp.random_base32`` is sized in Base32 characters, not key bytes;
    drawing the bytes here keeps the key length exact and sends the text
    through the same codec that later validates it.
    """
    if length_bytes < MIN_SECRET_BYTES:
        raise ValueError(f"Secrets must be at least {MIN_SECRET_BYTES} bytes, got {length_bytes}")
    return base32.encode(secrets.token_bytes(length_bytes))
