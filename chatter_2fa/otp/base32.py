"""
Base32 codec (RFC 4648) for TOTP secrets.

Secrets travel as unpadded upper-case Base32 in provisioning URIs and in
storage. Decoding is case-insensitive and tolerates trailing ``=`` padding,
but it is strict about everything else: a character outside the alphabet
raises instead of being skipped, so a corrupted secret can never decode to a
different key.
"""

import base64
import binascii
import re

from chatter_2fa.exceptions import MalformedSecretError

BASE32_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_VALID_BASE32 = re.compile(r"^[A-Z2-7]*$")

# Unpadded lengths (mod 8) that no byte string encodes to
_IMPOSSIBLE_REMAINDERS = {1, 3, 6}


def encode(data: bytes) -> str:
    """Encode bytes as upper-case Base32 without padding."""
    return base64.b32encode(data).decode("ascii").rstrip("=")


def normalize(text: str) -> str:
    """
    Return the canonical form of a Base32 string.

    Upper-cases the input and strips trailing padding.

    Raises:
        MalformedSecretError: if the text contains characters outside the
            alphabet or has a length no byte string can produce.
    """
    if not isinstance(text, str):
        raise MalformedSecretError("Base32 value must be a string")

    canonical = text.upper().rstrip("=")
    if not _VALID_BASE32.match(canonical):
        raise MalformedSecretError(
            "Base32 value contains characters outside the RFC 4648 alphabet",
            details={"length": len(text)},
        )
    if len(canonical) % 8 in _IMPOSSIBLE_REMAINDERS:
        raise MalformedSecretError(
            "Base32 value has an invalid length",
            details={"length": len(canonical)},
        )
    return canonical


def decode(text: str) -> bytes:
    """Decode Base32 text (case-insensitive, padding optional) to bytes."""
    canonical = normalize(text)
    padded = canonical + "=" * (-len(canonical) % 8)
    try:
        return base64.b32decode(padded)
    except binascii.Error as e:
        raise MalformedSecretError(f"Base32 value could not be decoded: {e}") from e
