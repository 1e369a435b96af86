"""One-time password primitives: Base32, secrets, TOTP, backup codes and provisioning."""

from . import backup_codes, base32, provisioning, totp
from .secret import generate_secret

__all__ = [
    "backup_codes",
    "base32",
    "generate_secret",
    "provisioning",
    "totp",
]
