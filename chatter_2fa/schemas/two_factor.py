"""
Two-Factor Authentication Schemas

Request and response bodies for the 2FA routes. Field names go over the wire
in camelCase, matching the web client.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# TOTP codes ("123456", "123 456") and backup codes ("A1B2-C3D4")
CODE_PATTERN = r"^[0-9A-Za-z\- ]+$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CodeRequest(CamelModel):
    """Request carrying a code for the signed-in user."""

    code: str = Field(..., min_length=6, max_length=10, pattern=CODE_PATTERN)


class ValidateRequest(CamelModel):
    """Login-time code check; the user identity is asserted by the caller."""

    user_id: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=6, max_length=10, pattern=CODE_PATTERN)


class CheckRequest(CamelModel):
    """Login-time probe for whether a user needs a second factor."""

    user_id: str = Field(..., min_length=1, max_length=255)


class TwoFactorStatus(CamelModel):
    """2FA status response."""

    enabled: bool


class TwoFactorSetupResponse(CamelModel):
    """Response for 2FA setup initiation."""

    secret: str
    otpauth_url: str
    qr_code_url: str  # data:image/png;base64,...


class VerifyResponse(CamelModel):
    """Response for code verification; backup codes appear only when 2FA was just enabled."""

    valid: bool
    enabled: bool | None = None
    backup_codes: list[str] | None = None


class ValidateResponse(CamelModel):
    """Response for login-time validation."""

    valid: bool
    used_backup_code: bool | None = None


class DisableResponse(CamelModel):
    """Response for disabling 2FA."""

    disabled: bool


class CheckResponse(CamelModel):
    """Response for the login-time 2FA probe."""

    requires_2fa: bool = Field(..., alias="requires2FA")
