from .two_factor import (
    CheckRequest,
    CheckResponse,
    CodeRequest,
    DisableResponse,
    TwoFactorSetupResponse,
    TwoFactorStatus,
    ValidateRequest,
    ValidateResponse,
    VerifyResponse,
)

# Define the public API of this module
__all__ = [
    "CodeRequest",
    "ValidateRequest",
    "CheckRequest",
    "TwoFactorStatus",
    "TwoFactorSetupResponse",
    "VerifyResponse",
    "ValidateResponse",
    "DisableResponse",
    "CheckResponse",
]
