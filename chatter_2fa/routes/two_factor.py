"""
Two-Factor Authentication Routes

API endpoints for 2FA setup, verification, login-time validation and
management. Everything except ``/validate`` and ``/check`` requires a
session; those two run before a session exists and are rate-limited per
client address.
"""

from fastapi import APIRouter, Depends, Request, Response

from chatter_2fa.auth import CurrentUser, get_current_user
from chatter_2fa.config import settings
from chatter_2fa.middleware.rate_limit import limiter
from chatter_2fa.schemas.two_factor import (
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
from chatter_2fa.services.two_factor_service import TwoFactorService, get_two_factor_service

router = APIRouter(tags=["Two-Factor Authentication"])


# ============== Status & Setup ==============


@router.get("/status", response_model=TwoFactorStatus)
async def get_2fa_status(
    service: TwoFactorService = Depends(get_two_factor_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TwoFactorStatus:
    """
    Get current 2FA status for the authenticated user.

    Used by the settings screen to choose between the setup and disable flows.
    """
    status_data = await service.status(current_user.id)
    return TwoFactorStatus(**status_data)


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def setup_2fa(
    service: TwoFactorService = Depends(get_two_factor_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> TwoFactorSetupResponse:
    """
    Initialize 2FA setup.

    Returns a secret key and QR code for the authenticator app.
    User must call /verify with a valid code to complete setup.
    Calling this again restarts enrollment with a new secret.
    """
    result = await service.setup(current_user.id, account_label=current_user.email)
    return TwoFactorSetupResponse(**result)


@router.post("/verify", response_model=VerifyResponse, response_model_exclude_none=True)
async def verify_2fa_code(
    data: CodeRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> VerifyResponse:
    """
    Verify a TOTP code, enabling 2FA on the first success.

    IMPORTANT: Backup codes are only returned by the call that enables 2FA -
    save them securely!
    """
    result = await service.verify(current_user.id, data.code)
    return VerifyResponse(**result)


# ============== Login ==============


@router.post("/validate", response_model=ValidateResponse, response_model_exclude_none=True)
@limiter.limit(settings.validate_rate_limit)
async def validate_2fa_code(
    request: Request,
    response: Response,
    data: ValidateRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
) -> ValidateResponse:
    """
    Validate a TOTP or backup code during login.

    No session exists yet, so the user ID comes from the request body.
    A wrong code yields ``valid: false`` without saying which kind of code
    was tried.
    """
    result = await service.validate(data.user_id, data.code)
    return ValidateResponse(**result)


@router.post("/check", response_model=CheckResponse)
@limiter.limit(settings.validate_rate_limit)
async def check_2fa_required(
    request: Request,
    response: Response,
    data: CheckRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
) -> CheckResponse:
    """Tell the login flow whether to prompt this user for a second factor."""
    result = await service.check(data.user_id)
    return CheckResponse(**result)


# ============== Management ==============


@router.post("/disable", response_model=DisableResponse)
async def disable_2fa(
    data: CodeRequest,
    service: TwoFactorService = Depends(get_two_factor_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> DisableResponse:
    """
    Disable 2FA for the current user.

    Requires a code from the authenticator app; backup codes are refused.
    """
    result = await service.disable(current_user.id, data.code)
    return DisableResponse(**result)
