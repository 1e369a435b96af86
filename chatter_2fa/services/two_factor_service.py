"""
Two-Factor Authentication Service

Runs the per-user 2FA protocol on top of the OTP primitives:

    setup -> verify (enables, issues backup codes once) -> validate at login -> disable

Wrong codes are ordinary results (``valid: False``); only missing records,
corrupted secrets and storage failures raise.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chatter_2fa.config import Settings, settings
from chatter_2fa.database import get_db
from chatter_2fa.exceptions import MalformedSecretError, NotSetUpError, PersistenceError, TwoFactorNotEnabledError
from chatter_2fa.otp import backup_codes, provisioning, totp
from chatter_2fa.otp.secret import generate_secret
from chatter_2fa.repositories.two_factor_repository import (
    SQLAlchemyTwoFactorRepository,
    TwoFactorRecord,
    TwoFactorRepository,
)
from chatter_2fa.utils.metrics import record_two_factor_attempt, record_write_conflict

logger = logging.getLogger(__name__)


class TwoFactorService:
    """Service for managing two-factor authentication."""

    def __init__(
        self,
        repository: TwoFactorRepository,
        clock: Callable[[], float] = time.time,
        config: Settings = settings,
    ):
        self.repository = repository
        self.clock = clock
        self.config = config

    async def status(self, user_id: str) -> dict:
        """
        Get 2FA status for a user.

        Only reports whether an enabled record exists; never exposes the
        secret or backup codes.
        """
        record = await self.repository.get_record(user_id)
        return {"enabled": record is not None and record.is_enabled}

    async def check(self, user_id: str) -> dict:
        """Tell the login flow whether this user must be asked for a code."""
        record = await self.repository.get_record(user_id)
        return {"requires_2fa": record is not None and record.is_enabled}

    async def setup(self, user_id: str, account_label: str | None = None) -> dict:
        """
        Start (or restart) enrollment for a user.

        Stores a fresh secret with 2FA disabled, replacing any previous
        secret and backup codes, and returns what the authenticator app needs.

        Args:
            user_id: User ID
            account_label: Label shown in the authenticator app (defaults to the user ID)

        Returns:
            dict with secret, provisioning URI and QR code data URL
        """
        secret = generate_secret(self.config.totp_secret_bytes)
        await self.repository.upsert_record(user_id, secret)

        otpauth_url = provisioning.build_provisioning_uri(
            secret,
            account_label or user_id,
            issuer=self.config.totp_issuer,
            digits=self.config.totp_digits,
            period=self.config.totp_period,
        )

        logger.info(f"2FA setup initiated for user {user_id}")
        record_two_factor_attempt("setup", "success")

        return {
            "secret": secret,
            "otpauth_url": otpauth_url,
            "qr_code_url": provisioning.generate_qr_code_data_url(otpauth_url),
        }

    async def verify(self, user_id: str, code: str) -> dict:
        """
        Verify a TOTP code and enable 2FA on first success.

        Backup codes are returned only by the call that enables 2FA; they
        cannot be retrieved again.

        Args:
            user_id: User ID
            code: TOTP code from authenticator app

        Returns:
            dict with ``valid`` and, when this call enabled 2FA, ``enabled``
            and ``backup_codes``
        """
        for _ in range(self.config.max_write_attempts):
            record = await self.repository.get_record(user_id)
            if record is None:
                record_two_factor_attempt("verify", "not_set_up")
                raise NotSetUpError()

            if not self._totp_matches(record, code):
                record_two_factor_attempt("verify", "invalid")
                return {"valid": False}

            if record.is_enabled:
                record_two_factor_attempt("verify", "success")
                return {"valid": True}

            codes = backup_codes.generate_codes(self.config.backup_code_count)
            enabled = await self.repository.update_record(
                user_id,
                {
                    "is_enabled": True,
                    "backup_codes": [backup_codes.hash_code(c) for c in codes],
                    "enabled_at": self._now(),
                },
                expected_version=record.version,
            )
            if enabled:
                logger.info(f"2FA enabled for user {user_id}")
                record_two_factor_attempt("verify", "enabled")
                return {"valid": True, "enabled": True, "backup_codes": codes}

            logger.info(f"2FA enable for user {user_id} raced another write, re-reading")
            record_write_conflict("verify")

        raise PersistenceError("2FA record kept changing during verification", operation="verify")

    async def validate(self, user_id: str, code: str) -> dict:
        """
        Check a login code for a user who has no session yet.

        Tries the TOTP code first, then spends a backup code. The identity
        is only claimed by the caller, so the HTTP route in front of this
        must be rate-limited.

        Args:
            user_id: User ID
            code: TOTP or backup code

        Returns:
            dict with ``valid`` and ``used_backup_code`` when a backup code was spent
        """
        for _ in range(self.config.max_write_attempts):
            record = await self.repository.get_record(user_id)
            if record is None or not record.is_enabled:
                record_two_factor_attempt("validate", "not_enabled")
                raise TwoFactorNotEnabledError()

            if self._totp_matches(record, code):
                await self.repository.update_record(user_id, {"last_used_at": self._now()})
                record_two_factor_attempt("validate", "success")
                return {"valid": True}

            found, remaining = backup_codes.consume(list(record.backup_codes), code)
            if not found:
                record_two_factor_attempt("validate", "invalid")
                return {"valid": False}

            spent = await self.repository.update_record(
                user_id,
                {"backup_codes": remaining, "last_used_at": self._now()},
                expected_version=record.version,
            )
            if spent:
                logger.info(f"Backup code used for user {user_id} ({len(remaining)} remaining)")
                record_two_factor_attempt("validate", "backup_code")
                return {"valid": True, "used_backup_code": True}

            logger.info(f"Backup code for user {user_id} raced another write, re-reading")
            record_write_conflict("validate")

        raise PersistenceError("2FA record kept changing during validation", operation="validate")

    async def disable(self, user_id: str, code: str) -> dict:
        """
        Disable 2FA for a user.

        Requires a live TOTP code; backup codes are not accepted here. The
        delete only applies to the record the code was checked against, so a
        code for a secret replaced by a concurrent setup deletes nothing.

        Returns:
            dict with ``disabled``
        """
        for _ in range(self.config.max_write_attempts):
            record = await self.repository.get_record(user_id)
            if record is None:
                record_two_factor_attempt("disable", "not_enabled")
                raise TwoFactorNotEnabledError()

            if not self._totp_matches(record, code):
                record_two_factor_attempt("disable", "invalid")
                return {"disabled": False}

            if await self.repository.delete_record(user_id, expected_version=record.version):
                logger.info(f"2FA disabled for user {user_id}")
                record_two_factor_attempt("disable", "success")
                return {"disabled": True}

            logger.info(f"2FA disable for user {user_id} raced another write, re-reading")
            record_write_conflict("disable")

        raise PersistenceError("2FA record kept changing while disabling", operation="disable")

    # ============== Private Methods ==============

    def _totp_matches(self, record: TwoFactorRecord, code: str) -> bool:
        try:
            return totp.verify(
                record.secret,
                code,
                time_step_seconds=self.config.totp_period,
                window=self.config.totp_window,
                unix_time=self.clock(),
                digits=self.config.totp_digits,
            )
        except MalformedSecretError:
            logger.error(f"Stored 2FA secret for user {record.user_id} is malformed; the record may be corrupted")
            raise

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)


# Dependency for FastAPI
async def get_two_factor_service(db: AsyncSession = Depends(get_db)) -> TwoFactorService:
    """FastAPI dependency for TwoFactorService."""
    return TwoFactorService(SQLAlchemyTwoFactorRepository(db))
