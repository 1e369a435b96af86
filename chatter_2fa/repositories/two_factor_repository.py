"""
Two-Factor Record Repository

The persistence boundary of the 2FA service. Every operation is keyed by
``user_id``, which is always applied as a hard predicate.

Writes after creation may be made conditional on the record ``version`` read
earlier: ``update_record(..., expected_version=v)`` only applies when nobody
else has written the record since, and reports a lost race by returning
False. This is what keeps a backup code from being spent twice.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatter_2fa.exceptions import PersistenceError
from chatter_2fa.models.two_factor import UserTwoFactor

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"secret", "is_enabled", "backup_codes", "enabled_at", "last_used_at"})


@dataclass(frozen=True)
class TwoFactorRecord:
    """Snapshot of a user's 2FA record as read from storage."""

    user_id: str
    secret: str
    is_enabled: bool = False
    # SHA-256 hashes of the remaining codes, see otp.backup_codes.hash_code
    backup_codes: tuple[str, ...] = field(default_factory=tuple)
    version: int = 1
    created_at: datetime | None = None
    enabled_at: datetime | None = None
    last_used_at: datetime | None = None


class TwoFactorRepository(ABC):
    """Storage interface for per-user 2FA records."""

    @abstractmethod
    async def upsert_record(self, user_id: str, secret: str) -> TwoFactorRecord:
        """
        Create the record, or restart enrollment on an existing one.

        The stored record ends up with the new secret, ``is_enabled=False``
        and no backup codes.
        """

    @abstractmethod
    async def get_record(self, user_id: str) -> TwoFactorRecord | None:
        """Return the record for ``user_id`` or None."""

    @abstractmethod
    async def update_record(
        self,
        user_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        """
        Apply ``changes`` and bump the version.

        Returns False when no row matched: the record is gone, or its version
        differs from ``expected_version``.
        """

    @abstractmethod
    async def delete_record(self, user_id: str, expected_version: int | None = None) -> bool:
        """
        Delete the record. Returns True if a row was removed.

        With ``expected_version`` the row is only removed if nobody wrote it
        since that version was read.
        """


def check_changes(changes: dict[str, Any]) -> None:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update 2FA record fields: {sorted(unknown)}")


class SQLAlchemyTwoFactorRepository(TwoFactorRepository):
    """Repository backed by the ``user_2fa`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_record(self, user_id: str, secret: str) -> TwoFactorRecord:
        try:
            try:
                if not await self._reset_enrollment(user_id, secret):
                    self.db.add(
                        UserTwoFactor(
                            user_id=user_id,
                            secret=secret,
                            is_enabled=False,
                            backup_codes=[],
                            version=1,
                        )
                    )
                await self.db.commit()
            except IntegrityError:
                # A concurrent setup inserted the row first
                await self.db.rollback()
                await self._reset_enrollment(user_id, secret)
                await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("upsert", user_id, e)

        record = await self.get_record(user_id)
        if record is None:
            raise PersistenceError("2FA record vanished after upsert", operation="upsert")
        return record

    async def get_record(self, user_id: str) -> TwoFactorRecord | None:
        try:
            result = await self.db.execute(
                select(UserTwoFactor)
                .where(UserTwoFactor.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self._fail("get", user_id, e)

        if row is None:
            return None
        return TwoFactorRecord(
            user_id=row.user_id,
            secret=row.secret,
            is_enabled=bool(row.is_enabled),
            backup_codes=tuple(row.backup_codes or ()),
            version=row.version,
            created_at=row.created_at,
            enabled_at=row.enabled_at,
            last_used_at=row.last_used_at,
        )

    async def update_record(
        self,
        user_id: str,
        changes: dict[str, Any],
        expected_version: int | None = None,
    ) -> bool:
        check_changes(changes)
        values = dict(changes)
        if "backup_codes" in values:
            values["backup_codes"] = list(values["backup_codes"])

        stmt = update(UserTwoFactor).where(UserTwoFactor.user_id == user_id)
        if expected_version is not None:
            stmt = stmt.where(UserTwoFactor.version == expected_version)
        stmt = stmt.values(**values, version=UserTwoFactor.version + 1).execution_options(synchronize_session=False)

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("update", user_id, e)

        return result.rowcount == 1

    async def delete_record(self, user_id: str, expected_version: int | None = None) -> bool:
        stmt = delete(UserTwoFactor).where(UserTwoFactor.user_id == user_id)
        if expected_version is not None:
            stmt = stmt.where(UserTwoFactor.version == expected_version)

        try:
            result = await self.db.execute(stmt.execution_options(synchronize_session=False))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self._fail("delete", user_id, e)

        return result.rowcount > 0

    async def _reset_enrollment(self, user_id: str, secret: str) -> bool:
        result = await self.db.execute(
            update(UserTwoFactor)
            .where(UserTwoFactor.user_id == user_id)
            .values(
                secret=secret,
                is_enabled=False,
                backup_codes=[],
                enabled_at=None,
                last_used_at=None,
                version=UserTwoFactor.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _fail(self, operation: str, user_id: str, error: Exception):
        logger.error(f"2FA storage {operation} failed for user {user_id}: {error}")
        await self.db.rollback()
        raise PersistenceError(operation=operation) from error
