"""
Tests for the SQLAlchemy two-factor record repository.
"""

import asyncio

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from chatter_2fa.otp import backup_codes, totp
from chatter_2fa.repositories.two_factor_repository import SQLAlchemyTwoFactorRepository
from chatter_2fa.services.two_factor_service import TwoFactorService

SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"


class TestSQLAlchemyTwoFactorRepository:
    """Tests for SQLAlchemyTwoFactorRepository."""

    @pytest.mark.asyncio
    async def test_get_missing_record(self, test_db: AsyncSession):
        """Test reading a user without a record."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        assert await repository.get_record("nobody") is None

    @pytest.mark.asyncio
    async def test_upsert_creates_record(self, test_db: AsyncSession):
        """Test that upsert creates a disabled record."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        record = await repository.upsert_record("user-1", SECRET)

        assert record.user_id == "user-1"
        assert record.secret == SECRET
        assert record.is_enabled is False
        assert record.backup_codes == ()
        assert record.version == 1
        assert record.created_at is not None

    @pytest.mark.asyncio
    async def test_upsert_resets_existing_record(self, test_db: AsyncSession):
        """Test that a second upsert restarts enrollment on the same row."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        await repository.upsert_record("user-1", SECRET)
        await repository.update_record("user-1", {"is_enabled": True, "backup_codes": ["AAAA-1111"]})

        record = await repository.upsert_record("user-1", "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ")

        assert record.secret == "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
        assert record.is_enabled is False
        assert record.backup_codes == ()
        assert record.enabled_at is None
        assert record.version == 3

        count = await test_db.execute(text("SELECT COUNT(*) FROM user_2fa"))
        assert count.scalar() == 1

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, test_db: AsyncSession):
        """Test unconditional update."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        await repository.upsert_record("user-1", SECRET)

        assert await repository.update_record("user-1", {"backup_codes": ("AAAA-1111", "BBBB-2222")}) is True

        record = await repository.get_record("user-1")
        assert record.backup_codes == ("AAAA-1111", "BBBB-2222")
        assert record.version == 2

    @pytest.mark.asyncio
    async def test_conditional_update(self, test_db: AsyncSession):
        """Test that a conditional update only applies on the expected version."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        record = await repository.upsert_record("user-1", SECRET)

        assert await repository.update_record("user-1", {"is_enabled": True}, expected_version=record.version)
        assert not await repository.update_record("user-1", {"is_enabled": False}, expected_version=record.version)

        current = await repository.get_record("user-1")
        assert current.is_enabled is True
        assert current.version == record.version + 1

    @pytest.mark.asyncio
    async def test_update_missing_record(self, test_db: AsyncSession):
        """Test updating a user without a record."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        assert await repository.update_record("nobody", {"is_enabled": True}) is False

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, test_db: AsyncSession):
        """Test that only record fields may be updated."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        await repository.upsert_record("user-1", SECRET)

        with pytest.raises(ValueError):
            await repository.update_record("user-1", {"user_id": "user-2"})
        with pytest.raises(ValueError):
            await repository.update_record("user-1", {"version": 99})

    @pytest.mark.asyncio
    async def test_delete_record(self, test_db: AsyncSession):
        """Test deleting a record."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        await repository.upsert_record("user-1", SECRET)

        assert await repository.delete_record("user-1") is True
        assert await repository.get_record("user-1") is None
        assert await repository.delete_record("user-1") is False

    @pytest.mark.asyncio
    async def test_conditional_delete(self, test_db: AsyncSession):
        """Test that a delete based on an old version is refused."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        stale = await repository.upsert_record("user-1", SECRET)
        await repository.upsert_record("user-1", "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ")

        assert await repository.delete_record("user-1", expected_version=stale.version) is False
        assert (await repository.get_record("user-1")).secret == "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

        assert await repository.delete_record("user-1", expected_version=stale.version + 1) is True
        assert await repository.get_record("user-1") is None

    @pytest.mark.asyncio
    async def test_records_are_isolated_by_user(self, test_db: AsyncSession):
        """Test that writes for one user never touch another."""
        repository = SQLAlchemyTwoFactorRepository(test_db)
        await repository.upsert_record("user-a", SECRET)
        await repository.upsert_record("user-b", SECRET)

        await repository.update_record("user-a", {"is_enabled": True})
        await repository.delete_record("user-b")

        assert (await repository.get_record("user-a")).is_enabled is True
        assert await repository.get_record("user-b") is None

    @pytest.mark.asyncio
    async def test_stale_version_loses_across_sessions(self, session_factory):
        """Test that a write based on an old read is refused once another session wrote."""
        async with session_factory() as first, session_factory() as second:
            repo_a = SQLAlchemyTwoFactorRepository(first)
            repo_b = SQLAlchemyTwoFactorRepository(second)
            await repo_a.upsert_record("user-1", SECRET)
            await repo_a.update_record("user-1", {"is_enabled": True, "backup_codes": ["AAAA-1111"]})

            seen_by_a = await repo_a.get_record("user-1")
            seen_by_b = await repo_b.get_record("user-1")

            assert await repo_b.update_record("user-1", {"backup_codes": []}, expected_version=seen_by_b.version)
            assert not await repo_a.update_record("user-1", {"backup_codes": []}, expected_version=seen_by_a.version)

            assert (await repo_a.get_record("user-1")).version == seen_by_a.version + 1


class TestServiceWithDatabase:
    """Runs the service against the SQL repository."""

    @pytest.mark.asyncio
    async def test_enroll_and_validate(self, test_db: AsyncSession):
        """Test the full protocol against the database."""
        service = TwoFactorService(SQLAlchemyTwoFactorRepository(test_db))
        setup = await service.setup("user-1", account_label="alice@example.com")

        verified = await service.verify("user-1", totp.generate(setup["secret"]))
        assert verified["enabled"] is True

        assert await service.validate("user-1", totp.generate(setup["secret"])) == {"valid": True}
        record = await service.repository.get_record("user-1")
        assert record.last_used_at is not None

        backup = verified["backup_codes"][0]
        assert await service.validate("user-1", backup) == {"valid": True, "used_backup_code": True}
        assert await service.validate("user-1", backup) == {"valid": False}
        assert len((await service.repository.get_record("user-1")).backup_codes) == 7

    @pytest.mark.asyncio
    async def test_concurrent_backup_code_use_across_sessions(self, session_factory):
        """Test that two sessions spending the same backup code succeed only once."""
        async with session_factory() as setup_session:
            service = TwoFactorService(SQLAlchemyTwoFactorRepository(setup_session))
            setup = await service.setup("user-1")
            verified = await service.verify("user-1", totp.generate(setup["secret"]))
        code = verified["backup_codes"][0]

        async def spend():
            async with session_factory() as session:
                return await TwoFactorService(SQLAlchemyTwoFactorRepository(session)).validate("user-1", code)

        results = await asyncio.gather(spend(), spend())

        assert sorted(result["valid"] for result in results) == [False, True]
        async with session_factory() as session:
            record = await SQLAlchemyTwoFactorRepository(session).get_record("user-1")
        assert len(record.backup_codes) == 7
        assert backup_codes.hash_code(code) not in record.backup_codes
