import unittest

from src.core.exceptions import BadRequest, Conflict, NotFound
from src.core.permissions import Tier, UserRole
from src.core.security import verify_password
from src.domain.users.service import (
    authenticate,
    bootstrap_admin,
    create_user,
    get_user_by_email,
    list_users,
    update_user_profile,
    update_user_tier,
)
from tests.base import BaseTest


class TestUserService(BaseTest):
    """Test suite for account creation, credentials and tier management."""

    async def test_create_user_hashes_password_and_defaults_tier(self) -> None:
        async with self.test_session_maker() as session:
            user = await create_user(session, "Alice", "Alice@Acme.com", "password123")

        self.assertEqual(user.email, "alice@acme.com")
        self.assertEqual(user.tier, Tier.TIER_5)
        self.assertEqual(user.role, UserRole.USER)
        self.assertNotEqual(user.hashed_password, "password123")
        self.assertTrue(verify_password("password123", user.hashed_password))

    async def test_duplicate_email_conflicts(self) -> None:
        await self.create_user("alice@acme.com")
        async with self.test_session_maker() as session:
            with self.assertRaises(Conflict):
                await create_user(session, "Other Alice", "ALICE@acme.com", "password123")

    async def test_short_password_rejected(self) -> None:
        async with self.test_session_maker() as session:
            with self.assertRaises(BadRequest):
                await create_user(session, "Alice", "alice@acme.com", "short")
            self.assertIsNone(await get_user_by_email(session, "alice@acme.com"))

    async def test_authenticate_success_stamps_sign_in(self) -> None:
        created = await self.create_user("alice@acme.com", password="password123")
        async with self.test_session_maker() as session:
            user = await authenticate(session, "alice@acme.com", "password123")

        self.assertIsNotNone(user)
        self.assertGreaterEqual(user.last_signed_in, created.last_signed_in)

    async def test_authenticate_failures_return_none(self) -> None:
        await self.create_user("alice@acme.com", password="password123")
        async with self.test_session_maker() as session:
            self.assertIsNone(await authenticate(session, "alice@acme.com", "wrong-password"))
            self.assertIsNone(await authenticate(session, "nobody@acme.com", "password123"))

    async def test_list_users_ordered_by_name(self) -> None:
        await self.create_user("zed@acme.com", name="Zed")
        await self.create_user("amy@acme.com", name="Amy")
        async with self.test_session_maker() as session:
            self.assertEqual([u.name for u in await list_users(session)], ["Amy", "Zed"])

    async def test_update_tier(self) -> None:
        user = await self.create_user("alice@acme.com")
        async with self.test_session_maker() as session:
            updated = await update_user_tier(session, user.id, Tier.TIER_2)
            self.assertEqual(updated.tier, Tier.TIER_2)

            with self.assertRaises(NotFound):
                await update_user_tier(session, 9999, Tier.TIER_1)

    async def test_update_profile_partial_fields(self) -> None:
        user = await self.create_user("alice@acme.com", name="Alice")
        await self.create_user("bob@acme.com")
        async with self.test_session_maker() as session:
            updated = await update_user_profile(session, user.id, password="new-password")
            self.assertEqual(updated.name, "Alice")
            self.assertTrue(verify_password("new-password", updated.hashed_password))

            updated = await update_user_profile(session, user.id, name="Alicia", email="alicia@acme.com")
            self.assertEqual(updated.name, "Alicia")
            self.assertEqual(updated.email, "alicia@acme.com")

            with self.assertRaises(Conflict):
                await update_user_profile(session, user.id, email="bob@acme.com")
            with self.assertRaises(BadRequest):
                await update_user_profile(session, user.id, password="short")


class TestBootstrapAdmin(BaseTest):
    async def test_bootstrap_creates_tier_one_admin(self) -> None:
        async with self.test_session_maker() as session:
            admin = await bootstrap_admin(session, "admin@acme.com", "admin-password")

        self.assertEqual(admin.tier, Tier.TIER_1)
        self.assertEqual(admin.role, UserRole.ADMIN)

    async def test_bootstrap_is_idempotent_and_resets_password(self) -> None:
        async with self.test_session_maker() as session:
            first = await bootstrap_admin(session, "admin@acme.com", "admin-password")
            second = await bootstrap_admin(session, "admin@acme.com", "rotated-password")

            self.assertEqual(first.id, second.id)
            self.assertEqual(len(await list_users(session)), 1)
            self.assertTrue(verify_password("rotated-password", second.hashed_password))


if __name__ == "__main__":
    unittest.main()
