import unittest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from sqlmodel import select

from src.core.exceptions import (
    BadRequest,
    Conflict,
    DomainNotAllowed,
    InvitationAlreadyUsed,
    InvitationExpired,
    InvitationNotFound,
)
from src.core.permissions import Tier
from src.core.security import verify_password
from src.core.utils import utcnow
from src.domain.invitations import service
from src.domain.invitations.models import Invitation, InvitationStatus
from src.domain.policy.service import create_allowed_domain, set_domain_restriction
from src.domain.users.models import User
from tests.base import BaseTest, as_current


class TestInvitationService(BaseTest):
    """Test suite for the invitation lifecycle."""

    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.admin = as_current(await self.create_user("admin@acme.com", tier=Tier.TIER_1, name="Admin"))

    async def _invite(self, email: str = "alice@acme.com", tier: Tier = Tier.TIER_2, **kwargs) -> Invitation:
        async with self.test_session_maker() as session:
            return await service.create_invitation(session, self.admin, email, tier, **kwargs)

    async def _backdate(self, invitation_id: int) -> None:
        async with self.test_session_maker() as session:
            invitation = await session.get(Invitation, invitation_id)
            invitation.expires_at = utcnow() - timedelta(minutes=1)
            session.add(invitation)
            await session.commit()

    async def test_create_snapshots_inviter(self) -> None:
        invitation = await self._invite(note="Welcome aboard", expires_in_days=3)

        self.assertEqual(invitation.status, InvitationStatus.PENDING)
        self.assertEqual(invitation.initial_tier, Tier.TIER_2)
        self.assertEqual(invitation.invited_by, self.admin.id)
        self.assertEqual(invitation.invited_by_name, "Admin")
        self.assertEqual(invitation.note, "Welcome aboard")
        self.assertEqual(len(invitation.token), 32)
        remaining = invitation.expires_at - utcnow()
        self.assertTrue(timedelta(days=2, hours=23) < remaining <= timedelta(days=3))

    async def test_create_rejects_expiry_out_of_range(self) -> None:
        for days in (0, 31):
            with self.subTest(days=days), self.assertRaises(BadRequest):
                await self._invite(expires_in_days=days)

    async def test_domain_restriction(self) -> None:
        async with self.test_session_maker() as session:
            await create_allowed_domain(session, "acme.com")
            await set_domain_restriction(session, True)

        allowed = await self._invite("bob@ACME.com")
        self.assertEqual(allowed.email, "bob@ACME.com")

        with self.assertRaises(DomainNotAllowed) as ctx:
            await self._invite("eve@other.com")
        self.assertEqual(ctx.exception.domain, "other.com")

        async with self.test_session_maker() as session:
            stored = (await session.exec(select(Invitation))).all()
        self.assertEqual(len(stored), 1)

    async def test_token_collision_is_retried(self) -> None:
        existing = await self._invite("first@acme.com")

        with patch(
            "src.domain.invitations.service.generate_invite_token",
            side_effect=[existing.token, "fresh-token-" + "x" * 20],
        ) as mock_token:
            invitation = await self._invite("second@acme.com")

        self.assertEqual(mock_token.call_count, 2)
        self.assertEqual(invitation.token, "fresh-token-" + "x" * 20)

    async def test_token_collision_gives_up(self) -> None:
        existing = await self._invite("first@acme.com")

        with (
            patch("src.domain.invitations.service.generate_invite_token", return_value=existing.token),
            self.assertRaises(Conflict),
        ):
            await self._invite("second@acme.com")

    async def test_register_flow_is_single_use(self) -> None:
        invitation = await self._invite("alice@acme.com", Tier.TIER_2)

        async with self.test_session_maker() as session:
            verified = await service.verify_invitation(session, invitation.token)
            self.assertEqual(verified.email, "alice@acme.com")

            user = await service.register_with_invitation(
                session, "Alice", "alice@acme.com", "s3cret-pass", invitation.token
            )
            self.assertEqual(user.tier, Tier.TIER_2)
            self.assertTrue(verify_password("s3cret-pass", user.hashed_password))

            with self.assertRaises(InvitationAlreadyUsed):
                await service.register_with_invitation(
                    session, "Alice", "alice@acme.com", "s3cret-pass", invitation.token
                )
            with self.assertRaises(InvitationAlreadyUsed):
                await service.verify_invitation(session, invitation.token)

        async with self.test_session_maker() as session:
            stored = await service.get_invitation_by_token(session, invitation.token)
            users = (await session.exec(select(User).where(User.email == "alice@acme.com"))).all()

        self.assertEqual(stored.status, InvitationStatus.ACCEPTED)
        self.assertEqual(stored.accepted_by, user.id)
        self.assertIsNotNone(stored.accepted_at)
        self.assertEqual(len(users), 1)

    async def test_register_failures_leave_invitation_pending(self) -> None:
        invitation = await self._invite("carol@acme.com")
        await self.create_user("taken@acme.com")

        async with self.test_session_maker() as session:
            with self.assertRaises(InvitationNotFound):
                await service.register_with_invitation(session, "X", "x@acme.com", "password123", "nope")
            with self.assertRaises(BadRequest):
                await service.register_with_invitation(session, "  ", "carol@acme.com", "password123", invitation.token)
            with self.assertRaises(Conflict):
                await service.register_with_invitation(
                    session, "Carol", "TAKEN@acme.com", "password123", invitation.token
                )
            with self.assertRaises(BadRequest):
                await service.register_with_invitation(session, "Carol", "carol@acme.com", "short", invitation.token)

        async with self.test_session_maker() as session:
            stored = await service.get_invitation_by_token(session, invitation.token)
        self.assertEqual(stored.status, InvitationStatus.PENDING)

    async def test_register_race_on_email_surfaces_conflict(self) -> None:
        invitation = await self._invite("grace@acme.com")
        await self.create_user("grace@acme.com")

        # Simulates a concurrent registration that committed after the duplicate check ran
        with patch("src.domain.invitations.service.get_user_by_email", new_callable=AsyncMock, return_value=None):
            async with self.test_session_maker() as session:
                with self.assertRaises(Conflict):
                    await service.register_with_invitation(
                        session, "Grace", "grace@acme.com", "password123", invitation.token
                    )

        async with self.test_session_maker() as session:
            stored = await service.get_invitation_by_token(session, invitation.token)
            users = (await session.exec(select(User).where(User.email == "grace@acme.com"))).all()
        self.assertEqual(stored.status, InvitationStatus.PENDING)
        self.assertIsNone(stored.accepted_by)
        self.assertEqual(len(users), 1)

    async def test_expired_by_clock(self) -> None:
        invitation = await self._invite()
        await self._backdate(invitation.id)

        async with self.test_session_maker() as session:
            with self.assertRaises(InvitationExpired):
                await service.verify_invitation(session, invitation.token)
            with self.assertRaises(InvitationExpired):
                await service.register_with_invitation(
                    session, "Alice", "alice@acme.com", "password123", invitation.token
                )

    async def test_verify_unknown_token(self) -> None:
        async with self.test_session_maker() as session:
            with self.assertRaises(InvitationNotFound):
                await service.verify_invitation(session, "does-not-exist")

    async def test_accept_upgrades_existing_user(self) -> None:
        member = as_current(await self.create_user("dave@acme.com", tier=Tier.TIER_5))
        invitation = await self._invite("dave@acme.com", Tier.TIER_3)

        async with self.test_session_maker() as session:
            accepted = await service.accept_invitation(session, member, invitation.token)
            self.assertEqual(accepted.status, InvitationStatus.ACCEPTED)
            self.assertEqual(accepted.accepted_by, member.id)

            with self.assertRaises(InvitationAlreadyUsed):
                await service.accept_invitation(session, member, invitation.token)

        async with self.test_session_maker() as session:
            account = await session.get(User, member.id)
        self.assertEqual(account.tier, Tier.TIER_3)

    async def test_expire_invitation(self) -> None:
        pending = await self._invite("erin@acme.com")

        async with self.test_session_maker() as session:
            expired = await service.expire_invitation(session, pending.id)
            self.assertEqual(expired.status, InvitationStatus.EXPIRED)
            self.assertFalse(expired.is_active())

            with self.assertRaises(InvitationExpired):
                await service.verify_invitation(session, pending.token)
            with self.assertRaises(InvitationNotFound):
                await service.expire_invitation(session, 9999)

    async def test_expire_rejects_accepted(self) -> None:
        invitation = await self._invite("frank@acme.com")
        async with self.test_session_maker() as session:
            await service.register_with_invitation(session, "Frank", "frank@acme.com", "password123", invitation.token)
            with self.assertRaises(InvitationAlreadyUsed):
                await service.expire_invitation(session, invitation.id)

    async def test_list_newest_first_and_delete(self) -> None:
        first = await self._invite("one@acme.com")
        second = await self._invite("two@acme.com")

        async with self.test_session_maker() as session:
            listed = await service.list_invitations(session)
            self.assertEqual([i.id for i in listed], [second.id, first.id])

            await service.delete_invitation(session, first.id)
            await service.delete_invitation(session, first.id)

            self.assertEqual([i.id for i in await service.list_invitations(session)], [second.id])


if __name__ == "__main__":
    unittest.main()
