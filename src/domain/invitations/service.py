"""
Invitation lifecycle: issue, verify, accept, register, expire, delete.

An invitation moves from pending to accepted exactly once, or is treated as
expired once the clock passes ``expires_at``. Every check runs before any
write, so a rejected call leaves the store untouched.
"""

from datetime import timedelta

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import desc, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.exceptions import (
    BadRequest,
    Conflict,
    DomainNotAllowed,
    InvitationAlreadyUsed,
    InvitationExpired,
    InvitationNotFound,
    NotFound,
)
from src.core.permissions import CurrentUser, Tier
from src.core.security import generate_invite_token
from src.core.utils import extract_email_domain, utcnow
from src.domain.invitations.models import Invitation, InvitationStatus
from src.domain.policy.service import is_email_domain_allowed
from src.domain.users.models import User
from src.domain.users.service import build_user, get_user_by_email

DEFAULT_EXPIRY_DAYS = 7
MIN_EXPIRY_DAYS = 1
MAX_EXPIRY_DAYS = 30
TOKEN_ATTEMPTS = 3


def ensure_usable(invitation: Invitation | None) -> Invitation:
    """Validates that an invitation can still be consumed.

    Raises:
        InvitationNotFound: No invitation matched the token.
        InvitationAlreadyUsed: The invitation was already accepted.
        InvitationExpired: The invitation is past its deadline or marked expired.
    """
    if invitation is None:
        raise InvitationNotFound()
    if invitation.status == InvitationStatus.ACCEPTED:
        raise InvitationAlreadyUsed()
    if invitation.is_expired():
        raise InvitationExpired()
    return invitation


async def get_invitation_by_token(session: AsyncSession, token: str) -> Invitation | None:
    return (await session.exec(select(Invitation).where(Invitation.token == token))).first()


async def list_invitations(session: AsyncSession) -> list[Invitation]:
    """All invitations, newest first. Callers filter for active ones."""
    statement = select(Invitation).order_by(desc(Invitation.created_at), desc(Invitation.id))
    return list((await session.exec(statement)).all())


async def create_invitation(
    session: AsyncSession,
    inviter: CurrentUser,
    email: str,
    initial_tier: Tier,
    note: str | None = None,
    expires_in_days: int = DEFAULT_EXPIRY_DAYS,
) -> Invitation:
    """Issues a pending invitation with a fresh token.

    Raises:
        BadRequest: If the expiry window is outside 1-30 days.
        DomainNotAllowed: If domain restriction rejects the email's domain.
    """
    if not MIN_EXPIRY_DAYS <= expires_in_days <= MAX_EXPIRY_DAYS:
        raise BadRequest(f"Expiry must be between {MIN_EXPIRY_DAYS} and {MAX_EXPIRY_DAYS} days.")

    if not await is_email_domain_allowed(session, email):
        domain = extract_email_domain(email) or email
        logger.warning(f"Invitation to {email} rejected by domain policy")
        raise DomainNotAllowed(domain)

    expires_at = utcnow() + timedelta(days=expires_in_days)

    for attempt in range(1, TOKEN_ATTEMPTS + 1):
        invitation = Invitation(
            email=email.strip(),
            initial_tier=initial_tier,
            token=generate_invite_token(),
            status=InvitationStatus.PENDING,
            invited_by=inviter.id,
            invited_by_name=inviter.display_name,
            note=note,
            expires_at=expires_at,
        )
        session.add(invitation)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            logger.warning(f"Invitation token collision on attempt {attempt}; regenerating")
            continue

        await session.refresh(invitation)
        logger.info(f"Invitation {invitation.id} issued to {email} (tier {initial_tier.value}) by {inviter.display_name}")
        return invitation

    raise Conflict("Could not allocate a unique invitation token. Please retry.")


async def verify_invitation(session: AsyncSession, token: str) -> Invitation:
    """Read-only check used to show the invitation before registering."""
    return ensure_usable(await get_invitation_by_token(session, token))


async def accept_invitation(session: AsyncSession, user: CurrentUser, token: str) -> Invitation:
    """Applies the invitation's tier to an already registered, logged-in user."""
    invitation = ensure_usable(await get_invitation_by_token(session, token))
    if invitation.status != InvitationStatus.PENDING:
        raise InvitationAlreadyUsed()

    account = await session.get(User, user.id)
    if account is None:
        raise NotFound("User not found.")

    now = utcnow()
    account.tier = invitation.initial_tier
    account.updated_at = now
    invitation.status = InvitationStatus.ACCEPTED
    invitation.accepted_by = account.id
    invitation.accepted_at = now

    session.add(account)
    session.add(invitation)
    await session.commit()
    await session.refresh(invitation)
    logger.info(f"Invitation {invitation.id} accepted by {account.email} (tier {invitation.initial_tier.value})")
    return invitation


async def register_with_invitation(
    session: AsyncSession, name: str, email: str, password: str, token: str
) -> User:
    """Creates an account from a pending invitation. There is no open signup.

    The new user inherits the invitation's tier and the invitation is marked
    accepted by that user in the same commit.

    Raises:
        InvitationNotFound | InvitationAlreadyUsed | InvitationExpired: Token checks.
        Conflict: If the email is already registered.
        BadRequest: If the name is empty or the password is too short.
    """
    invitation = ensure_usable(await get_invitation_by_token(session, token))

    if not name or not name.strip():
        raise BadRequest("Name must not be empty.")
    if await get_user_by_email(session, email):
        raise Conflict("This email address is already registered.")

    user = build_user(name, email, password, tier=invitation.initial_tier)
    session.add(user)
    try:
        await session.flush()

        invitation.status = InvitationStatus.ACCEPTED
        invitation.accepted_by = user.id
        invitation.accepted_at = utcnow()
        session.add(invitation)

        await session.commit()
    except IntegrityError as e:
        # A concurrent registration claimed the email after the check above
        await session.rollback()
        logger.warning(f"Registration for {email} lost a race on the unique email: {e.orig}")
        raise Conflict("This email address is already registered.") from e

    await session.refresh(user)
    logger.info(f"Registered {user.email} at tier {user.tier.value} via invitation {invitation.id}")
    return user


async def expire_invitation(session: AsyncSession, invitation_id: int) -> Invitation:
    """Explicitly marks a pending invitation as expired."""
    invitation = await session.get(Invitation, invitation_id)
    if not invitation:
        raise InvitationNotFound()
    if invitation.status == InvitationStatus.ACCEPTED:
        raise InvitationAlreadyUsed()

    invitation.status = InvitationStatus.EXPIRED
    session.add(invitation)
    await session.commit()
    await session.refresh(invitation)
    return invitation


async def delete_invitation(session: AsyncSession, invitation_id: int) -> None:
    invitation = await session.get(Invitation, invitation_id)
    if invitation:
        await session.delete(invitation)
        await session.commit()
        logger.info(f"Invitation {invitation_id} deleted")
