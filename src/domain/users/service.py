from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.exceptions import BadRequest, Conflict, NotFound
from src.core.permissions import Tier, UserRole
from src.core.security import hash_password, verify_password
from src.core.utils import utcnow
from src.domain.users.models import User

MIN_PASSWORD_LENGTH = 8


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    statement = select(User).where(User.email == _normalize_email(email))
    return (await session.exec(statement)).first()


def build_user(
    name: str,
    email: str,
    password: str,
    tier: Tier = Tier.TIER_5,
    role: UserRole = UserRole.USER,
) -> User:
    """Builds an unsaved user with a hashed password. Callers own the commit."""
    _validate_password(password)
    return User(
        name=name.strip(),
        email=_normalize_email(email),
        hashed_password=hash_password(password),
        tier=tier,
        role=role,
    )


async def create_user(
    session: AsyncSession,
    name: str,
    email: str,
    password: str,
    tier: Tier = Tier.TIER_5,
    role: UserRole = UserRole.USER,
) -> User:
    if await get_user_by_email(session, email):
        raise Conflict("This email address is already registered.")

    user = build_user(name, email, password, tier, role)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info(f"Created user {user.email} at tier {user.tier.value}")
    return user


async def authenticate(session: AsyncSession, email: str, password: str) -> User | None:
    """Verifies credentials and stamps the sign-in time.

    Returns:
        User | None: The user on success, None on unknown email or bad password.
    """
    user = await get_user_by_email(session, email)
    if not user or not verify_password(password, user.hashed_password):
        logger.warning(f"Failed login attempt for {email}")
        return None

    user.last_signed_in = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def list_users(session: AsyncSession) -> list[User]:
    return list((await session.exec(select(User).order_by(User.name))).all())


async def update_user_tier(session: AsyncSession, user_id: int, tier: Tier) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found.")

    user.tier = tier
    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    logger.info(f"User {user.email} moved to tier {tier.value}")
    return user


async def update_user_profile(
    session: AsyncSession,
    user_id: int,
    name: str | None = None,
    email: str | None = None,
    password: str | None = None,
) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFound("User not found.")

    if email is not None and _normalize_email(email) != user.email:
        if await get_user_by_email(session, email):
            raise Conflict("This email address is already registered.")
        user.email = _normalize_email(email)
    if name is not None:
        user.name = name.strip()
    if password is not None:
        _validate_password(password)
        user.hashed_password = hash_password(password)

    user.updated_at = utcnow()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def bootstrap_admin(session: AsyncSession, email: str, password: str, name: str = "Admin") -> User:
    """Seeds the tier-1 administrator, resetting its password on re-runs."""
    user = await get_user_by_email(session, email)
    if user is None:
        user = build_user(name, email, password, tier=Tier.TIER_1, role=UserRole.ADMIN)
        logger.info(f"Bootstrapping initial administrator: {user.email}")
    else:
        _validate_password(password)
        user.hashed_password = hash_password(password)
        user.tier = Tier.TIER_1
        user.role = UserRole.ADMIN
        user.updated_at = utcnow()
        logger.info(f"Resetting bootstrap administrator: {user.email}")

    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
