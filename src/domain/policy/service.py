from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.exceptions import BadRequest, Conflict, NotFound
from src.core.utils import extract_email_domain, utcnow
from src.domain.policy.models import DOMAIN_RESTRICTION_KEY, AllowedDomain, Setting

# --- Settings ---


async def get_setting(session: AsyncSession, key: str) -> Setting | None:
    return (await session.exec(select(Setting).where(Setting.key == key))).first()


async def upsert_setting(session: AsyncSession, key: str, value: str, updated_by: int | None = None) -> Setting:
    """Creates or overwrites a setting, recording who changed it."""
    setting = await get_setting(session, key)
    if setting is None:
        setting = Setting(key=key, value=value, updated_by=updated_by)
    else:
        setting.value = value
        setting.updated_by = updated_by
        setting.updated_at = utcnow()

    session.add(setting)
    await session.commit()
    await session.refresh(setting)
    logger.info(f"Setting '{key}' set to '{value}' by user {updated_by}")
    return setting


async def is_domain_restriction_enabled(session: AsyncSession) -> bool:
    setting = await get_setting(session, DOMAIN_RESTRICTION_KEY)
    return setting is not None and setting.value == "true"


async def set_domain_restriction(session: AsyncSession, enabled: bool, updated_by: int | None = None) -> bool:
    await upsert_setting(session, DOMAIN_RESTRICTION_KEY, "true" if enabled else "false", updated_by)
    return enabled


# --- Allowed Domains ---


async def list_allowed_domains(session: AsyncSession, active_only: bool = False) -> list[AllowedDomain]:
    statement = select(AllowedDomain).order_by(AllowedDomain.domain)
    if active_only:
        statement = statement.where(AllowedDomain.is_active == True)  # noqa: E712
    return list((await session.exec(statement)).all())


async def is_email_domain_allowed(session: AsyncSession, email: str) -> bool:
    """Checks an email against the allowlist.

    Always True while the restriction setting is off. When on, the lowercased
    domain must match an active allowlist entry; addresses without a domain
    are rejected.
    """
    if not await is_domain_restriction_enabled(session):
        return True

    domain = extract_email_domain(email)
    if not domain:
        return False

    active = await list_allowed_domains(session, active_only=True)
    return any(entry.domain.lower() == domain for entry in active)


async def create_allowed_domain(
    session: AsyncSession,
    domain: str,
    description: str | None = None,
    is_active: bool = True,
    created_by: int | None = None,
) -> AllowedDomain:
    normalized = domain.strip().lower().lstrip("@")
    if not normalized:
        raise BadRequest("Domain must not be empty.")

    existing = (await session.exec(select(AllowedDomain).where(AllowedDomain.domain == normalized))).first()
    if existing:
        raise Conflict(f"Domain '{normalized}' is already registered.")

    entry = AllowedDomain(domain=normalized, description=description, is_active=is_active, created_by=created_by)
    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    logger.info(f"Allowed domain added: {normalized} (active: {is_active})")
    return entry


async def update_allowed_domain(
    session: AsyncSession, domain_id: int, is_active: bool | None = None, description: str | None = None
) -> AllowedDomain:
    entry = await session.get(AllowedDomain, domain_id)
    if not entry:
        raise NotFound("Allowed domain not found.")

    if is_active is not None:
        entry.is_active = is_active
    if description is not None:
        entry.description = description
    entry.updated_at = utcnow()

    session.add(entry)
    await session.commit()
    await session.refresh(entry)
    return entry


async def delete_allowed_domain(session: AsyncSession, domain_id: int) -> None:
    entry = await session.get(AllowedDomain, domain_id)
    if entry:
        await session.delete(entry)
        await session.commit()
        logger.info(f"Allowed domain removed: {entry.domain}")
