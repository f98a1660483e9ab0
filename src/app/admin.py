from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import (
    AllowedDomainCreate,
    AllowedDomainUpdate,
    DomainRestrictionUpdate,
    UserProfileUpdate,
    UserRead,
    UserTierUpdate,
)
from src.core.database import get_session
from src.core.permissions import CurrentUser, get_tier1_user
from src.domain.policy import service as policy
from src.domain.policy.models import AllowedDomain
from src.domain.users import service as users
from src.domain.users.models import User

router = APIRouter(prefix="/admin", tags=["Administration"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AdminDep = Annotated[CurrentUser, Depends(get_tier1_user)]


# --- User Management ---


@router.get("/users", response_model=list[UserRead])
async def list_users(session: SessionDep, user: AdminDep) -> list[User]:
    """Lists all members ordered by name."""
    return await users.list_users(session)


@router.post("/users/{target_id}/tier", response_model=UserRead)
async def update_user_tier(target_id: int, payload: UserTierUpdate, session: SessionDep, user: AdminDep) -> User:
    """Moves a member to another tier.

    The change applies to the target's session claims on their next login.

    Args:
        target_id: The primary key of the user being modified.
        payload: The new tier.
        session: The asynchronous database session.
        user: The authenticated tier-1 context.

    Raises:
        NotFound: If the target user does not exist.
    """
    return await users.update_user_tier(session, target_id, payload.tier)


@router.patch("/users/{target_id}", response_model=UserRead)
async def update_user_profile(
    target_id: int, payload: UserProfileUpdate, session: SessionDep, user: AdminDep
) -> User:
    """Edits a member's name, email or password."""
    return await users.update_user_profile(session, target_id, **payload.model_dump(exclude_unset=True))


# --- Domain Allowlist ---


@router.get("/domains", response_model=list[AllowedDomain])
async def list_domains(session: SessionDep, user: AdminDep) -> list[AllowedDomain]:
    return await policy.list_allowed_domains(session)


@router.post("/domains", response_model=AllowedDomain, status_code=status.HTTP_201_CREATED)
async def create_domain(payload: AllowedDomainCreate, session: SessionDep, user: AdminDep) -> AllowedDomain:
    return await policy.create_allowed_domain(
        session,
        domain=payload.domain,
        description=payload.description,
        is_active=payload.is_active,
        created_by=user.id,
    )


@router.patch("/domains/{domain_id}", response_model=AllowedDomain)
async def update_domain(
    domain_id: int, payload: AllowedDomainUpdate, session: SessionDep, user: AdminDep
) -> AllowedDomain:
    """Toggles an allowlist entry or edits its description."""
    return await policy.update_allowed_domain(
        session, domain_id, is_active=payload.is_active, description=payload.description
    )


@router.delete("/domains/{domain_id}")
async def delete_domain(domain_id: int, session: SessionDep, user: AdminDep) -> dict[str, bool]:
    await policy.delete_allowed_domain(session, domain_id)
    return {"success": True}


# --- Global Settings ---


@router.get("/settings/domain-restriction")
async def get_domain_restriction(session: SessionDep, user: AdminDep) -> dict[str, bool]:
    return {"enabled": await policy.is_domain_restriction_enabled(session)}


@router.put("/settings/domain-restriction")
async def set_domain_restriction(
    payload: DomainRestrictionUpdate, session: SessionDep, user: AdminDep
) -> dict[str, bool]:
    """Switches invitation domain restriction on or off."""
    enabled = await policy.set_domain_restriction(session, payload.enabled, updated_by=user.id)
    return {"enabled": enabled}
