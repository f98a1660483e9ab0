from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import InvitationAccept, InvitationCreate
from src.core.database import get_session
from src.core.permissions import CurrentUser, get_current_user, get_tier1_user
from src.domain.invitations import service
from src.domain.invitations.models import Invitation

router = APIRouter(prefix="/api/invitations", tags=["Invitations"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
AdminDep = Annotated[CurrentUser, Depends(get_tier1_user)]


@router.get("", response_model=list[Invitation])
async def list_invitations(session: SessionDep, user: AdminDep) -> list[Invitation]:
    """Returns every invitation newest first; no server-side status filtering."""
    return await service.list_invitations(session)


@router.post("", response_model=Invitation, status_code=status.HTTP_201_CREATED)
async def create_invitation(payload: InvitationCreate, session: SessionDep, user: AdminDep) -> Invitation:
    """Issues a new invitation. The response carries the token for the invite link."""
    return await service.create_invitation(
        session,
        inviter=user,
        email=payload.email,
        initial_tier=payload.initial_tier,
        note=payload.note,
        expires_in_days=payload.expires_in_days,
    )


@router.get("/verify/{token}", response_model=Invitation)
async def verify_invitation(token: str, session: SessionDep) -> Invitation:
    """Public pre-registration check of an invitation token."""
    return await service.verify_invitation(session, token)


@router.post("/accept")
async def accept_invitation(
    request: Request,
    payload: InvitationAccept,
    session: SessionDep,
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> dict[str, Any]:
    """Applies an invitation's tier to the signed-in user and refreshes the session."""
    invitation = await service.accept_invitation(session, user, payload.token)

    claims = user.model_copy(update={"tier": invitation.initial_tier})
    request.session["user"] = claims.to_session()
    return {"success": True, "tier": invitation.initial_tier.value}


@router.post("/{invitation_id}/expire", response_model=Invitation)
async def expire_invitation(invitation_id: int, session: SessionDep, user: AdminDep) -> Invitation:
    return await service.expire_invitation(session, invitation_id)


@router.delete("/{invitation_id}")
async def delete_invitation(invitation_id: int, session: SessionDep, user: AdminDep) -> dict[str, bool]:
    await service.delete_invitation(session, invitation_id)
    return {"success": True}
