from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import LoginRequest, RegisterRequest, UserRead
from src.core.database import get_session
from src.core.exceptions import Unauthorized
from src.core.permissions import CurrentUser
from src.domain.invitations.service import register_with_invitation
from src.domain.users.models import User
from src.domain.users.service import authenticate, get_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


def start_session(request: Request, user: User) -> CurrentUser:
    """Writes the identity claim set into the signed session cookie."""
    claims = CurrentUser(id=user.id, tier=user.tier, role=user.role, name=user.name, email=user.email)
    request.session["user"] = claims.to_session()
    return claims


@router.post("/login")
async def login(
    request: Request, payload: LoginRequest, session: Annotated[AsyncSession, Depends(get_session)]
) -> dict[str, Any]:
    """Verifies email and password, then opens a session.

    Args:
        request: The incoming HTTP request.
        payload: The submitted credentials.
        session: The injected asynchronous database session.

    Returns:
        dict: The session claims of the signed-in user.

    Raises:
        Unauthorized: If the credentials do not match an account.
    """
    user = await authenticate(session, payload.email, payload.password)
    if not user:
        raise Unauthorized("Incorrect email address or password.")

    claims = start_session(request, user)
    logger.info(f"User logged in: {user.email}")
    return {"user": claims.to_session()}


@router.post("/logout")
async def logout(request: Request) -> dict[str, bool]:
    """Clears the session."""
    request.session.pop("user", None)
    return {"success": True}


@router.get("/me", response_model=UserRead | None)
async def me(request: Request, session: Annotated[AsyncSession, Depends(get_session)]) -> User | None:
    """Returns the signed-in user's current record, or null for anonymous callers."""
    claims = request.session.get("user")
    if not claims:
        return None
    return await get_user(session, claims.get("id"))


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, session: Annotated[AsyncSession, Depends(get_session)]) -> dict[str, Any]:
    """Creates an account from an invitation token. There is no open signup.

    Args:
        payload: Name, email, password and the required invitation token.
        session: The injected asynchronous database session.

    Returns:
        dict: A confirmation with the new user's id and tier.
    """
    user = await register_with_invitation(
        session,
        name=payload.name,
        email=payload.email,
        password=payload.password,
        token=payload.invite_token,
    )
    return {"success": True, "message": "Account created.", "user_id": user.id, "tier": user.tier.value}
