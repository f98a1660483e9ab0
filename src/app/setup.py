from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlmodel.ext.asyncio.session import AsyncSession

from src.config.settings import settings
from src.core.database import get_session, init_db
from src.core.security import verify_setup_key
from src.domain.users.service import bootstrap_admin

router = APIRouter(tags=["System"])


@router.get("/setup", dependencies=[Depends(verify_setup_key)])
async def run_setup(session: Annotated[AsyncSession, Depends(get_session)]) -> dict[str, Any]:
    """One-time bootstrap: ensures the schema and seeds the tier-1 administrator.

    Re-running is harmless; the administrator's password is reset to the
    configured value.
    """
    if not settings.INITIAL_ADMIN_PASSWORD:
        logger.error("INITIAL_ADMIN_PASSWORD is null. Refusing to seed administrator.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Configuration missing.")

    await init_db()
    admin = await bootstrap_admin(
        session,
        email=settings.INITIAL_ADMIN_EMAIL,
        password=settings.INITIAL_ADMIN_PASSWORD,
        name=settings.INITIAL_ADMIN_NAME,
    )
    return {"success": True, "message": "Database initialized.", "admin": {"id": admin.id, "email": admin.email}}
