from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import AccessLogCreate, AccessLogQueryParams
from src.core.database import get_session
from src.core.permissions import CurrentUser, get_current_user, get_tier1_user
from src.domain.audit.models import AccessLog
from src.domain.audit.service import AccessLogFilter, clear_access_logs, list_access_logs, record_access

router = APIRouter(prefix="/api/access-logs", tags=["Access Logs"])


@router.post("", response_model=AccessLog, status_code=status.HTTP_201_CREATED)
async def create_access_log(
    payload: AccessLogCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> AccessLog:
    """Records an action by the caller, typically a resource view."""
    return await record_access(
        session,
        user,
        payload.action,
        resource_id=payload.resource_id,
        resource_title=payload.resource_title,
        resource_url=payload.resource_url,
    )


@router.get("", response_model=list[AccessLog])
async def get_access_logs(
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[CurrentUser, Depends(get_tier1_user)],
    params: AccessLogQueryParams = Depends(),
) -> list[AccessLog]:
    """Lists recent entries newest first. All supplied filters must match."""
    filters = AccessLogFilter(
        user_id=params.user_id,
        resource_id=params.resource_id,
        action=params.action,
        start_date=params.start_date,
        end_date=params.end_date,
    )
    return await list_access_logs(session, filters)


@router.delete("")
async def delete_access_logs(
    session: Annotated[AsyncSession, Depends(get_session)],
    user: Annotated[CurrentUser, Depends(get_tier1_user)],
) -> dict[str, int]:
    """Irreversibly removes every access log entry."""
    removed = await clear_access_logs(session)
    return {"removed": removed}
