from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import delete
from sqlmodel import desc, select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.config.settings import settings
from src.core.permissions import CurrentUser
from src.core.utils import to_naive_utc
from src.domain.audit.models import AccessAction, AccessLog
from src.domain.catalog.models import Resource


@dataclass
class AccessLogFilter:
    """Conjunctive filters for the access log listing. Unset fields match all."""

    user_id: int | None = None
    resource_id: int | None = None
    action: AccessAction | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


async def record_access(
    session: AsyncSession,
    actor: CurrentUser,
    action: AccessAction,
    resource: Resource | None = None,
    resource_id: int | None = None,
    resource_title: str | None = None,
    resource_url: str | None = None,
    commit: bool = True,
) -> AccessLog:
    """Appends an audit entry with snapshots of the actor and the resource.

    When a loaded ``resource`` is given its current id, title and url win over
    the loose arguments.
    """
    if resource is not None:
        resource_id, resource_title, resource_url = resource.id, resource.title, resource.url

    entry = AccessLog(
        user_id=actor.id,
        user_name=actor.display_name,
        resource_id=resource_id,
        resource_title=resource_title,
        resource_url=resource_url,
        action=action,
    )
    session.add(entry)
    if commit:
        await session.commit()
        await session.refresh(entry)
    logger.debug(f"Access logged: {actor.display_name} {action.value} resource {resource_id}")
    return entry


async def list_access_logs(session: AsyncSession, filters: AccessLogFilter | None = None) -> list[AccessLog]:
    """Returns the most recent entries, newest first, capped by ACCESS_LOG_LIMIT."""
    filters = filters or AccessLogFilter()
    statement = select(AccessLog)

    if filters.user_id is not None:
        statement = statement.where(AccessLog.user_id == filters.user_id)
    if filters.resource_id is not None:
        statement = statement.where(AccessLog.resource_id == filters.resource_id)
    if filters.action is not None:
        statement = statement.where(AccessLog.action == filters.action)
    start_date, end_date = to_naive_utc(filters.start_date), to_naive_utc(filters.end_date)
    if start_date is not None:
        statement = statement.where(AccessLog.timestamp >= start_date)
    if end_date is not None:
        statement = statement.where(AccessLog.timestamp <= end_date)

    statement = statement.order_by(desc(AccessLog.timestamp), desc(AccessLog.id)).limit(settings.ACCESS_LOG_LIMIT)
    return list((await session.exec(statement)).all())


async def clear_access_logs(session: AsyncSession) -> int:
    """Deletes every access log row. Returns the number of rows removed."""
    result = await session.exec(delete(AccessLog))
    await session.commit()
    removed = result.rowcount or 0
    logger.warning(f"Access log cleared ({removed} entries removed)")
    return removed
