from collections.abc import Iterable
from typing import Any

from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from src.core.exceptions import BadRequest, Conflict, NotFound
from src.core.permissions import CurrentUser, Tier, filter_visible
from src.core.utils import serialize_labels, utcnow
from src.domain.audit.models import AccessAction
from src.domain.audit.service import record_access
from src.domain.catalog.models import Category, Label, Resource

RESOURCE_MUTABLE_FIELDS = {
    "title",
    "description",
    "url",
    "category",
    "icon",
    "labels",
    "required_tier",
    "is_external",
    "is_favorite",
}
CATEGORY_MUTABLE_FIELDS = {"name", "icon", "color", "sort_order", "required_tier"}
# Fields a partial update may set to null; every other field needs a value
RESOURCE_NULLABLE_FIELDS = {"description", "icon", "labels", "required_tier"}
CATEGORY_NULLABLE_FIELDS = {"icon", "color", "required_tier"}


def _reject_nulls(changes: dict[str, Any], mutable: set[str], nullable: set[str]) -> None:
    for field, value in changes.items():
        if value is None and field in mutable and field not in nullable:
            raise BadRequest(f"'{field}' cannot be null.")


def _require_text(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise BadRequest(f"'{field}' must not be empty.")
    return value.strip()


# --- Resources ---


async def list_all_resources(session: AsyncSession) -> list[Resource]:
    statement = select(Resource).order_by(Resource.sort_order, Resource.id)
    return list((await session.exec(statement)).all())


async def list_resources(session: AsyncSession, viewer_tier: Tier) -> list[Resource]:
    """Resources the viewer may see, in display order."""
    return filter_visible(viewer_tier, await list_all_resources(session))


async def get_resource(session: AsyncSession, resource_id: int) -> Resource:
    resource = await session.get(Resource, resource_id)
    if not resource:
        raise NotFound("Resource not found.")
    return resource


async def create_resource(
    session: AsyncSession,
    actor: CurrentUser,
    title: str,
    url: str,
    category: str,
    description: str | None = None,
    icon: str | None = None,
    labels: str | Iterable[str] | None = None,
    required_tier: Tier | None = None,
    is_external: bool = True,
    is_favorite: bool = False,
) -> Resource:
    resource = Resource(
        title=_require_text(title, "title"),
        url=_require_text(url, "url"),
        category=_require_text(category, "category"),
        description=description,
        icon=icon,
        labels=serialize_labels(labels),
        required_tier=required_tier,
        is_external=is_external,
        is_favorite=is_favorite,
        created_by=actor.id,
    )
    session.add(resource)
    await session.flush()
    await record_access(session, actor, AccessAction.CREATE, resource=resource, commit=False)
    await session.commit()
    await session.refresh(resource)

    logger.info(f"Resource {resource.id} '{resource.title}' created by {actor.display_name}")
    return resource


async def update_resource(
    session: AsyncSession, actor: CurrentUser, resource_id: int, changes: dict[str, Any]
) -> Resource:
    """Applies a partial update.

    Only keys present in ``changes`` are touched, so ``{"required_tier": None}``
    clears the restriction while omitting the key leaves it as is. Null is
    rejected for fields that must always hold a value.

    Raises:
        BadRequest: If a non-nullable field is set to null or a text field is blank.
        NotFound: If the resource does not exist.
    """
    _reject_nulls(changes, RESOURCE_MUTABLE_FIELDS, RESOURCE_NULLABLE_FIELDS)
    resource = await get_resource(session, resource_id)

    for field, value in changes.items():
        if field not in RESOURCE_MUTABLE_FIELDS:
            continue
        if field in {"title", "url", "category"}:
            value = _require_text(value, field)
        elif field == "labels":
            value = serialize_labels(value)
        setattr(resource, field, value)

    resource.updated_at = utcnow()
    session.add(resource)
    await record_access(session, actor, AccessAction.EDIT, resource=resource, commit=False)
    await session.commit()
    await session.refresh(resource)
    return resource


async def delete_resource(session: AsyncSession, actor: CurrentUser, resource_id: int) -> None:
    """Removes a resource if present; the audit entry keeps its snapshot."""
    resource = await session.get(Resource, resource_id)
    if not resource:
        return

    await record_access(session, actor, AccessAction.DELETE, resource=resource, commit=False)
    await session.delete(resource)
    await session.commit()
    logger.info(f"Resource {resource_id} deleted by {actor.display_name}")


async def reorder_resources(session: AsyncSession, ordered_ids: list[int]) -> None:
    """Rewrites sort_order to each id's position, all in one transaction.

    Unknown ids are skipped; on any failure nothing is committed.
    """
    try:
        for position, resource_id in enumerate(ordered_ids):
            resource = await session.get(Resource, resource_id)
            if resource is None:
                logger.warning(f"Reorder skipped unknown resource {resource_id}")
                continue
            resource.sort_order = position
            session.add(resource)
        await session.commit()
    except Exception:
        await session.rollback()
        raise


# --- Categories ---


async def list_all_categories(session: AsyncSession) -> list[Category]:
    statement = select(Category).order_by(Category.sort_order, Category.id)
    return list((await session.exec(statement)).all())


async def list_categories(session: AsyncSession, viewer_tier: Tier) -> list[Category]:
    return filter_visible(viewer_tier, await list_all_categories(session))


async def create_category(
    session: AsyncSession,
    category_id: str,
    name: str,
    icon: str | None = None,
    color: str | None = None,
    sort_order: int = 0,
    required_tier: Tier | None = None,
) -> Category:
    key = _require_text(category_id, "id")
    if await session.get(Category, key):
        raise Conflict(f"Category '{key}' already exists.")

    category = Category(
        id=key,
        name=_require_text(name, "name"),
        icon=icon,
        color=color,
        sort_order=sort_order,
        required_tier=required_tier,
    )
    session.add(category)
    await session.commit()
    await session.refresh(category)
    logger.info(f"Category '{key}' created")
    return category


async def update_category(session: AsyncSession, category_id: str, changes: dict[str, Any]) -> Category:
    _reject_nulls(changes, CATEGORY_MUTABLE_FIELDS, CATEGORY_NULLABLE_FIELDS)
    category = await session.get(Category, category_id)
    if not category:
        raise NotFound("Category not found.")

    for field, value in changes.items():
        if field not in CATEGORY_MUTABLE_FIELDS:
            continue
        if field == "name":
            value = _require_text(value, field)
        setattr(category, field, value)

    category.updated_at = utcnow()
    session.add(category)
    await session.commit()
    await session.refresh(category)
    return category


async def delete_category(session: AsyncSession, category_id: str) -> None:
    """Removes the category only. Its resources keep the now-dangling slug."""
    category = await session.get(Category, category_id)
    if category:
        await session.delete(category)
        await session.commit()
        logger.info(f"Category '{category_id}' deleted")


# --- Labels ---


async def list_labels(session: AsyncSession) -> list[Label]:
    return list((await session.exec(select(Label).order_by(Label.name))).all())


async def create_label(session: AsyncSession, name: str) -> Label:
    clean = _require_text(name, "name")
    existing = (await session.exec(select(Label).where(Label.name == clean))).first()
    if existing:
        raise Conflict(f"Label '{clean}' already exists.")

    label = Label(name=clean)
    session.add(label)
    await session.commit()
    await session.refresh(label)
    return label


async def delete_label(session: AsyncSession, label_id: int) -> None:
    label = await session.get(Label, label_id)
    if label:
        await session.delete(label)
        await session.commit()
