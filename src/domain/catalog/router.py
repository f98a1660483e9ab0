from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import (
    CategoryCreate,
    CategoryUpdate,
    LabelCreate,
    ReorderRequest,
    ResourceCreate,
    ResourceRead,
    ResourceUpdate,
)
from src.core.database import get_session
from src.core.permissions import CurrentUser, get_current_user, get_tier1_user
from src.domain.catalog import service
from src.domain.catalog.models import Category, Label

router = APIRouter(prefix="/api", tags=["Catalog"])

SessionDep = Annotated[AsyncSession, Depends(get_session)]
UserDep = Annotated[CurrentUser, Depends(get_current_user)]
AdminDep = Annotated[CurrentUser, Depends(get_tier1_user)]


# --- Resources ---


@router.get("/resources", response_model=list[ResourceRead])
async def list_resources(session: SessionDep, user: UserDep) -> list[ResourceRead]:
    """Lists the resources visible at the caller's tier, in display order."""
    resources = await service.list_resources(session, user.tier)
    return [ResourceRead.model_validate(r) for r in resources]


@router.get("/resources/all", response_model=list[ResourceRead])
async def list_all_resources(session: SessionDep, user: AdminDep) -> list[ResourceRead]:
    """Lists every resource regardless of tier restrictions."""
    return [ResourceRead.model_validate(r) for r in await service.list_all_resources(session)]


@router.post("/resources", response_model=ResourceRead, status_code=status.HTTP_201_CREATED)
async def create_resource(payload: ResourceCreate, session: SessionDep, user: UserDep) -> ResourceRead:
    resource = await service.create_resource(session, user, **payload.model_dump())
    return ResourceRead.model_validate(resource)


@router.post("/resources/reorder")
async def reorder_resources(payload: ReorderRequest, session: SessionDep, user: UserDep) -> dict[str, bool]:
    """Persists a new display order given the full ordered list of ids."""
    await service.reorder_resources(session, payload.ordered_ids)
    return {"success": True}


@router.patch("/resources/{resource_id}", response_model=ResourceRead)
async def update_resource(
    resource_id: int, payload: ResourceUpdate, session: SessionDep, user: UserDep
) -> ResourceRead:
    """Applies only the fields present in the request body."""
    resource = await service.update_resource(session, user, resource_id, payload.model_dump(exclude_unset=True))
    return ResourceRead.model_validate(resource)


@router.delete("/resources/{resource_id}")
async def delete_resource(resource_id: int, session: SessionDep, user: UserDep) -> dict[str, bool]:
    await service.delete_resource(session, user, resource_id)
    return {"success": True}


# --- Categories ---


@router.get("/categories", response_model=list[Category])
async def list_categories(session: SessionDep, user: UserDep) -> list[Category]:
    return await service.list_categories(session, user.tier)


@router.get("/categories/all", response_model=list[Category])
async def list_all_categories(session: SessionDep, user: AdminDep) -> list[Category]:
    return await service.list_all_categories(session)


@router.post("/categories", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryCreate, session: SessionDep, user: AdminDep) -> Category:
    data = payload.model_dump()
    return await service.create_category(session, category_id=data.pop("id"), **data)


@router.patch("/categories/{category_id}", response_model=Category)
async def update_category(
    category_id: str, payload: CategoryUpdate, session: SessionDep, user: AdminDep
) -> Category:
    return await service.update_category(session, category_id, payload.model_dump(exclude_unset=True))


@router.delete("/categories/{category_id}")
async def delete_category(category_id: str, session: SessionDep, user: AdminDep) -> dict[str, bool]:
    await service.delete_category(session, category_id)
    return {"success": True}


# --- Labels ---


@router.get("/labels", response_model=list[Label])
async def list_labels(session: SessionDep, user: UserDep) -> list[Label]:
    return await service.list_labels(session)


@router.post("/labels", response_model=Label, status_code=status.HTTP_201_CREATED)
async def create_label(payload: LabelCreate, session: SessionDep, user: UserDep) -> Label:
    return await service.create_label(session, payload.name)


@router.delete("/labels/{label_id}")
async def delete_label(label_id: int, session: SessionDep, user: AdminDep) -> dict[str, bool]:
    await service.delete_label(session, label_id)
    return {"success": True}
