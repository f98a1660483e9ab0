from datetime import datetime

from sqlmodel import Field, SQLModel

from src.core.permissions import Tier
from src.core.utils import utcnow


class Category(SQLModel, table=True):
    """A named grouping of resources, keyed by a human-chosen slug."""

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(max_length=128)
    icon: str | None = Field(default=None, max_length=64)
    color: str | None = Field(default=None, max_length=32)
    sort_order: int = Field(default=0, index=True)
    required_tier: Tier | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Resource(SQLModel, table=True):
    """A cataloged link, document or app."""

    id: int | None = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    description: str | None = None
    url: str = Field(max_length=2048)
    # Plain slug rather than a foreign key: deleting a category orphans its resources
    category: str = Field(max_length=64, index=True)
    icon: str | None = Field(default=None, max_length=64)
    labels: str | None = Field(default=None, description="JSON array of label names")
    required_tier: Tier | None = Field(default=None)
    is_external: bool = Field(default=True)
    is_favorite: bool = Field(default=False)
    sort_order: int = Field(default=0, index=True)
    created_by: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Label(SQLModel, table=True):
    """Free-form tag. Resources reference labels by name, not by key."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=128)
    created_at: datetime = Field(default_factory=utcnow)
