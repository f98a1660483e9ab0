from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fastapi import Query
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.core.permissions import Tier, UserRole
from src.core.utils import parse_labels
from src.domain.audit.models import AccessAction

# --- Auth & Users ---


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    """Public signup payload. Only valid with a pending invitation token."""

    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=8)
    invite_token: str = Field(min_length=1)


class UserRead(BaseModel):
    """Public projection of a user. Never exposes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None = None
    email: str
    image: str | None = None
    role: UserRole
    tier: Tier
    created_at: datetime | None = None
    last_signed_in: datetime | None = None


class UserTierUpdate(BaseModel):
    tier: Tier


class UserProfileUpdate(BaseModel):
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8)


# --- Catalog ---


class ResourceCreate(BaseModel):
    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    category: str = Field(min_length=1)
    description: str | None = None
    icon: str | None = None
    labels: str | list[str] | None = Field(default=None, description="Comma-separated text or a list")
    required_tier: Tier | None = None
    is_external: bool = True
    is_favorite: bool = False


class ResourceUpdate(BaseModel):
    """Partial update. Send ``required_tier: null`` to lift a restriction."""

    title: str | None = None
    url: str | None = None
    category: str | None = None
    description: str | None = None
    icon: str | None = None
    labels: str | list[str] | None = None
    required_tier: Tier | None = None
    is_external: bool | None = None
    is_favorite: bool | None = None


class ResourceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    url: str
    category: str
    description: str | None = None
    icon: str | None = None
    labels: list[str] = Field(default_factory=list)
    required_tier: Tier | None = None
    is_external: bool = True
    is_favorite: bool = False
    sort_order: int = 0
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("labels", mode="before")
    @classmethod
    def decode_labels(cls, value: Any) -> list[str]:
        """Tolerates the stored JSON text; malformed content becomes an empty list."""
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return parse_labels(value)


class ReorderRequest(BaseModel):
    ordered_ids: list[int]


class CategoryCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=128)
    icon: str | None = None
    color: str | None = None
    sort_order: int = 0
    required_tier: Tier | None = None


class CategoryUpdate(BaseModel):
    name: str | None = None
    icon: str | None = None
    color: str | None = None
    sort_order: int | None = None
    required_tier: Tier | None = None


class LabelCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)


# --- Access Logs ---


class AccessLogCreate(BaseModel):
    action: AccessAction
    resource_id: int | None = None
    resource_title: str | None = None
    resource_url: str | None = None


@dataclass
class AccessLogQueryParams:
    """Encapsulates GET query parameters for the access log listing."""

    user_id: int | None = Query(default=None, description="Filter by acting user")
    resource_id: int | None = Query(default=None, description="Filter by resource")
    action: AccessAction | None = Query(default=None, description="Filter by action kind")
    start_date: datetime | None = Query(default=None, description="Inclusive lower bound")
    end_date: datetime | None = Query(default=None, description="Inclusive upper bound")


# --- Invitations ---


class InvitationCreate(BaseModel):
    email: EmailStr
    initial_tier: Tier
    note: str | None = None
    expires_in_days: int = Field(default=7, ge=1, le=30)


class InvitationAccept(BaseModel):
    token: str = Field(min_length=1)


# --- Domain Policy ---


class AllowedDomainCreate(BaseModel):
    domain: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True


class AllowedDomainUpdate(BaseModel):
    is_active: bool | None = None
    description: str | None = None


class DomainRestrictionUpdate(BaseModel):
    enabled: bool
