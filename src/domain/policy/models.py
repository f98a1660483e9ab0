from datetime import datetime

from sqlmodel import Field, SQLModel

from src.core.utils import utcnow

DOMAIN_RESTRICTION_KEY = "domainRestrictionEnabled"


class AllowedDomain(SQLModel, table=True):
    """Email domain that may receive invitations while restriction is on."""

    id: int | None = Field(default=None, primary_key=True)
    domain: str = Field(unique=True, index=True, max_length=255)
    description: str | None = None
    is_active: bool = Field(default=True)
    created_by: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Setting(SQLModel, table=True):
    """Mutable runtime key-value configuration."""

    id: int | None = Field(default=None, primary_key=True)
    key: str = Field(unique=True, index=True, max_length=128)
    value: str | None = None
    updated_by: int | None = Field(default=None, foreign_key="user.id")
    updated_at: datetime = Field(default_factory=utcnow)
