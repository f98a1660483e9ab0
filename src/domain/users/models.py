from datetime import datetime

from sqlmodel import Field, SQLModel

from src.core.permissions import Tier, UserRole
from src.core.utils import utcnow


class User(SQLModel, table=True):
    """A hub member. Created through invitation registration or bootstrap."""

    id: int | None = Field(default=None, primary_key=True)
    name: str | None = None
    email: str = Field(unique=True, index=True, max_length=320)
    image: str | None = None
    hashed_password: str | None = None
    role: UserRole = Field(default=UserRole.USER)
    tier: Tier = Field(default=Tier.TIER_5)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_signed_in: datetime = Field(default_factory=utcnow)

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"
