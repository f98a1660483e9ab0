from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from src.core.permissions import Tier
from src.core.utils import utcnow


class InvitationStatus(StrEnum):
    """pending -> accepted, or pending -> expired. Both are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


class Invitation(SQLModel, table=True):
    """Single-use, time-bounded token that admits one new user at a preset tier."""

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(index=True, max_length=320)
    initial_tier: Tier = Field(default=Tier.TIER_5)
    token: str = Field(unique=True, index=True, max_length=64)
    status: InvitationStatus = Field(default=InvitationStatus.PENDING, index=True)

    invited_by: int = Field(foreign_key="user.id")
    invited_by_name: str | None = Field(default=None, max_length=255)  # snapshot at issue time
    accepted_by: int | None = Field(default=None, foreign_key="user.id")
    note: str | None = None

    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow, index=True)
    accepted_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Expiry is evaluated lazily against the clock, not stored."""
        if self.status == InvitationStatus.EXPIRED:
            return True
        return (now or utcnow()) > self.expires_at

    def is_active(self, now: datetime | None = None) -> bool:
        return self.status == InvitationStatus.PENDING and not self.is_expired(now)
