"""
Tier-based access control for the resource hub.

Tiers run from "1" (highest privilege) to "5" (lowest). A tier-gated entity is
visible to a viewer whose tier number is less than or equal to the entity's
required tier; entities without a required tier are visible to everyone.
Administrative operations are reserved for tier 1.
"""

from collections.abc import Iterable
from enum import StrEnum
from typing import Any, Protocol, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ValidationError

from src.core.exceptions import Forbidden, Unauthorized


class Tier(StrEnum):
    """Closed, ordered privilege levels. Lower level outranks higher level."""

    TIER_1 = "1"
    TIER_2 = "2"
    TIER_3 = "3"
    TIER_4 = "4"
    TIER_5 = "5"

    @property
    def level(self) -> int:
        return int(self.value)


class UserRole(StrEnum):
    USER = "user"
    ADMIN = "admin"


class TierGated(Protocol):
    required_tier: Tier | None


T = TypeVar("T", bound=TierGated)


class CurrentUser(BaseModel):
    """Identity claims resolved from the signed session cookie."""

    id: int
    tier: Tier
    role: UserRole = UserRole.USER
    name: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"

    def to_session(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def can_view(viewer_tier: Tier, required_tier: Tier | None) -> bool:
    """Decides whether a viewer may see an entity gated at ``required_tier``."""
    if required_tier is None:
        return True
    return Tier(viewer_tier).level <= Tier(required_tier).level


def filter_visible(viewer_tier: Tier, items: Iterable[T]) -> list[T]:
    """Narrows a collection to the entries the viewer may see. Order is kept."""
    if viewer_tier == Tier.TIER_1:
        return list(items)
    return [item for item in items if can_view(viewer_tier, item.required_tier)]


def require_authenticated(claims: dict[str, Any] | None) -> CurrentUser:
    """Resolves session claims into a typed user or fails with Unauthorized."""
    if not claims:
        raise Unauthorized("Login required.")
    try:
        return CurrentUser.model_validate(claims)
    except ValidationError as e:
        raise Unauthorized("Session is invalid. Please log in again.") from e


def require_tier1(user: CurrentUser) -> CurrentUser:
    """Fails with Forbidden unless the acting user holds tier 1."""
    if user.tier != Tier.TIER_1:
        raise Forbidden("Tier 1 privileges required.")
    return user


def get_current_user(request: Request) -> CurrentUser:
    """Dependency securing routes behind an authenticated session."""
    return require_authenticated(request.session.get("user"))


def get_tier1_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Dependency enforcing tier 1 on administrative routes."""
    return require_tier1(user)
