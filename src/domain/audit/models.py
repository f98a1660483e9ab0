from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from src.core.utils import utcnow


class AccessAction(StrEnum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


class AccessLog(SQLModel, table=True):
    """Immutable append-only ledger of user actions against resources.

    Actor and resource details are copied in at write time, and the id columns
    carry no foreign keys, so entries outlive the rows they describe.
    """

    id: int | None = Field(default=None, primary_key=True)
    user_id: int | None = Field(default=None, index=True)
    user_name: str | None = Field(default=None, max_length=255)
    resource_id: int | None = Field(default=None, index=True)
    resource_title: str | None = Field(default=None, max_length=255)
    resource_url: str | None = Field(default=None, max_length=2048)
    action: AccessAction = Field(index=True)
    timestamp: datetime = Field(default_factory=utcnow, index=True)
