"""List and sharing schemas."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from src.models.enums import AccessLevel, ShareRole, ShareStatus
from src.schemas.auth import UserResponse
from src.schemas.item import ItemResponse


class ListCreate(BaseModel):
    """Create a new list."""

    name: str = Field(..., max_length=255)


class ShareResponse(BaseModel):
    """One sharing entry of a list."""

    model_config = ConfigDict(from_attributes=True)

    user: UserResponse
    role: ShareRole
    status: ShareStatus
    updated_at: datetime


class ListDetail(BaseModel):
    """Full list, with items and sharing entries."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    owner: UserResponse
    items: list[ItemResponse] = Field(default_factory=list)
    shared_with: list[ShareResponse] = Field(
        default_factory=list,
        validation_alias=AliasChoices("shares", "shared_with"),
    )
    version: int
    created_at: datetime
    updated_at: datetime


class ListSummary(BaseModel):
    """Entry of the list index."""

    id: int
    name: str
    owner: UserResponse
    access: AccessLevel
    item_count: int = 0
    unbought_count: int = 0
    updated_at: datetime


class ShareCreate(BaseModel):
    """Invite a user to a list."""

    email: EmailStr = Field(..., max_length=255)
    role: ShareRole = ShareRole.VIEWER


class RoleUpdate(BaseModel):
    """Change the role of a shared user."""

    role: ShareRole


class InvitationResponse(BaseModel):
    """A pending invitation addressed to the current user."""

    list_id: int
    list_name: str
    owner: UserResponse
    role: ShareRole
    invited_at: datetime


class RemoveDuplicatesResponse(BaseModel):
    """Result of folding duplicate items."""

    removed_count: int
    message: str
    list: ListDetail
