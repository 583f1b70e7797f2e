"""Pydantic schemas for API requests and responses."""

from src.schemas.auth import AuthResponse, UserLogin, UserRegister, UserResponse
from src.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from src.schemas.list import (
    InvitationResponse,
    ListCreate,
    ListDetail,
    ListSummary,
    RemoveDuplicatesResponse,
    RoleUpdate,
    ShareCreate,
    ShareResponse,
)

__all__ = [
    "UserRegister",
    "UserLogin",
    "UserResponse",
    "AuthResponse",
    "ListCreate",
    "ListDetail",
    "ListSummary",
    "ShareCreate",
    "ShareResponse",
    "RoleUpdate",
    "InvitationResponse",
    "RemoveDuplicatesResponse",
    "ItemCreate",
    "ItemUpdate",
    "ItemResponse",
]
