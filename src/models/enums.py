"""Enums for model fields."""

from enum import Enum


class ShareRole(str, Enum):
    """Privilege a shared user holds on a list."""

    VIEWER = "viewer"
    EDITOR = "editor"

    def can_edit(self) -> bool:
        """Check if this role allows mutating items."""
        return self == ShareRole.EDITOR


class ShareStatus(str, Enum):
    """Where a sharing entry is in the invitation workflow."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AccessLevel(str, Enum):
    """Effective access of a user to a list, as reported to clients."""

    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"
