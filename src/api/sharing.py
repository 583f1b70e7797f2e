"""Sharing and invitation API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_current_user, get_sharing_service
from src.models.user import User
from src.schemas.list import ListDetail, RoleUpdate, ShareCreate
from src.services.sharing_service import SharingService

router = APIRouter(prefix="/api/v1/lists/{list_id}", tags=["sharing"])


@router.post("/share", response_model=ListDetail)
async def share_list(
    list_id: int,
    share_data: ShareCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Invite a user to the list (owner only)."""
    return service.share(list_id, current_user, share_data.email, share_data.role)


@router.put("/invite/{user_id}/accept", response_model=ListDetail)
async def accept_invite(
    list_id: int,
    user_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Accept an invitation (invited user only)."""
    return service.respond(list_id, user_id, current_user, accept=True)


@router.put("/invite/{user_id}/decline", response_model=ListDetail)
async def decline_invite(
    list_id: int,
    user_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Decline an invitation (invited user only)."""
    return service.respond(list_id, user_id, current_user, accept=False)


@router.patch("/role/{user_id}", response_model=ListDetail)
async def change_role(
    list_id: int,
    user_id: int,
    role_data: RoleUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Change a shared user's role (owner only)."""
    return service.change_role(list_id, user_id, current_user, role_data.role)


@router.delete("/share/{user_id}", response_model=ListDetail)
async def remove_access(
    list_id: int,
    user_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Remove a user's access to the list (owner only)."""
    return service.revoke(list_id, user_id, current_user)
