"""List API endpoints.

Handlers that emit realtime events are ``async def`` so they run on the event loop that
owns the connection hub.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import get_current_user, get_list_service, get_sharing_service
from src.models.user import User
from src.schemas.list import (
    InvitationResponse,
    ListCreate,
    ListDetail,
    ListSummary,
    RemoveDuplicatesResponse,
)
from src.services.list_service import ListService
from src.services.sharing_service import SharingService

router = APIRouter(prefix="/api/v1/lists", tags=["lists"])


@router.get("", response_model=list[ListSummary])
async def get_lists(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Get all lists owned by or shared with (and accepted by) the current user."""
    return service.lists_for_user(current_user)


@router.post("", response_model=ListDetail, status_code=status.HTTP_201_CREATED)
async def create_list(
    list_data: ListCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Create a new list."""
    return service.create_list(list_data.name, current_user)


# Declared before /{list_id} so "invitations" is not taken for a list id
@router.get("/invitations", response_model=list[InvitationResponse])
async def get_invitations(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[SharingService, Depends(get_sharing_service)],
):
    """Get pending invitations addressed to the current user."""
    return service.invitations_for(current_user)


@router.get("/{list_id}", response_model=ListDetail)
async def get_list(
    list_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Get a specific list with its items and sharing entries."""
    return service.get_list(list_id, current_user)


@router.delete("/{list_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_list(
    list_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Delete a list with all its items (owner only)."""
    service.delete_list(list_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{list_id}/remove-duplicates", response_model=RemoveDuplicatesResponse)
async def remove_duplicates(
    list_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Merge items with the same name (ignoring case and surrounding spaces)."""
    removed_count, detail = service.remove_duplicates(list_id, current_user)
    message = (
        f"{removed_count} duplicate item(s) removed." if removed_count else "No duplicates found."
    )
    return RemoveDuplicatesResponse(removed_count=removed_count, message=message, list=detail)
