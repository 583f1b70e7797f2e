"""Item API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from src.api.dependencies import get_current_user, get_list_service
from src.models.user import User
from src.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from src.services.list_service import ListService

router = APIRouter(prefix="/api/v1/lists/{list_id}/items", tags=["items"])


@router.post("", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def add_item(
    list_id: int,
    item_data: ItemCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Add an item to a list (owner or editor)."""
    return service.add_item(list_id, current_user, item_data)


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    list_id: int,
    item_id: int,
    item_data: ItemUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Update an item."""
    return service.update_item(list_id, item_id, current_user, item_data)


@router.patch("/{item_id}/toggle-bought", response_model=ItemResponse)
async def toggle_bought(
    list_id: int,
    item_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Flip the bought flag of an item."""
    return service.toggle_bought(list_id, item_id, current_user)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    list_id: int,
    item_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[ListService, Depends(get_list_service)],
):
    """Delete an item."""
    service.remove_item(list_id, item_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
