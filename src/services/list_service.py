"""List and item mutations.

Every mutation follows the same order: check access against freshly read state, persist,
and only after a successful commit emit the resulting full entity. A failed mutation
never produces an event.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from src.database import commit_or_raise
from src.exceptions import NotFoundError, ValidationError
from src.models.enums import ShareStatus
from src.models.item import Item
from src.models.list import List, ListShare
from src.models.user import User
from src.schemas.auth import UserResponse
from src.schemas.events import (
    ItemAdded,
    ItemDeleted,
    ItemUpdated,
    ListCreated,
    ListDeleted,
    ListUpdate,
)
from src.schemas.item import ItemCreate, ItemResponse, ItemUpdate
from src.schemas.list import ListDetail, ListSummary
from src.services.access import access_level, require_editor, require_owner, require_reader
from src.services.realtime import Broadcaster, list_room, user_room

logger = logging.getLogger(__name__)


def normalize_name(name: str) -> str:
    """Key used to detect duplicate items."""
    return name.strip().casefold()


def _clean_name(name: str, what: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError(f"{what} name required")
    return cleaned


def touch(list_obj: List) -> None:
    """Mark the list row as changed so its version counter advances."""
    list_obj.updated_at = datetime.now(UTC)


class ListService:
    """Service for list and item operations."""

    def __init__(self, db: Session, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def detail(self, list_obj: List) -> ListDetail:
        return ListDetail.model_validate(list_obj)

    # Reads

    def lists_for_user(self, user: User) -> list[ListSummary]:
        """Lists the user owns or has accepted, most recently changed first."""
        owned = self.db.query(List).filter(List.owner_id == user.id).all()
        shared = (
            self.db.query(List)
            .join(ListShare, ListShare.list_id == List.id)
            .filter(ListShare.user_id == user.id, ListShare.status == ShareStatus.ACCEPTED)
            .all()
        )
        all_lists = list({lst.id: lst for lst in owned + shared}.values())

        list_ids = [lst.id for lst in all_lists]
        counts: dict[int, tuple[int, int]] = {}
        if list_ids:
            rows = (
                self.db.query(
                    Item.list_id,
                    func.count(Item.id),
                    func.sum(case((Item.is_bought.is_(False), 1), else_=0)),
                )
                .filter(Item.list_id.in_(list_ids))
                .group_by(Item.list_id)
                .all()
            )
            counts = {list_id: (total, int(unbought or 0)) for list_id, total, unbought in rows}

        result = []
        for lst in sorted(all_lists, key=lambda x: x.updated_at, reverse=True):
            total, unbought = counts.get(lst.id, (0, 0))
            result.append(
                ListSummary(
                    id=lst.id,
                    name=lst.name,
                    owner=UserResponse.model_validate(lst.owner),
                    access=access_level(lst, user.id),
                    item_count=total,
                    unbought_count=unbought,
                    updated_at=lst.updated_at,
                )
            )
        return result

    def get_list(self, list_id: int, user: User) -> ListDetail:
        return self.detail(require_reader(self.db, list_id, user.id))

    # List lifecycle

    def create_list(self, name: str, owner: User) -> ListDetail:
        """Create an empty list. Only the owner's private room hears about it."""
        new_list = List(name=_clean_name(name, "List"), owner_id=owner.id)
        self.db.add(new_list)
        commit_or_raise(self.db)
        self.db.refresh(new_list)

        detail = self.detail(new_list)
        logger.info(f"List created: list={new_list.id}, owner={owner.id}")
        self.broadcaster.emit(user_room(owner.id), ListCreated(list_id=new_list.id, list=detail))
        return detail

    def delete_list(self, list_id: int, user: User) -> None:
        """Delete a list with its items and shares (owner only)."""
        list_obj = require_owner(self.db, list_id, user.id, action="delete")
        member_ids = [share.user_id for share in list_obj.shares]

        self.db.delete(list_obj)
        commit_or_raise(self.db)
        logger.info(f"List deleted: list={list_id}, owner={user.id}")

        event = ListDeleted(list_id=list_id)
        self.broadcaster.emit(list_room(list_id), event)
        self.broadcaster.emit(user_room(user.id), event)
        for member_id in member_ids:
            self.broadcaster.emit(user_room(member_id), event)
        self.broadcaster.close_room(list_room(list_id))

    # Items

    def _load_item(self, list_id: int, item_id: int) -> Item:
        item = self.db.query(Item).filter(Item.id == item_id, Item.list_id == list_id).first()
        if item is None:
            raise NotFoundError("Item not found")
        return item

    def _emit_item(self, event: ItemAdded | ItemUpdated, item: Item) -> None:
        self.broadcaster.emit(list_room(item.list_id), event)

    def add_item(self, list_id: int, user: User, data: ItemCreate) -> Item:
        require_editor(self.db, list_id, user.id)

        last_position = (
            self.db.query(func.max(Item.sort_order)).filter(Item.list_id == list_id).scalar()
        )
        item = Item(
            list_id=list_id,
            name=_clean_name(data.name, "Item"),
            quantity=data.quantity,
            unit=data.unit.strip(),
            category=data.category.strip() or "Uncategorized",
            is_bought=False,
            sort_order=(last_position or 0) + 1,
            created_by=user.id,
        )
        self.db.add(item)
        commit_or_raise(self.db)
        self.db.refresh(item)

        self._emit_item(ItemAdded(list_id=list_id, item=ItemResponse.model_validate(item)), item)
        return item

    def _set_bought(self, item: Item, is_bought: bool, user: User) -> None:
        item.is_bought = is_bought
        if is_bought:
            if user not in item.bought_by:
                item.bought_by.append(user)
        else:
            item.bought_by.clear()

    def update_item(self, list_id: int, item_id: int, user: User, data: ItemUpdate) -> Item:
        """Apply a partial update. Returns the item untouched when nothing changes."""
        require_editor(self.db, list_id, user.id)
        item = self._load_item(list_id, item_id)

        updated = False
        if data.name is not None:
            name = _clean_name(data.name, "Item")
            if name != item.name:
                item.name = name
                updated = True
        if data.quantity is not None and data.quantity != item.quantity:
            item.quantity = data.quantity
            updated = True
        if data.unit is not None and data.unit != item.unit:
            item.unit = data.unit
            updated = True
        if data.category is not None and data.category != item.category:
            item.category = data.category
            updated = True
        if data.is_bought is not None and data.is_bought != item.is_bought:
            self._set_bought(item, data.is_bought, user)
            updated = True

        if not updated:
            return item

        commit_or_raise(self.db)
        self.db.refresh(item)
        self._emit_item(ItemUpdated(list_id=list_id, item=ItemResponse.model_validate(item)), item)
        return item

    def toggle_bought(self, list_id: int, item_id: int, user: User) -> Item:
        require_editor(self.db, list_id, user.id)
        item = self._load_item(list_id, item_id)

        self._set_bought(item, not item.is_bought, user)
        commit_or_raise(self.db)
        self.db.refresh(item)

        self._emit_item(ItemUpdated(list_id=list_id, item=ItemResponse.model_validate(item)), item)
        return item

    def remove_item(self, list_id: int, item_id: int, user: User) -> None:
        require_editor(self.db, list_id, user.id)
        item = self._load_item(list_id, item_id)

        self.db.delete(item)
        commit_or_raise(self.db)

        self.broadcaster.emit(list_room(list_id), ItemDeleted(list_id=list_id, item_id=item_id))

    def remove_duplicates(self, list_id: int, user: User) -> tuple[int, ListDetail]:
        """Fold items whose names match ignoring case and surrounding whitespace.

        The earliest item survives with its trimmed name; it is bought if any of the
        duplicates was, and its buyers are the union of theirs. Returns the number of
        removed items and the resulting list.
        """
        list_obj = require_editor(self.db, list_id, user.id)

        survivors: dict[str, Item] = {}
        duplicates: list[Item] = []
        for item in list_obj.items:
            key = normalize_name(item.name)
            survivor = survivors.get(key)
            if survivor is None:
                survivors[key] = item
                continue
            if item.is_bought:
                survivor.is_bought = True
            for buyer in item.bought_by:
                if buyer not in survivor.bought_by:
                    survivor.bought_by.append(buyer)
            duplicates.append(item)

        removed_count = len(duplicates)
        if removed_count == 0:
            return 0, self.detail(list_obj)

        for survivor in survivors.values():
            trimmed = survivor.name.strip()
            if trimmed != survivor.name:
                survivor.name = trimmed
        for duplicate in duplicates:
            list_obj.items.remove(duplicate)
        touch(list_obj)
        commit_or_raise(self.db)
        self.db.refresh(list_obj)

        detail = self.detail(list_obj)
        logger.info(f"Removed {removed_count} duplicate item(s) from list={list_id}")
        self.broadcaster.emit(list_room(list_id), ListUpdate(list_id=list_id, list=detail))
        return removed_count, detail
