"""Client-side merge of realtime events into cached list state.

Push events are hints layered on an authoritative fetch: anything missed while
disconnected is only recovered by ``resync``, which must run on every (re)connect before
further events are trusted.
"""

import logging
from collections.abc import Callable

from src.exceptions import AuthorizationError, NotFoundError
from src.models.enums import AccessLevel, ShareRole, ShareStatus
from src.schemas.events import (
    InvitePending,
    InviteResponded,
    ItemAdded,
    ItemDeleted,
    ItemUpdated,
    ListAccessRemoved,
    ListCreated,
    ListDeleted,
    ListSharedWithYou,
    ListUpdate,
    RoleChanged,
    ServerEvent,
)
from src.schemas.list import InvitationResponse, ListDetail, ListSummary

logger = logging.getLogger(__name__)


def summarize(detail: ListDetail, user_id: int) -> ListSummary | None:
    """Index entry for a full list as seen by ``user_id``; None if they have no access."""
    if detail.owner.id == user_id:
        access = AccessLevel.OWNER
    else:
        entry = next((s for s in detail.shared_with if s.user.id == user_id), None)
        if entry is None or entry.status != ShareStatus.ACCEPTED:
            return None
        access = AccessLevel.EDITOR if entry.role == ShareRole.EDITOR else AccessLevel.VIEWER
    return ListSummary(
        id=detail.id,
        name=detail.name,
        owner=detail.owner,
        access=access,
        item_count=len(detail.items),
        unbought_count=sum(1 for item in detail.items if not item.is_bought),
        updated_at=detail.updated_at,
    )


class ListReconciler:
    """Local view of one user's lists, kept current by server events."""

    def __init__(
        self,
        user_id: int,
        fetch_lists: Callable[[], list[ListSummary]],
        fetch_list: Callable[[int], ListDetail],
        fetch_invitations: Callable[[], list[InvitationResponse]] | None = None,
    ) -> None:
        self.user_id = user_id
        self._fetch_lists = fetch_lists
        self._fetch_list = fetch_list
        self._fetch_invitations = fetch_invitations
        self.lists: dict[int, ListSummary] = {}
        self.current: ListDetail | None = None
        self.invitations: dict[int, ShareRole] = {}
        self.joined: set[int] = set()
        self.notices: list[str] = []

    def open_list(self, list_id: int) -> int:
        """Load a list authoritatively; returns the id whose room should be joined."""
        self.current = self._fetch_list(list_id)
        self.joined.add(list_id)
        return list_id

    def close_list(self) -> int | None:
        """Forget the open list; returns the id whose room should be left."""
        if self.current is None:
            return None
        list_id = self.current.id
        self.current = None
        self.joined.discard(list_id)
        return list_id

    def resync(self) -> list[int]:
        """Refetch the index and open list; returns the rooms to rejoin."""
        self.lists = {summary.id: summary for summary in self._fetch_lists()}
        if self._fetch_invitations is not None:
            self.invitations = {inv.list_id: inv.role for inv in self._fetch_invitations()}
        if self.current is not None:
            list_id = self.current.id
            try:
                self.current = self._fetch_list(list_id)
            except NotFoundError:
                self._drop(list_id, "This list was deleted")
            except AuthorizationError:
                self._drop(list_id, "Your access to this list was removed")
        return sorted(self.joined)

    def _is_open(self, list_id: int) -> bool:
        return self.current is not None and self.current.id == list_id

    def _drop(self, list_id: int, notice: str) -> None:
        self.lists.pop(list_id, None)
        if self._is_open(list_id):
            self.current = None
            self.joined.discard(list_id)
            self.notices.append(notice)

    def _index(self, detail: ListDetail) -> None:
        summary = summarize(detail, self.user_id)
        if summary is None:
            self.lists.pop(detail.id, None)
        else:
            self.lists[detail.id] = summary

    def _upsert_item(self, event: ItemAdded | ItemUpdated) -> None:
        items = self.current.items
        for index, existing in enumerate(items):
            if existing.id == event.item.id:
                items[index] = event.item
                return
        items.append(event.item)

    def apply(self, event: ServerEvent) -> bool:
        """Merge one event. Returns True if local state changed."""
        list_id = event.list_id

        if isinstance(event, (ItemAdded, ItemUpdated)):
            if not self._is_open(list_id):
                return False
            self._upsert_item(event)
            return True

        if isinstance(event, ItemDeleted):
            if not self._is_open(list_id):
                return False
            before = len(self.current.items)
            self.current.items = [i for i in self.current.items if i.id != event.item_id]
            return len(self.current.items) != before

        if isinstance(event, ListDeleted):
            self._drop(list_id, "This list was deleted")
            return True

        if isinstance(event, ListAccessRemoved):
            self._drop(list_id, "Your access to this list was removed")
            return True

        if isinstance(event, (ListUpdate, ListCreated, ListSharedWithYou, RoleChanged)):
            self._index(event.list)
            if self._is_open(list_id):
                self.current = event.list
            return True

        if isinstance(event, InvitePending):
            self.invitations[list_id] = event.role
            return True

        if isinstance(event, InviteResponded):
            if event.user_id == self.user_id:
                self.invitations.pop(list_id, None)
            self._index(event.list)
            return True

        logger.warning(f"Unhandled event type: {event.type}")
        return False
