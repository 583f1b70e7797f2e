"""Sharing and invitation workflow.

Per (list, user) the entry moves through::

    absent --share--> pending --respond--> accepted | declined
    any status --share--> pending (re-invite resets status, takes the new role)
    any status --change_role--> same status, new role
    any status --revoke--> absent

Only the owner shares, changes roles and revokes; only the invited user responds.
Each transition is committed first, then announced with a ``listUpdate`` to the list
room and a user-specific event to the affected user's private room, since a user who
has not accepted cannot be in the list room.
"""

import logging

from sqlalchemy.orm import Session

from src.database import commit_or_raise
from src.exceptions import AuthorizationError, ConflictError, NotFoundError
from src.models.enums import ShareRole, ShareStatus
from src.models.list import List, ListShare
from src.models.user import User
from src.schemas.auth import UserResponse
from src.schemas.events import (
    InvitePending,
    InviteResponded,
    ListAccessRemoved,
    ListSharedWithYou,
    ListUpdate,
    RoleChanged,
)
from src.schemas.list import InvitationResponse, ListDetail
from src.services.access import load_list, require_owner
from src.services.auth import get_user_by_email
from src.services.list_service import touch
from src.services.realtime import Broadcaster, list_room, user_room

logger = logging.getLogger(__name__)


class SharingService:
    """Service for the (list, user) sharing state machine."""

    def __init__(self, db: Session, broadcaster: Broadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def _commit(self, list_obj: List) -> ListDetail:
        touch(list_obj)
        commit_or_raise(self.db)
        self.db.refresh(list_obj)
        detail = ListDetail.model_validate(list_obj)
        self.broadcaster.emit(list_room(list_obj.id), ListUpdate(list_id=list_obj.id, list=detail))
        return detail

    def _entry(self, list_obj: List, user_id: int, missing: str) -> ListShare:
        share = list_obj.share_for(user_id)
        if share is None:
            raise NotFoundError(missing)
        return share

    def share(self, list_id: int, owner: User, email: str, role: ShareRole) -> ListDetail:
        """Invite a user by email; re-inviting resets the entry to pending."""
        list_obj = require_owner(self.db, list_id, owner.id, action="share")

        invitee = get_user_by_email(self.db, email)
        if invitee is None:
            raise NotFoundError("User with this email not found")
        if invitee.id == list_obj.owner_id:
            raise ConflictError("Cannot share list with yourself")

        share = list_obj.share_for(invitee.id)
        if share is None:
            share = ListShare(user_id=invitee.id, role=role, status=ShareStatus.PENDING)
            list_obj.shares.append(share)
        elif share.status == ShareStatus.PENDING and share.role == role:
            raise ConflictError("List already shared with this user")
        else:
            share.role = role
            share.status = ShareStatus.PENDING
        share.invited_by = owner.id

        detail = self._commit(list_obj)
        logger.info(f"Invitation pending: list={list_id}, user={invitee.id}, role={role.value}")
        self.broadcaster.emit(
            user_room(invitee.id),
            InvitePending(list_id=list_id, list=detail, role=role),
        )
        return detail

    def respond(self, list_id: int, user_id: int, actor: User, accept: bool) -> ListDetail:
        """Accept or decline an invitation. Only the invited user may do this."""
        list_obj = load_list(self.db, list_id)
        if actor.id != user_id:
            raise AuthorizationError("You can only respond to your own invitation")

        share = self._entry(list_obj, user_id, "Invitation not found")
        if share.status != ShareStatus.PENDING:
            raise ConflictError("Invitation is not pending")

        share.status = ShareStatus.ACCEPTED if accept else ShareStatus.DECLINED
        status = share.status
        detail = self._commit(list_obj)
        logger.info(f"Invitation {status.value}: list={list_id}, user={user_id}")

        event = InviteResponded(list_id=list_id, list=detail, user_id=user_id, status=status)
        self.broadcaster.emit(user_room(user_id), event)
        self.broadcaster.emit(user_room(list_obj.owner_id), event)
        if accept:
            self.broadcaster.emit(
                user_room(user_id), ListSharedWithYou(list_id=list_id, list=detail)
            )
        return detail

    def change_role(self, list_id: int, user_id: int, owner: User, role: ShareRole) -> ListDetail:
        """Switch a shared user between viewer and editor; status is kept."""
        list_obj = require_owner(self.db, list_id, owner.id, action="change roles on")
        share = self._entry(list_obj, user_id, "User not found in shared list")
        if share.role == role:
            return ListDetail.model_validate(list_obj)

        share.role = role
        detail = self._commit(list_obj)
        logger.info(f"Role changed: list={list_id}, user={user_id}, role={role.value}")
        self.broadcaster.emit(user_room(user_id), RoleChanged(list_id=list_id, list=detail, role=role))
        return detail

    def revoke(self, list_id: int, user_id: int, owner: User) -> ListDetail:
        """Delete a user's entry outright and take them out of the list room."""
        list_obj = require_owner(self.db, list_id, owner.id, action="remove access to")
        share = self._entry(list_obj, user_id, "User not found in shared list")

        list_obj.shares.remove(share)
        detail = self._commit(list_obj)
        logger.info(f"Access removed: list={list_id}, user={user_id}")

        self.broadcaster.emit(user_room(user_id), ListAccessRemoved(list_id=list_id))
        self.broadcaster.evict(list_room(list_id), user_id)
        return detail

    def invitations_for(self, user: User) -> list[InvitationResponse]:
        """Pending invitations addressed to a user (derived, not stored)."""
        shares = (
            self.db.query(ListShare)
            .join(List, ListShare.list_id == List.id)
            .filter(ListShare.user_id == user.id, ListShare.status == ShareStatus.PENDING)
            .order_by(ListShare.updated_at.desc(), ListShare.id.desc())
            .all()
        )
        return [
            InvitationResponse(
                list_id=share.list_id,
                list_name=share.list.name,
                owner=UserResponse.model_validate(share.list.owner),
                role=share.role,
                invited_at=share.updated_at,
            )
            for share in shares
        ]
