"""Who may read, edit and administer a list."""

from sqlalchemy.orm import Session

from src.exceptions import AuthorizationError, NotFoundError
from src.models.enums import AccessLevel, ShareStatus
from src.models.list import List, ListShare


def load_list(db: Session, list_id: int) -> List:
    """Fetch a list or raise NotFoundError."""
    list_obj = db.query(List).filter(List.id == list_id).first()
    if list_obj is None:
        raise NotFoundError("List not found")
    return list_obj


def access_level(list_obj: List, user_id: int) -> AccessLevel | None:
    """Effective access of a user: owner, or the role of an accepted share."""
    if list_obj.owner_id == user_id:
        return AccessLevel.OWNER
    share = list_obj.share_for(user_id)
    if share is None or share.status != ShareStatus.ACCEPTED:
        return None
    return AccessLevel.EDITOR if share.role.can_edit() else AccessLevel.VIEWER


def require_reader(db: Session, list_id: int, user_id: int) -> List:
    """Owner or any accepted member."""
    list_obj = load_list(db, list_id)
    if access_level(list_obj, user_id) is None:
        raise AuthorizationError("No access to this list")
    return list_obj


def require_editor(db: Session, list_id: int, user_id: int) -> List:
    """Owner or an accepted editor."""
    list_obj = load_list(db, list_id)
    level = access_level(list_obj, user_id)
    if level is None:
        raise AuthorizationError("No access to this list")
    if level == AccessLevel.VIEWER:
        raise AuthorizationError("You don't have permission to edit this list")
    return list_obj


def require_owner(db: Session, list_id: int, user_id: int, action: str = "manage") -> List:
    list_obj = load_list(db, list_id)
    if list_obj.owner_id != user_id:
        raise AuthorizationError(f"Only the owner can {action} this list")
    return list_obj


def can_join_list(db: Session, list_id: int, user_id: int) -> bool:
    """Re-check persisted access at room-join time."""
    owned = (
        db.query(List.id).filter(List.id == list_id, List.owner_id == user_id).first()
    )
    if owned is not None:
        return True
    accepted = (
        db.query(ListShare.id)
        .filter(
            ListShare.list_id == list_id,
            ListShare.user_id == user_id,
            ListShare.status == ShareStatus.ACCEPTED,
        )
        .first()
    )
    return accepted is not None
