"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.database import get_db
from src.exceptions import AuthenticationError, AuthFailure
from src.models.user import User
from src.services.auth import verify_token
from src.services.list_service import ListService
from src.services.realtime import Broadcaster, get_broadcaster
from src.services.sharing_service import SharingService

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user from JWT token."""
    identity = verify_token(credentials.credentials if credentials else None)

    user = db.query(User).filter(User.id == identity.user_id).first()
    if user is None:
        raise AuthenticationError(AuthFailure.INVALID_TOKEN, "User not found")

    return user


def get_list_service(
    db: Annotated[Session, Depends(get_db)],
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
) -> ListService:
    """Get list service with dependencies."""
    return ListService(db, broadcaster)


def get_sharing_service(
    db: Annotated[Session, Depends(get_db)],
    broadcaster: Annotated[Broadcaster, Depends(get_broadcaster)],
) -> SharingService:
    """Get sharing service with dependencies."""
    return SharingService(db, broadcaster)
