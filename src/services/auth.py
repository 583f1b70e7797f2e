"""Authentication service for JWT and password handling."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from src.config import get_settings
from src.exceptions import AuthenticationError, AuthFailure
from src.models.user import User

settings = get_settings()

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    """Who is on the other end of a connection, as asserted by their token."""

    user_id: int
    email: str
    username: str | None = None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(
    user_id: int,
    email: str,
    username: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.jwt_expiration_minutes)
    )
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "username": username,
        "exp": expire,
    }
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt


def verify_token(token: str | None) -> Identity:
    """Check signature and expiry of a token and return the identity it carries.

    No database lookup is made. Raises AuthenticationError whose ``reason`` tells the
    caller whether to refresh (expired) or to log in again (missing or invalid).
    """
    if not token:
        raise AuthenticationError(AuthFailure.NO_TOKEN, "Authentication required")

    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        raise AuthenticationError(AuthFailure.EXPIRED_TOKEN, "Token has expired") from e
    except JWTError as e:
        raise AuthenticationError(AuthFailure.INVALID_TOKEN) from e

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError(AuthFailure.INVALID_TOKEN) from e

    return Identity(
        user_id=user_id,
        email=payload.get("email", ""),
        username=payload.get("username"),
    )


def authenticate_user(db: Session, email: str, password: str) -> User | None:
    """Authenticate a user by email and password."""
    user = get_user_by_email(db, email)
    if not user:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get a user by email (case-insensitive)."""
    return db.query(User).filter(User.email == email.lower().strip()).first()


def get_user_by_username(db: Session, username: str) -> User | None:
    """Get a user by username."""
    return db.query(User).filter(User.username == username.strip()).first()


def create_user(db: Session, email: str, username: str, password: str) -> User:
    """Create a new user."""
    hashed_password = get_password_hash(password)
    user = User(
        email=email.lower().strip(),
        username=username.strip(),
        password_hash=hashed_password,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
