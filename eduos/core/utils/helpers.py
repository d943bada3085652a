import hashlib
import math
import uuid
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, List, Iterable
from fastapi import Depends, Query
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from sqlalchemy.orm import Session
from eduos.config import settings
from eduos.database import get_db
from eduos.models import User, UserRole
from eduos.core.utils.exceptions import Unauthenticated, Forbidden


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

PASSWORD_RESET_PURPOSE = "password-reset"


def current_time() -> datetime:
    """Local wall-clock time. Used as a dependency so the clock can be replaced."""
    return datetime.now()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_email(email: Optional[str]) -> Optional[str]:
    if email is None:
        return None
    return email.strip().lower()


class AuthenticationFun:
    @staticmethod
    def hash_password(password: str) -> str:
        """SHA-256 pre-hash → bcrypt hash"""
        prehashed = hashlib.sha256(password.encode("utf-8")).digest()
        salt = bcrypt.gensalt(rounds=12)
        hashed = bcrypt.hashpw(prehashed, salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """Verify password using SHA-256 + bcrypt"""
        if not hashed_password:
            return False
        try:
            prehashed = hashlib.sha256(plain_password.encode("utf-8")).digest()
            return bcrypt.checkpw(prehashed, hashed_password.encode("utf-8"))
        except ValueError:
            return False

    @staticmethod
    def _encode(data: dict, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({
            "exp": now + expires_delta,
            "jti": str(uuid.uuid4()),
            "iat": now
        })
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Session token bound to (user id, role)"""
        role = user.role.value if isinstance(user.role, UserRole) else user.role
        return AuthenticationFun._encode(
            {"user_id": user.id, "role": role},
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @staticmethod
    def create_reset_token(user: User) -> str:
        """Single-purpose password reset token"""
        return AuthenticationFun._encode(
            {"user_id": user.id, "type": PASSWORD_RESET_PURPOSE},
            timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        )

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        """Verify JWT token"""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise Unauthenticated("Token has expired")
        except JWTError:
            raise Unauthenticated("Invalid token")

    @staticmethod
    def authenticate(db: Session, token: Optional[str]) -> User:
        """Resolve a bearer token to an active identity"""
        if not token:
            raise Unauthenticated("No token, authorization denied")
        payload = AuthenticationFun.verify_token(token)
        user_id = payload.get("user_id")
        # reset tokens carry a purpose tag and never open a session
        if not user_id or payload.get("type") is not None:
            raise Unauthenticated("Invalid authentication credentials")

        user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
        if not user:
            raise Unauthenticated("User not found or inactive")
        return user

    @staticmethod
    def authorize(user: User, allowed_roles: Iterable[UserRole]) -> User:
        allowed = {UserRole(role) for role in allowed_roles}
        if UserRole(user.role) not in allowed:
            raise Forbidden(
                f"Access denied. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return user


password_hasher = AuthenticationFun()


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    return password_hasher.authenticate(db, token)


def require_roles(*roles: UserRole):
    """Dependency factory: authenticate, then authorize against ``roles``."""
    def dependency(user: User = Depends(get_current_user)) -> User:
        return password_hasher.authorize(user, roles)
    return dependency


class PaginationParams:
    """Dependency for pagination parameters"""
    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number"),
        per_page: int = Query(50, ge=1, le=200, description="Items per page"),
    ):
        self.page = page
        self.per_page = per_page
        self.offset = (page - 1) * per_page


def serialize_user(user: User) -> Dict[str, Any]:
    """Public view of an identity; never includes the password hash or face data."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": UserRole(user.role).value,
        "class_id": user.class_id,
        "student_id": user.student_id,
        "is_active": user.is_active,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def serialize_users(users: List[User]) -> List[Dict[str, Any]]:
    return [serialize_user(u) for u in users]
