"""
MBG Watch - Authentication Utilities
Password hashing, JWT tokens, and auth dependencies
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from .errors import AuthenticationError, AuthorizationError
from .models.db_models import UserDB, UserRole
from .models.scoring import Actor

# Configuration
SECRET_KEY = os.getenv("JWT_SECRET_KEY", "mbg-watch-secret-key-change-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))

# Bearer token security; missing credentials are reported as AuthenticationError
security = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode('utf-8'), hashed_password.encode('utf-8'))


def create_access_token(user_id: str, email: str, role: str = UserRole.USER.value) -> str:
    """Create a JWT access token with role claim."""
    expire = datetime.now(timezone.utc) + timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)
    to_encode = {
        "sub": user_id,
        "email": email,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token (signature and expiry)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UserDB:
    """
    Dependency to get the current authenticated user.
    Validates JWT token and fetches user from database.
    """
    if credentials is None:
        raise AuthenticationError()

    payload = decode_token(credentials.credentials)
    if payload is None or payload.get("sub") is None:
        raise AuthenticationError("Could not validate credentials")

    user = db.query(UserDB).filter(UserDB.id == payload["sub"]).first()
    if user is None:
        raise AuthenticationError("Could not validate credentials")

    return user


def require_admin(current_user: UserDB = Depends(get_current_user)) -> UserDB:
    """Dependency to require admin role."""
    if current_user.role != UserRole.ADMIN.value:
        raise AuthorizationError("Admin access required")
    return current_user


def get_actor(current_user: UserDB = Depends(get_current_user)) -> Actor:
    """Explicit caller context handed to review operations."""
    return Actor(user_id=current_user.id, role=current_user.role)


def get_admin_actor(current_user: UserDB = Depends(require_admin)) -> Actor:
    return Actor(user_id=current_user.id, role=current_user.role)
