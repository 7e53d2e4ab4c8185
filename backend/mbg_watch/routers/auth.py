"""
MBG Watch - Authentication Router
Handles user registration, login and session verification.
"""
from uuid import uuid4
from typing import Optional
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.orm import Session

from ..auth import create_access_token, get_current_user, hash_password, verify_password
from ..database import get_db
from ..errors import AuthenticationError, ValidationError
from ..models.db_models import UserDB, UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    username: str
    password: str
    name: Optional[str] = None
    phone: Optional[str] = None

    @field_validator('password')
    @classmethod
    def validate_password_strength(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        v = v.strip()
        if len(v) < 3:
            raise ValueError('Username must be at least 3 characters')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new reporter account."""
    if db.query(UserDB).filter(UserDB.email == request.email).first():
        raise ValidationError("Email already registered", field="email")

    if db.query(UserDB).filter(UserDB.username == request.username).first():
        raise ValidationError("Username already taken", field="username")

    user = UserDB(
        id=str(uuid4()),
        email=request.email,
        username=request.username,
        password_hash=hash_password(request.password),
        name=request.name,
        phone=request.phone,
        role=UserRole.USER.value,
    )
    db.add(user)
    db.commit()

    logger.info(f"User registered: {request.email}")
    return {"data": {"id": user.id, "email": user.email, "username": user.username}}


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(UserDB).filter(UserDB.email == request.email).first()
    if user is None or not verify_password(request.password, user.password_hash):
        raise AuthenticationError("Incorrect email or password")

    token = create_access_token(user.id, user.email, user.role)
    return {"data": {"accessToken": token, "tokenType": "bearer", "role": user.role}}


@router.get("/me")
def get_me(current_user: UserDB = Depends(get_current_user)):
    return {
        "data": {
            "id": current_user.id,
            "email": current_user.email,
            "username": current_user.username,
            "name": current_user.name,
            "role": current_user.role,
        }
    }
