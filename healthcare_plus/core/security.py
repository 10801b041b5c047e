from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi.security import HTTPBearer
from pydantic import BaseModel
import re
from enum import Enum

from .config import settings
from .exceptions import WeakPassword

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

# JWT Security; missing credentials are allowed so public routes can see anonymous callers
security = HTTPBearer(auto_error=False)

class UserRole(str, Enum):
    ADMIN = "admin"
    PATIENT = "patient"

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class TokenPayload(BaseModel):
    sub: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    exp: Optional[int] = None

class Principal(BaseModel):
    """The identity an operation runs as: anonymous, or an authenticated user."""
    id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[UserRole] = None
    name: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def from_user(cls, user: dict) -> "Principal":
        return cls(
            id=user["id"],
            email=user.get("email"),
            role=UserRole(user.get("role", UserRole.PATIENT.value)),
            name=user.get("name"),
        )

    @property
    def is_authenticated(self) -> bool:
        return self.id is not None

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == UserRole.ADMIN

    def matches_email(self, email: Optional[str]) -> bool:
        if not self.email or not email:
            return False
        return self.email.lower() == email.lower()

# Password utilities
def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a plain password against its hash."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

PASSWORD_MIN_LENGTH = 6

def check_password_strength(password: str) -> None:
    """Raise WeakPassword unless the password meets the change-password policy."""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise WeakPassword(f"New password must be at least {PASSWORD_MIN_LENGTH} characters")

    checks = (
        re.search(r"[A-Z]", password),
        re.search(r"[a-z]", password),
        re.search(r"\d", password),
        re.search(r"[^a-zA-Z0-9]", password),
    )
    if not all(checks):
        raise WeakPassword()

# JWT utilities
def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """Create JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            days=settings.ACCESS_TOKEN_EXPIRE_DAYS
        )

    to_encode.update({"exp": expire})

    encoded_jwt = jwt.encode(
        to_encode,
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM
    )
    return encoded_jwt

def verify_token(token: str) -> Optional[TokenPayload]:
    """Verify and decode JWT token; None for expired, malformed or unsigned tokens."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )

        return TokenPayload(**payload)

    except (JWTError, ValueError):
        return None

def create_user_token(user_id: str, email: str, role: str) -> Token:
    """Create the signed token handed out at register/login."""
    token_data = {
        "sub": user_id,
        "email": email,
        "role": role
    }

    return Token(
        access_token=create_access_token(token_data),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    )
