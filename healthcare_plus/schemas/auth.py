from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional

from ..core.security import UserRole


class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=30)
    password: str = Field(..., min_length=6)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ChangePassword(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ChangeEmail(BaseModel):
    new_email: EmailStr
    password: str = Field(..., min_length=1)


class DeleteAccount(BaseModel):
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=1, max_length=30)


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class EmailChangeResponse(BaseModel):
    message: str
    old_email: str
    new_email: str


class LoginHistory(BaseModel):
    last_login: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    password_changed_at: Optional[str] = None
    email_changed_at: Optional[str] = None
