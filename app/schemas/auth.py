from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional
from app.models.user import UserRole
from datetime import datetime

class UserBase(BaseModel):
    name: str
    email: EmailStr

class RegisterRequest(UserBase):
    name: str = Field(min_length=1)
    password: str = Field(min_length=6)

class UserResponse(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class AuthPayload(BaseModel):
    """Body of login/register responses; the refresh token travels in a cookie."""
    user: UserResponse
    access_token: str
    token_type: str = "bearer"

class TokenData(BaseModel):
    user_id: Optional[int] = None
    role: Optional[str] = None
