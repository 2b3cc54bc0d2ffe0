from typing import Optional

from pydantic import BaseModel, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Identity(BaseModel):
    """The authenticated caller, passed explicitly into services."""

    id: str
    username: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserPublic(BaseModel):
    id: str
    username: str
    email: str
    bio: str = ""
    avatar: str = ""
    role: str = "user"
    createdAt: Optional[str] = None


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    username: Optional[str] = Field(
        default=None, min_length=3, max_length=30, pattern=USERNAME_PATTERN
    )
    bio: Optional[str] = Field(default=None, max_length=500)
    avatar: Optional[str] = Field(default=None, max_length=2048)


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


class UserResponse(BaseModel):
    message: Optional[str] = None
    user: UserPublic
