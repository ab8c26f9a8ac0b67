"""Pydantic schemas for authentication endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None = None


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


class TokenClaimsResponse(BaseModel):
    valid: bool = True
    user_id: str
    email: str
    issued_at: datetime | None = None
    expires_at: datetime


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str


class UpdateProfileRequest(BaseModel):
    name: str | None = None
    email: EmailStr | None = None


class MessageResponse(BaseModel):
    message: str


class UserListResponse(BaseModel):
    items: list[UserResponse]
    page: int
    limit: int
    total: int
    total_pages: int


class ResetStatsResponse(BaseModel):
    total: int
    expired: int
    active: int


class CleanupResponse(BaseModel):
    removed: int
