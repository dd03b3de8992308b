from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AdminInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    admin: AdminInfo
    issued_at: datetime


class CurrentAdmin(BaseModel):
    """Lightweight representation of the authenticated admin."""

    id: UUID
    email: str
