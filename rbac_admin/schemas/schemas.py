"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Any, Literal
from datetime import datetime


# ---- Permission / Role ----
class PermissionOut(BaseModel):
    id: int
    name: str
    resource: str
    action: str
    description: Optional[str] = None

    class Config:
        from_attributes = True

class RoleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_system_role: bool = False
    permissions: List[PermissionOut] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    permission_ids: Optional[List[int]] = None

class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=255)
    permission_ids: Optional[List[int]] = None

class PermissionAssignRequest(BaseModel):
    permission_ids: List[int]


# ---- User ----
class UserOut(BaseModel):
    id: int
    email: str
    username: str
    first_name: str = ""
    last_name: str = ""
    is_active: bool = True
    role: Optional[RoleOut] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role_id: int

class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role_id: Optional[int] = None
    is_active: Optional[bool] = None

class ProfileUpdate(BaseModel):
    email: Optional[EmailStr] = None
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

class UserListResponse(BaseModel):
    users: List[UserOut]
    total: int
    page: int
    limit: int
    total_pages: int

class BulkActionRequest(BaseModel):
    user_ids: List[int] = Field(..., min_length=1)
    action: Literal["activate", "deactivate", "delete"]


# ---- Auth ----
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserOut

class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

class PasswordChangeRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

class UserPasswordUpdate(BaseModel):
    current_password: Optional[str] = None  # required when changing your own
    new_password: str = Field(..., min_length=8)


# ---- Activity ----
class ActivityLogOut(BaseModel):
    id: int
    user_id: int
    action: str
    resource: str
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ActivityLogListResponse(BaseModel):
    activities: List[ActivityLogOut]
    total: int
    page: int
    limit: int
    total_pages: int


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None


# ---- Dashboard ----
class DashboardStats(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    new_users_today: int
    new_users_this_week: int
    total_roles: int

class RoleDistributionOut(BaseModel):
    role_name: str
    user_count: int

class SystemHealthOut(BaseModel):
    database_status: str
    total_activity: int
    active_sessions: int
