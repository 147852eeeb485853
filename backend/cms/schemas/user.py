from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from cms.models.enums import Role


class IdentityOut(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    department_id: Optional[str] = None
    roles: List[Role]


class UserCreate(BaseModel):
    id: str
    role: Role = Role.USER
    active_tabs: List[str] = []

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        if len(cleaned) > 50:
            raise ValueError("User id must be at most 50 characters")
        return cleaned


class UserUpdate(BaseModel):
    role: Optional[Role] = None
    active_tabs: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ActiveTabsUpdate(BaseModel):
    active_tabs: List[str]


class UserOut(BaseModel):
    id: str
    role: Role
    active_tabs: Optional[List[str]] = None
    last_login_at: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserSyncResult(BaseModel):
    created: int
    reactivated: int
    deactivated: int


class RemovedCount(BaseModel):
    removed: int
