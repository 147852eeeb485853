from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from cms.models.enums import NoticeState, Priority, Role


class NoticeCreate(BaseModel):
    title: str = Field(max_length=200)
    description: str
    target_roles: List[Role]
    publish_start_at: datetime
    publish_end_at: Optional[datetime] = None
    priority: Priority = Priority.MEDIUM
    is_pinned: bool = False

    @field_validator("title", "description")
    @classmethod
    def validate_non_empty(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned

    @field_validator("target_roles")
    @classmethod
    def validate_target_roles(cls, value: List[Role]):
        if not value:
            raise ValueError("Select at least one target role")
        return value


class NoticeUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    target_roles: Optional[List[Role]] = None
    publish_start_at: Optional[datetime] = None
    publish_end_at: Optional[datetime] = None
    priority: Optional[Priority] = None
    is_pinned: Optional[bool] = None
    state: Optional[NoticeState] = None

    @field_validator("title", "description")
    @classmethod
    def validate_optional_non_empty(cls, value: Optional[str]):
        if value is None:
            return value
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned

    @field_validator("target_roles")
    @classmethod
    def validate_target_roles(cls, value: Optional[List[Role]]):
        if value is not None and not value:
            raise ValueError("Select at least one target role")
        return value


class NoticeResponse(BaseModel):
    id: str
    title: str
    description: str
    author_id: str
    target_roles: List[Role]
    publish_start_at: datetime
    publish_end_at: Optional[datetime] = None
    state: NoticeState
    priority: Priority
    is_pinned: bool
    view_count: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class NoticeCountResponse(BaseModel):
    count: int


class ExpireSweepResponse(BaseModel):
    expired: int
