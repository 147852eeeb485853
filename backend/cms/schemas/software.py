from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from cms.models.enums import CostCycle


class SoftwareCreate(BaseModel):
    name: str = Field(max_length=100)
    description: Optional[str] = None
    version: Optional[str] = Field(default=None, max_length=50)
    vendor: Optional[str] = Field(default=None, max_length=100)
    manager_id: str
    license_cost: Optional[float] = Field(default=None, ge=0)
    cost_cycle: Optional[CostCycle] = None
    department_ids: List[str] = []
    total_licenses: int = Field(default=0, ge=0)
    license_expiry_date: Optional[date] = None

    @field_validator("name", "manager_id")
    @classmethod
    def validate_non_empty(cls, value: str):
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned


class SoftwareUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    version: Optional[str] = Field(default=None, max_length=50)
    vendor: Optional[str] = Field(default=None, max_length=100)
    manager_id: Optional[str] = None
    license_cost: Optional[float] = Field(default=None, ge=0)
    cost_cycle: Optional[CostCycle] = None
    department_ids: Optional[List[str]] = None
    total_licenses: Optional[int] = Field(default=None, ge=0)
    license_expiry_date: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator("name", "manager_id")
    @classmethod
    def validate_optional_non_empty(cls, value: Optional[str]):
        if value is None:
            return value
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("This field is required")
        return cleaned


class LicenseUsageUpdate(BaseModel):
    used_licenses: int


class SoftwareResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    vendor: Optional[str] = None
    manager_id: str
    license_cost: Optional[float] = None
    cost_cycle: Optional[CostCycle] = None
    department_ids: List[str]
    total_licenses: int
    used_licenses: int
    is_active: bool
    license_expiry_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }


class CostReport(BaseModel):
    total_cost: float
    monthly_estimate: float
    yearly_estimate: float
    software_count: int
