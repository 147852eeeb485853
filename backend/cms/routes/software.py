from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cms.core.access import AUTHENTICATED, SOFTWARE_MANAGERS
from cms.core.dependencies import get_software_service, get_user_service, require
from cms.core.security import Identity
from cms.models.enums import CostCycle
from cms.schemas.software import (
    CostReport,
    LicenseUsageUpdate,
    SoftwareCreate,
    SoftwareResponse,
    SoftwareUpdate,
)
from cms.services.software_service import SoftwareService
from cms.services.user_service import UserService

router = APIRouter(prefix="/software", tags=["Software"])


# ─── LIST ──────────────────────────────────────────────────────────────────────
@router.get("/", response_model=List[SoftwareResponse])
def list_software(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    manager_id: Optional[str] = Query(default=None),
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    return service.find_active(limit=limit, offset=offset, manager_id=manager_id)


@router.get("/department/{department_id}", response_model=List[SoftwareResponse])
def list_department_software(
    department_id: str,
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    return service.find_by_department(department_id)


# ─── REPORTS ───────────────────────────────────────────────────────────────────
@router.get("/reports/low-availability", response_model=List[SoftwareResponse])
def low_availability_report(
    threshold: float = Query(default=90, ge=0, le=100),
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    return service.find_low_license_availability(threshold)


@router.get("/reports/expiring", response_model=List[SoftwareResponse])
def expiring_licenses_report(
    days_ahead: int = Query(default=30, ge=0, le=3650),
    today: Optional[date] = Query(default=None),
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    return service.find_expiring_licenses(days_ahead, today=today)


@router.get("/reports/costs", response_model=CostReport)
def cost_report(
    cost_cycle: Optional[CostCycle] = Query(default=None),
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    return service.calculate_total_costs(cost_cycle)


# ─── GET ONE ───────────────────────────────────────────────────────────────────
@router.get("/{software_id}", response_model=SoftwareResponse)
def get_software(
    software_id: str,
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    return service.find_by_id_or_fail(software_id)


# ─── CREATE ────────────────────────────────────────────────────────────────────
@router.post("/", response_model=SoftwareResponse, status_code=201)
def create_software(
    data: SoftwareCreate,
    service: SoftwareService = Depends(get_software_service),
    users: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    users.ensure_user(data.manager_id)
    return service.create(**data.model_dump())


# ─── UPDATE ────────────────────────────────────────────────────────────────────
@router.put("/{software_id}", response_model=SoftwareResponse)
def update_software(
    software_id: str,
    data: SoftwareUpdate,
    service: SoftwareService = Depends(get_software_service),
    users: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    nullable = {"description", "version", "vendor", "license_cost", "cost_cycle", "license_expiry_date"}
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field in nullable
    }
    if changes.get("manager_id"):
        users.ensure_user(changes["manager_id"])
    return service.update(software_id, **changes)


@router.patch("/{software_id}/usage", response_model=SoftwareResponse)
def update_license_usage(
    software_id: str,
    data: LicenseUsageUpdate,
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    return service.update_license_usage(software_id, data.used_licenses)


@router.post("/{software_id}/deactivate", response_model=SoftwareResponse)
def deactivate_software(
    software_id: str,
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    return service.deactivate(software_id)


# ─── DELETE ────────────────────────────────────────────────────────────────────
@router.delete("/{software_id}", status_code=204)
def delete_software(
    software_id: str,
    service: SoftwareService = Depends(get_software_service),
    identity: Identity = Depends(require(SOFTWARE_MANAGERS)),
):
    service.delete(software_id)
