from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cms.core.access import ADMIN_ONLY, AUTHENTICATED
from cms.core.dependencies import get_metadata_client, get_user_service, require
from cms.core.security import Identity
from cms.models.enums import Role, sort_roles
from cms.schemas.user import (
    ActiveTabsUpdate,
    IdentityOut,
    RemovedCount,
    UserCreate,
    UserOut,
    UserSyncResult,
    UserUpdate,
)
from cms.services.metadata_client import MetadataClient
from cms.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=IdentityOut)
def get_me(identity: Identity = Depends(require(AUTHENTICATED))):
    return {
        "id": identity.id,
        "email": identity.email,
        "name": identity.name,
        "department_id": identity.department_id,
        "roles": sort_roles(identity.roles),
    }


@router.put("/me/tabs", response_model=UserOut)
def update_my_tabs(
    data: ActiveTabsUpdate,
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    service.ensure_user(identity.id)
    return service.update_active_tabs(identity.id, data.active_tabs)


@router.post("/me/login", response_model=UserOut)
def record_login(
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    service.ensure_user(identity.id)
    return service.update_last_login_at(identity.id)


# ---------------- ADMIN ----------------

@router.get("/", response_model=List[UserOut])
def list_users(
    role: Optional[Role] = Query(default=None),
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    if role:
        return service.find_users_by_role(role)
    return service.find_active_users()


@router.post("/", response_model=UserOut, status_code=201)
def create_user(
    data: UserCreate,
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    if service.exists(data.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )
    return service.create(data.id, role=data.role, active_tabs=data.active_tabs)


@router.post("/sync", response_model=UserSyncResult)
def sync_users(
    service: UserService = Depends(get_user_service),
    metadata: MetadataClient = Depends(get_metadata_client),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    return service.sync_from_metadata(metadata.list_employees())


@router.delete("/inactive", response_model=RemovedCount)
def remove_inactive_users(
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    return {"removed": service.remove_inactive_users()}


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    return service.find_by_id_or_fail(user_id)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    data: UserUpdate,
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    return service.update(user_id, **changes)


@router.post("/{user_id}/deactivate", response_model=UserOut)
def deactivate_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(ADMIN_ONLY)),
):
    return service.deactivate(user_id)
