from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cms.core.access import AUTHENTICATED, NOTICE_MANAGERS
from cms.core.dependencies import get_notice_service, get_user_service, require
from cms.core.exceptions import NotFound
from cms.core.security import Identity
from cms.models.enums import NoticeState, Priority
from cms.schemas.notice import (
    ExpireSweepResponse,
    NoticeCountResponse,
    NoticeCreate,
    NoticeResponse,
    NoticeUpdate,
)
from cms.services.notice_service import NoticeService, is_visible_to_any
from cms.services.user_service import UserService
from cms.utils.clock import utcnow

router = APIRouter(prefix="/notices", tags=["Notices"])


# -----------------------------
# Everyone: Active notices for my roles
# -----------------------------
@router.get("/", response_model=List[NoticeResponse])
def list_active_notices(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    priority: Optional[Priority] = Query(default=None),
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    return service.find_active_notices_for_roles(
        identity.roles,
        limit=limit,
        offset=offset,
        priority=priority,
    )


# -----------------------------
# Managers: All notices, any state
# -----------------------------
@router.get("/admin", response_model=List[NoticeResponse])
def list_all_notices(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    state: Optional[NoticeState] = Query(default=None),
    author_id: Optional[str] = Query(default=None),
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return service.find_all_for_admin(
        limit=limit,
        offset=offset,
        state=state,
        author_id=author_id,
    )


@router.get("/count", response_model=NoticeCountResponse)
def count_notices(
    state: Optional[NoticeState] = Query(default=None),
    author_id: Optional[str] = Query(default=None),
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return {"count": service.count(state=state, author_id=author_id)}


@router.post("/expire-sweep", response_model=ExpireSweepResponse)
def expire_sweep(
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return {"expired": service.process_expired_notices()}


# -----------------------------
# Everyone: Read one notice (records a view)
# -----------------------------
@router.get("/{notice_id}", response_model=NoticeResponse)
def get_notice(
    notice_id: str,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(AUTHENTICATED)),
):
    notice = service.find_by_id_or_fail(notice_id)

    privileged = identity.has_any_role(NOTICE_MANAGERS.roles)
    if not privileged and not is_visible_to_any(notice, identity.roles, utcnow()):
        # Same answer as a missing notice so hidden ones are not disclosed
        raise NotFound("Notice", notice_id)

    return service.increment_view_count(notice_id)


# -----------------------------
# Managers: Create / update / delete
# -----------------------------
@router.post("/", response_model=NoticeResponse, status_code=201)
def create_notice(
    data: NoticeCreate,
    service: NoticeService = Depends(get_notice_service),
    users: UserService = Depends(get_user_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    users.ensure_user(identity.id)
    return service.create(
        title=data.title,
        description=data.description,
        author_id=identity.id,
        target_roles=data.target_roles,
        publish_start_at=data.publish_start_at,
        publish_end_at=data.publish_end_at,
        priority=data.priority,
        is_pinned=data.is_pinned,
    )


@router.put("/{notice_id}", response_model=NoticeResponse)
def update_notice(
    notice_id: str,
    data: NoticeUpdate,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    changes = {
        field: value
        for field, value in data.model_dump(exclude_unset=True).items()
        if value is not None or field == "publish_end_at"
    }
    return service.update(notice_id, **changes)


@router.post("/{notice_id}/publish", response_model=NoticeResponse)
def publish_notice(
    notice_id: str,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return service.publish(notice_id)


@router.post("/{notice_id}/hide", response_model=NoticeResponse)
def hide_notice(
    notice_id: str,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return service.hide(notice_id)


@router.post("/{notice_id}/expire", response_model=NoticeResponse)
def expire_notice(
    notice_id: str,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    return service.expire(notice_id)


@router.delete("/{notice_id}", status_code=204)
def delete_notice(
    notice_id: str,
    service: NoticeService = Depends(get_notice_service),
    identity: Identity = Depends(require(NOTICE_MANAGERS)),
):
    service.delete(notice_id)
