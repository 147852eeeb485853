from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cms.core.access import AccessGate, RouteAccess
from cms.core.security import Identity
from cms.database.session import get_db
from cms.services.metadata_client import MetadataClient
from cms.services.notice_service import NoticeService
from cms.services.software_service import SoftwareService
from cms.services.user_service import UserService


def get_access_gate(request: Request) -> AccessGate:
    return request.app.state.access_gate


def require(access: RouteAccess):
    """Build the dependency that runs the access gate for one route."""

    def check_access(
        request: Request,
        gate: AccessGate = Depends(get_access_gate),
    ) -> Optional[Identity]:
        identity = gate.authorize(access, request.headers.get("Authorization"))
        request.state.identity = identity
        return identity

    return check_access


def get_notice_service(db: Session = Depends(get_db)) -> NoticeService:
    return NoticeService(db)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def get_software_service(db: Session = Depends(get_db)) -> SoftwareService:
    return SoftwareService(db)


def get_metadata_client(request: Request) -> MetadataClient:
    return request.app.state.metadata_client
