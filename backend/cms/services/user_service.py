import logging
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cms.core.exceptions import NotFound
from cms.models.enums import Role
from cms.models.notice import Notice
from cms.models.software import Software
from cms.models.user import User
from cms.services.metadata_client import EmployeeMetadata
from cms.utils.clock import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"role", "active_tabs", "is_active", "last_login_at"})


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def find_by_id_or_fail(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if not user:
            raise NotFound("User", user_id)
        return user

    def find_active_users(self) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.is_active == True)  # noqa: E712
            .order_by(User.created_at.desc())
            .all()
        )

    def find_users_by_role(self, role: Role) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.role == role, User.is_active == True)  # noqa: E712
            .order_by(User.created_at.desc())
            .all()
        )

    def create(
        self,
        user_id: str,
        role: Optional[Role] = None,
        active_tabs: Optional[list[str]] = None,
    ) -> User:
        user = User(
            id=user_id,
            role=role or Role.USER,
            active_tabs=list(active_tabs or []),
            is_active=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def ensure_user(self, user_id: str) -> User:
        """Return the local record for an employee, registering it on first use."""
        return self.find_by_id(user_id) or self.create(user_id)

    def update(self, user_id: str, **changes) -> User:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

        user = self.find_by_id_or_fail(user_id)
        for field, value in changes.items():
            setattr(user, field, value)

        self.db.commit()
        self.db.refresh(user)
        return user

    def update_active_tabs(self, user_id: str, active_tabs: list[str]) -> User:
        return self.update(user_id, active_tabs=list(active_tabs))

    def update_last_login_at(self, user_id: str) -> User:
        return self.update(user_id, last_login_at=utcnow())

    def deactivate(self, user_id: str) -> User:
        return self.update(user_id, is_active=False)

    def remove_inactive_users(self) -> int:
        """Delete inactive users that no notice or software still points at."""
        removed = (
            self.db.query(User)
            .filter(
                User.is_active == False,  # noqa: E712
                User.id.notin_(select(Notice.author_id)),
                User.id.notin_(select(Software.manager_id)),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info("Removed %d inactive user(s)", removed)
        return removed

    def exists(self, user_id: str) -> bool:
        return self.db.query(User).filter(User.id == user_id).count() > 0

    def sync_from_metadata(self, employees: Iterable[EmployeeMetadata]) -> dict:
        """Mirror employee status from the metadata server into local user records.

        Active employees without a record are created with the USER role;
        inactive or resigned employees are deactivated. Roles are never
        changed by a sync.
        """
        result = {"created": 0, "reactivated": 0, "deactivated": 0}
        seen = set()

        for employee in employees:
            if employee.id in seen:
                continue
            seen.add(employee.id)

            user = self.find_by_id(employee.id)
            active = employee.status == "ACTIVE"

            if user is None:
                if active:
                    self.db.add(User(id=employee.id, role=Role.USER, active_tabs=[], is_active=True))
                    result["created"] += 1
                continue

            if active and not user.is_active:
                user.is_active = True
                result["reactivated"] += 1
            elif not active and user.is_active:
                user.is_active = False
                result["deactivated"] += 1

        self.db.commit()
        logger.info(
            "User sync finished: %d created, %d reactivated, %d deactivated",
            result["created"],
            result["reactivated"],
            result["deactivated"],
        )
        return result
