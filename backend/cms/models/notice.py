import uuid

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from cms.database.base import Base
from cms.database.types import UTCDateTime
from cms.models.enums import NoticeState, Priority, Role, sort_roles
from cms.models.user import User  # noqa: F401
from cms.utils.clock import utcnow


class NoticeTargetRole(Base):
    __tablename__ = "notice_target_roles"

    notice_id = Column(String(36), ForeignKey("notices.id", ondelete="CASCADE"), primary_key=True)
    role = Column(Enum(Role), primary_key=True, index=True)


class Notice(Base):
    __tablename__ = "notices"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)

    author_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True)

    publish_start_at = Column(UTCDateTime, nullable=False)
    # NULL means the notice never goes out of its publication window
    publish_end_at = Column(UTCDateTime, nullable=True)

    state = Column(Enum(NoticeState), default=NoticeState.DRAFT, nullable=False, index=True)
    priority = Column(Enum(Priority), default=Priority.MEDIUM, nullable=False)
    is_pinned = Column(Boolean, default=False, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    author = relationship("User")
    role_links = relationship(
        "NoticeTargetRole",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def target_roles(self) -> list[Role]:
        return sort_roles(link.role for link in self.role_links)

    @target_roles.setter
    def target_roles(self, roles) -> None:
        wanted = {Role(r) for r in roles}
        # Keep existing link rows so a role present before and after is never re-inserted
        kept = [link for link in self.role_links if link.role in wanted]
        present = {link.role for link in kept}
        kept.extend(NoticeTargetRole(role=role) for role in sort_roles(wanted - present))
        self.role_links = kept
