from sqlalchemy import JSON, Boolean, Column, Enum, String

from cms.database.base import Base
from cms.database.types import UTCDateTime
from cms.models.enums import Role
from cms.utils.clock import utcnow


class User(Base):
    __tablename__ = "users"

    # Same value as the employee id on the metadata server
    id = Column(String(50), primary_key=True, index=True)

    role = Column(Enum(Role), default=Role.USER, nullable=False)

    # Tabs the user last had open in the portal
    active_tabs = Column(JSON, nullable=True)

    last_login_at = Column(UTCDateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
