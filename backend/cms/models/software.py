import uuid

from sqlalchemy import Boolean, Column, Date, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from cms.database.base import Base
from cms.database.types import UTCDateTime
from cms.models.enums import CostCycle
from cms.models.user import User  # noqa: F401
from cms.utils.clock import utcnow


class SoftwareDepartment(Base):
    __tablename__ = "software_departments"

    software_id = Column(String(36), ForeignKey("softwares.id", ondelete="CASCADE"), primary_key=True)
    department_id = Column(String(50), primary_key=True, index=True)


class Software(Base):
    __tablename__ = "softwares"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    version = Column(String(50), nullable=True)
    vendor = Column(String(100), nullable=True)

    manager_id = Column(String(50), ForeignKey("users.id"), nullable=False, index=True)

    license_cost = Column(Numeric(15, 2, asdecimal=False), nullable=True)
    cost_cycle = Column(Enum(CostCycle), nullable=True)

    total_licenses = Column(Integer, default=0, nullable=False)
    used_licenses = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    license_expiry_date = Column(Date, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    manager = relationship("User")
    department_links = relationship(
        "SoftwareDepartment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def department_ids(self) -> list[str]:
        return sorted(link.department_id for link in self.department_links)

    @department_ids.setter
    def department_ids(self, department_ids) -> None:
        wanted = {str(d) for d in department_ids}
        kept = [link for link in self.department_links if link.department_id in wanted]
        present = {link.department_id for link in kept}
        kept.extend(SoftwareDepartment(department_id=d) for d in sorted(wanted - present))
        self.department_links = kept
