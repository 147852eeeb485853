import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from cms.core.exceptions import InvariantViolation, NotFound
from cms.models.enums import CostCycle
from cms.models.software import Software, SoftwareDepartment
from cms.utils.clock import utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "version",
    "vendor",
    "manager_id",
    "license_cost",
    "cost_cycle",
    "department_ids",
    "total_licenses",
    "license_expiry_date",
    "is_active",
})

# One-off purchases are amortised over this many years in the yearly estimate
ONCE_AMORTISATION_YEARS = 3


class SoftwareService:
    def __init__(self, db: Session):
        self.db = db

    def _active(self):
        return self.db.query(Software).filter(Software.is_active == True)  # noqa: E712

    def find_by_id(self, software_id: str) -> Optional[Software]:
        return self.db.query(Software).filter(Software.id == software_id).first()

    def find_by_id_or_fail(self, software_id: str) -> Software:
        software = self.find_by_id(software_id)
        if not software:
            raise NotFound("Software", software_id)
        return software

    def find_active(
        self,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        manager_id: Optional[str] = None,
    ) -> list[Software]:
        query = self._active()
        if manager_id:
            query = query.filter(Software.manager_id == manager_id)

        query = query.order_by(Software.created_at.desc(), Software.id.asc())
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query.all()

    def find_by_department(self, department_id: str) -> list[Software]:
        return (
            self._active()
            .filter(Software.department_links.any(SoftwareDepartment.department_id == str(department_id)))
            .order_by(Software.name.asc())
            .all()
        )

    def find_by_manager(self, manager_id: str) -> list[Software]:
        return (
            self._active()
            .filter(Software.manager_id == manager_id)
            .order_by(Software.name.asc())
            .all()
        )

    def find_low_license_availability(self, threshold: float = 90) -> list[Software]:
        """Active software whose used/total ratio is at or above ``threshold`` percent."""
        usage = Software.used_licenses * 100.0 / Software.total_licenses
        return (
            self._active()
            .filter(Software.total_licenses > 0, usage >= threshold)
            .order_by(usage.desc(), Software.name.asc())
            .all()
        )

    def find_expiring_licenses(self, days_ahead: int = 30, today: Optional[date] = None) -> list[Software]:
        today = today or utcnow().date()
        until = today + timedelta(days=days_ahead)
        return (
            self._active()
            .filter(
                Software.license_expiry_date.isnot(None),
                Software.license_expiry_date >= today,
                Software.license_expiry_date <= until,
            )
            .order_by(Software.license_expiry_date.asc())
            .all()
        )

    def create(
        self,
        *,
        name: str,
        manager_id: str,
        department_ids: Iterable[str],
        description: Optional[str] = None,
        version: Optional[str] = None,
        vendor: Optional[str] = None,
        license_cost: Optional[float] = None,
        cost_cycle: Optional[CostCycle] = None,
        total_licenses: int = 0,
        license_expiry_date: Optional[date] = None,
    ) -> Software:
        software = Software(
            name=name,
            description=description,
            version=version,
            vendor=vendor,
            manager_id=manager_id,
            license_cost=license_cost,
            cost_cycle=cost_cycle,
            department_ids=department_ids,
            total_licenses=total_licenses,
            used_licenses=0,
            license_expiry_date=license_expiry_date,
            is_active=True,
        )
        self.db.add(software)
        self.db.commit()
        self.db.refresh(software)
        logger.info("Software %s (%s) registered", software.id, software.name)
        return software

    def update(self, software_id: str, **changes) -> Software:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update software fields: {', '.join(sorted(unknown))}")

        software = self.find_by_id_or_fail(software_id)

        total = changes.pop("total_licenses", None)
        if total is not None:
            self._set_total_licenses(software, total)

        for field, value in changes.items():
            setattr(software, field, value)

        self.db.commit()
        self.db.refresh(software)
        return software

    def _set_total_licenses(self, software: Software, total_licenses: int) -> None:
        if total_licenses < 0:
            raise InvariantViolation("Total licenses cannot be negative")

        # Same statement checks the current usage, like update_license_usage
        updated = (
            self.db.query(Software)
            .filter(Software.id == software.id, Software.used_licenses <= total_licenses)
            .update({Software.total_licenses: total_licenses}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            software = self.find_by_id_or_fail(software.id)
            raise InvariantViolation(
                f"Total licenses ({total_licenses}) cannot be lower than used licenses "
                f"({software.used_licenses})"
            )

    def update_license_usage(self, software_id: str, used_licenses: int) -> Software:
        if used_licenses < 0:
            raise InvariantViolation("Used licenses cannot be negative")

        # Conditional UPDATE: the total is checked by the database in the same statement
        updated = (
            self.db.query(Software)
            .filter(Software.id == software_id, Software.total_licenses >= used_licenses)
            .update({Software.used_licenses: used_licenses}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            software = self.find_by_id_or_fail(software_id)
            raise InvariantViolation(
                f"Used licenses ({used_licenses}) cannot exceed total licenses "
                f"({software.total_licenses})"
            )

        self.db.commit()
        software = self.find_by_id_or_fail(software_id)
        self.db.refresh(software)
        return software

    def deactivate(self, software_id: str) -> Software:
        return self.update(software_id, is_active=False)

    def delete(self, software_id: str) -> None:
        software = self.find_by_id_or_fail(software_id)
        self.db.delete(software)
        self.db.commit()
        logger.info("Software %s deleted", software_id)

    def calculate_total_costs(self, cost_cycle: Optional[CostCycle] = None) -> dict:
        query = (
            self.db.query(
                Software.cost_cycle,
                func.sum(Software.license_cost),
                func.count(Software.id),
            )
            .filter(Software.is_active == True, Software.license_cost.isnot(None))  # noqa: E712
        )
        if cost_cycle:
            query = query.filter(Software.cost_cycle == cost_cycle)

        total_cost = 0.0
        monthly_estimate = 0.0
        yearly_estimate = 0.0
        software_count = 0

        for cycle, cost, count in query.group_by(Software.cost_cycle).all():
            cost = float(cost or 0)
            total_cost += cost
            software_count += int(count or 0)

            if cycle == CostCycle.MONTHLY:
                monthly_estimate += cost
                yearly_estimate += cost * 12
            elif cycle == CostCycle.YEARLY:
                monthly_estimate += cost / 12
                yearly_estimate += cost
            elif cycle == CostCycle.ONCE:
                yearly_estimate += cost / ONCE_AMORTISATION_YEARS

        return {
            "total_cost": round(total_cost, 2),
            "monthly_estimate": round(monthly_estimate, 2),
            "yearly_estimate": round(yearly_estimate, 2),
            "software_count": software_count,
        }
