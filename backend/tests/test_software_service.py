"""Tests for software license management."""
from datetime import date, datetime, timedelta, timezone

import pytest

from cms.core.exceptions import InvariantViolation, NotFound
from cms.models.enums import CostCycle
from cms.models.software import SoftwareDepartment
from cms.models.user import User
from cms.services import software_service
from cms.services.software_service import SoftwareService

pytestmark = pytest.mark.unit

TODAY = date(2024, 6, 1)


@pytest.fixture
def service(db):
    db.add_all([User(id="mgr-1"), User(id="mgr-2")])
    db.commit()
    return SoftwareService(db)


def _create(service, **overrides):
    values = dict(
        name="Design Suite",
        manager_id="mgr-1",
        department_ids=["10"],
        total_licenses=10,
    )
    values.update(overrides)
    return service.create(**values)


class TestCreate:

    def test_new_software_defaults(self, service):
        software = _create(service, department_ids=[20, "10", "10"])

        assert software.used_licenses == 0
        assert software.is_active is True
        assert software.department_ids == ["10", "20"]

    def test_update_department_ids_keeps_overlap(self, service):
        software = _create(service, department_ids=["10", "20"])

        updated = service.update(software.id, department_ids=["20", "30"])

        assert updated.department_ids == ["20", "30"]
        assert service.db.query(SoftwareDepartment).count() == 2

    def test_update_rejects_unknown_fields(self, service):
        software = _create(service)
        with pytest.raises(TypeError):
            service.update(software.id, created_at=None)


class TestLicenseUsage:

    def test_valid_usage(self, service):
        software = _create(service, total_licenses=10)

        assert service.update_license_usage(software.id, 10).used_licenses == 10
        assert service.update_license_usage(software.id, 0).used_licenses == 0

    def test_usage_above_total_is_rejected(self, service):
        software = _create(service, total_licenses=10)
        service.update_license_usage(software.id, 4)

        with pytest.raises(InvariantViolation) as exc_info:
            service.update_license_usage(software.id, 11)

        assert exc_info.value.message == "Used licenses (11) cannot exceed total licenses (10)"
        service.db.expire_all()
        assert service.find_by_id(software.id).used_licenses == 4

    def test_negative_usage_is_rejected(self, service):
        software = _create(service)
        with pytest.raises(InvariantViolation):
            service.update_license_usage(software.id, -1)

    def test_unknown_software(self, service):
        with pytest.raises(NotFound):
            service.update_license_usage("missing", 1)

    def test_total_cannot_drop_below_usage(self, service):
        software = _create(service, total_licenses=10)
        service.update_license_usage(software.id, 8)

        with pytest.raises(InvariantViolation) as exc_info:
            service.update(software.id, total_licenses=2, name="Renamed")

        assert exc_info.value.message == "Total licenses (2) cannot be lower than used licenses (8)"
        service.db.expire_all()
        unchanged = service.find_by_id(software.id)
        assert (unchanged.total_licenses, unchanged.used_licenses, unchanged.name) == (10, 8, "Design Suite")

    def test_total_can_shrink_to_usage(self, service):
        software = _create(service, total_licenses=10)
        service.update_license_usage(software.id, 8)

        updated = service.update(software.id, total_licenses=8, vendor="Acme")

        assert (updated.total_licenses, updated.used_licenses, updated.vendor) == (8, 8, "Acme")

    def test_usage_only_changes_through_usage_update(self, service):
        software = _create(service, total_licenses=10)
        with pytest.raises(TypeError):
            service.update(software.id, used_licenses=50)


class TestQueries:

    def test_find_by_department_skips_inactive(self, service):
        design = _create(service, name="Design", department_ids=["10", "20"])
        _create(service, name="Accounting", department_ids=["30"])
        retired = _create(service, name="Retired", department_ids=["10"])
        service.deactivate(retired.id)

        assert [s.id for s in service.find_by_department("10")] == [design.id]
        assert [s.id for s in service.find_by_department(20)] == [design.id]
        assert service.find_by_department("99") == []

    def test_find_by_manager(self, service):
        mine = _create(service, manager_id="mgr-2")
        _create(service)

        assert [s.id for s in service.find_by_manager("mgr-2")] == [mine.id]
        assert [s.id for s in service.find_active(manager_id="mgr-2")] == [mine.id]

    def test_low_license_availability(self, service):
        full = _create(service, name="Full", total_licenses=10)
        nearly = _create(service, name="Nearly", total_licenses=10)
        plenty = _create(service, name="Plenty", total_licenses=10)
        _create(service, name="Empty", total_licenses=0)
        service.update_license_usage(full.id, 10)
        service.update_license_usage(nearly.id, 9)
        service.update_license_usage(plenty.id, 5)

        assert [s.id for s in service.find_low_license_availability()] == [full.id, nearly.id]
        assert [s.id for s in service.find_low_license_availability(50)] == [full.id, nearly.id, plenty.id]

    def test_expiring_licenses(self, service):
        soon = _create(service, name="Soon", license_expiry_date=TODAY + timedelta(days=10))
        edge = _create(service, name="Edge", license_expiry_date=TODAY + timedelta(days=30))
        _create(service, name="Later", license_expiry_date=TODAY + timedelta(days=31))
        _create(service, name="Lapsed", license_expiry_date=TODAY - timedelta(days=1))
        _create(service, name="Perpetual")

        found = service.find_expiring_licenses(30, today=TODAY)

        assert [s.id for s in found] == [soon.id, edge.id]

    def test_expiring_defaults_to_utc_today(self, service, monkeypatch):
        late_evening = datetime(2024, 5, 31, 23, 30, tzinfo=timezone.utc)
        monkeypatch.setattr(software_service, "utcnow", lambda: late_evening)
        tomorrow = _create(service, name="Tomorrow", license_expiry_date=TODAY)
        _create(service, name="Yesterday", license_expiry_date=TODAY - timedelta(days=2))

        assert [s.id for s in service.find_expiring_licenses(1)] == [tomorrow.id]

    def test_delete(self, service):
        software = _create(service, department_ids=["10", "20"])

        service.delete(software.id)

        assert service.find_by_id(software.id) is None
        assert service.db.query(SoftwareDepartment).count() == 0
        with pytest.raises(NotFound):
            service.delete(software.id)


class TestCosts:

    @pytest.fixture
    def priced(self, service):
        _create(service, name="Chat", license_cost=100, cost_cycle=CostCycle.MONTHLY)
        _create(service, name="IDE", license_cost=1200, cost_cycle=CostCycle.YEARLY)
        _create(service, name="Fonts", license_cost=300, cost_cycle=CostCycle.ONCE)
        retired = _create(service, name="Old CRM", license_cost=5000, cost_cycle=CostCycle.MONTHLY)
        service.deactivate(retired.id)
        _create(service, name="Free tool")

    def test_totals(self, service, priced):
        assert service.calculate_total_costs() == {
            "total_cost": 1600.0,
            "monthly_estimate": 200.0,
            "yearly_estimate": 2500.0,
            "software_count": 3,
        }

    def test_single_cycle(self, service, priced):
        assert service.calculate_total_costs(CostCycle.YEARLY) == {
            "total_cost": 1200.0,
            "monthly_estimate": 100.0,
            "yearly_estimate": 1200.0,
            "software_count": 1,
        }

    def test_no_software(self, service):
        assert service.calculate_total_costs()["software_count"] == 0
