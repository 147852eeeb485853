"""Tests for the notice lifecycle."""
from datetime import datetime, timedelta, timezone

import pytest

from cms.core.exceptions import NotFound
from cms.models.enums import NoticeState, Priority, Role
from cms.models.notice import NoticeTargetRole
from cms.models.user import User
from cms.services.notice_service import NoticeService

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(db):
    db.add(User(id="author-1"))
    db.commit()
    return NoticeService(db)


def _create(service, **overrides):
    values = dict(
        title="Quarterly all-hands",
        description="Friday 3pm in the main hall",
        author_id="author-1",
        target_roles=[Role.USER],
        publish_start_at=NOW - timedelta(hours=1),
    )
    values.update(overrides)
    return service.create(**values)


class TestCreate:

    def test_new_notice_defaults(self, service):
        notice = _create(service)

        assert notice.id
        assert notice.state == NoticeState.DRAFT
        assert notice.priority == Priority.MEDIUM
        assert notice.view_count == 0
        assert notice.is_pinned is False
        assert notice.publish_end_at is None
        assert notice.target_roles == [Role.USER]

    def test_draft_is_not_visible(self, service):
        _create(service)
        assert service.find_active_notices_for_role(Role.USER, now=NOW) == []

    def test_offset_times_are_stored_as_utc(self, service):
        seoul = timezone(timedelta(hours=9))
        start = (NOW - timedelta(hours=1)).astimezone(seoul)
        end = (NOW + timedelta(hours=1)).astimezone(seoul)

        notice = _create(service, publish_start_at=start, publish_end_at=end)
        service.publish(notice.id)
        service.db.expire_all()

        stored = service.find_by_id(notice.id)
        assert stored.publish_start_at == NOW - timedelta(hours=1)
        assert stored.publish_start_at.utcoffset() == timedelta(0)
        assert [n.id for n in service.find_active_notices_for_role(Role.USER, now=NOW)] == [notice.id]
        assert service.process_expired_notices(NOW) == 0
        assert service.process_expired_notices(NOW + timedelta(hours=2)) == 1

    def test_offset_now_is_compared_in_utc(self, service):
        notice = _create(service, publish_start_at=NOW - timedelta(hours=1))
        service.publish(notice.id)

        new_york = timezone(timedelta(hours=-4))
        assert len(service.find_active_notices_for_role(Role.USER, now=NOW.astimezone(new_york))) == 1
        assert service.find_active_notices_for_role(
            Role.USER, now=(NOW - timedelta(hours=2)).astimezone(new_york)
        ) == []

    def test_target_roles_are_deduplicated(self, service):
        notice = _create(service, target_roles=["USER", Role.ADMIN, Role.USER])
        assert notice.target_roles == [Role.ADMIN, Role.USER]


class TestLifecycle:

    def test_publish_makes_notice_visible(self, service):
        notice = _create(service, publish_end_at=NOW + timedelta(days=1))

        service.publish(notice.id)

        assert [n.id for n in service.find_active_notices_for_role(Role.USER, now=NOW)] == [notice.id]
        assert service.find_active_notices_for_role(Role.ADMIN, now=NOW) == []

    def test_future_start_is_not_visible_yet(self, service):
        notice = _create(service, publish_start_at=NOW + timedelta(hours=2))
        service.publish(notice.id)

        assert service.find_active_notices_for_role(Role.USER, now=NOW) == []
        assert len(service.find_active_notices_for_role(Role.USER, now=NOW + timedelta(hours=3))) == 1

    @pytest.mark.parametrize("start", list(NoticeState))
    @pytest.mark.parametrize("action, target", [
        ("publish", NoticeState.PUBLISHED),
        ("hide", NoticeState.HIDDEN),
        ("expire", NoticeState.EXPIRED),
    ])
    def test_transitions_from_any_state(self, service, start, action, target):
        notice = _create(service)
        service.update(notice.id, state=start)

        result = getattr(service, action)(notice.id)

        assert result.state == target

    def test_expired_notice_can_be_republished(self, service):
        notice = _create(service)
        service.expire(notice.id)

        assert service.publish(notice.id).state == NoticeState.PUBLISHED

    def test_hidden_notice_is_not_visible(self, service):
        notice = _create(service)
        service.publish(notice.id)
        service.hide(notice.id)

        assert service.find_active_notices_for_role(Role.USER, now=NOW) == []

    @pytest.mark.parametrize("action", ["publish", "hide", "expire", "delete", "increment_view_count"])
    def test_unknown_id(self, service, action):
        with pytest.raises(NotFound) as exc_info:
            getattr(service, action)("missing")
        assert "missing" in exc_info.value.message


class TestExpirySweep:

    def test_sweep_expires_closed_windows(self, service):
        notice = _create(service, publish_end_at=NOW - timedelta(minutes=1))
        service.publish(notice.id)

        assert service.process_expired_notices(NOW) == 1
        service.db.expire_all()
        assert service.find_by_id(notice.id).state == NoticeState.EXPIRED

    def test_second_sweep_changes_nothing(self, service):
        for _ in range(3):
            notice = _create(service, publish_end_at=NOW - timedelta(days=1))
            service.publish(notice.id)

        assert service.process_expired_notices(NOW) == 3
        assert service.process_expired_notices(NOW) == 0

    def test_sweep_leaves_other_notices_alone(self, service):
        open_ended = _create(service)
        future_end = _create(service, publish_end_at=NOW + timedelta(days=1))
        ends_now = _create(service, publish_end_at=NOW)
        draft = _create(service, publish_end_at=NOW - timedelta(days=1))
        hidden = _create(service, publish_end_at=NOW - timedelta(days=1))
        for notice in (open_ended, future_end, ends_now):
            service.publish(notice.id)
        service.hide(hidden.id)

        assert service.process_expired_notices(NOW) == 0

        service.db.expire_all()
        assert service.find_by_id(open_ended.id).state == NoticeState.PUBLISHED
        assert service.find_by_id(future_end.id).state == NoticeState.PUBLISHED
        assert service.find_by_id(ends_now.id).state == NoticeState.PUBLISHED
        assert service.find_by_id(draft.id).state == NoticeState.DRAFT
        assert service.find_by_id(hidden.id).state == NoticeState.HIDDEN


class TestViewCount:

    def test_each_call_adds_one(self, service):
        notice = _create(service)

        for _ in range(5):
            result = service.increment_view_count(notice.id)

        assert result.view_count == 5

    def test_does_not_touch_other_fields(self, service):
        notice = _create(service, title="Untouched")
        result = service.increment_view_count(notice.id)

        assert result.title == "Untouched"
        assert result.state == NoticeState.DRAFT


class TestUpdate:

    def test_replacing_target_roles_keeps_overlap(self, service):
        notice = _create(service, target_roles=[Role.USER, Role.ADMIN])

        updated = service.update(notice.id, target_roles=[Role.USER, Role.SOFTWARE_MANAGER])

        assert updated.target_roles == [Role.SOFTWARE_MANAGER, Role.USER]
        rows = service.db.query(NoticeTargetRole).filter(NoticeTargetRole.notice_id == notice.id).all()
        assert sorted(row.role.value for row in rows) == ["SOFTWARE_MANAGER", "USER"]

    def test_clearing_end_date(self, service):
        notice = _create(service, publish_end_at=NOW + timedelta(days=1))
        assert service.update(notice.id, publish_end_at=None).publish_end_at is None

    def test_unknown_field_is_rejected(self, service):
        notice = _create(service)
        with pytest.raises(TypeError):
            service.update(notice.id, view_count=100)

    def test_delete_removes_role_links(self, service):
        notice = _create(service, target_roles=[Role.USER, Role.ADMIN])

        service.delete(notice.id)

        assert service.find_by_id(notice.id) is None
        assert service.db.query(NoticeTargetRole).count() == 0


class TestListings:

    @pytest.fixture
    def mixed(self, service):
        service.db.add(User(id="author-2"))
        service.db.commit()

        published = [
            _create(service, priority=Priority.HIGH),
            _create(service, priority=Priority.LOW, author_id="author-2"),
            _create(service, priority=Priority.HIGH, target_roles=[Role.ADMIN]),
        ]
        for notice in published:
            service.publish(notice.id)
        _create(service, author_id="author-2")
        return published

    def test_priority_filter(self, service, mixed):
        found = service.find_active_notices_for_role(Role.USER, now=NOW, priority=Priority.HIGH)
        assert [n.id for n in found] == [mixed[0].id]

    def test_admin_filters(self, service, mixed):
        assert len(service.find_all_for_admin()) == 4
        assert len(service.find_all_for_admin(state=NoticeState.PUBLISHED)) == 3
        assert len(service.find_all_for_admin(author_id="author-2")) == 2
        assert len(service.find_all_for_admin(state=NoticeState.DRAFT, author_id="author-2")) == 1

    def test_admin_pagination(self, service, mixed):
        first = service.find_all_for_admin(limit=3)
        rest = service.find_all_for_admin(limit=3, offset=3)

        assert len(first) == 3
        assert len(rest) == 1
        assert not {n.id for n in first} & {n.id for n in rest}

    def test_count(self, service, mixed):
        assert service.count() == 4
        assert service.count(state=NoticeState.PUBLISHED) == 3
        assert service.count(author_id="author-2") == 2
        assert service.count(role=Role.USER, now=NOW) == 2
        assert service.count(role=Role.ADMIN, now=NOW) == 1
