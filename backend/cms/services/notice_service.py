"""Notice visibility and lifecycle rules.

A notice is visible to role R at time T when it is PUBLISHED, its
publication window contains T (``publish_start_at <= T`` and either no end
or ``publish_end_at >= T``) and R is one of its target roles.

Lists are ordered pinned first, then by priority (URGENT down to LOW), then
newest first, with the id as a final tie-break so pages are stable.

State changes are deliberately unguarded: publish, hide and expire move a
notice into the target state from any other state.
"""
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from cms.core.exceptions import NotFound
from cms.models.enums import NoticeState, Priority, Role
from cms.models.notice import Notice, NoticeTargetRole
from cms.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({
    "title",
    "description",
    "target_roles",
    "publish_start_at",
    "publish_end_at",
    "priority",
    "is_pinned",
    "state",
})


# ─── PURE RULES ───────────────────────────────────────────────────────────────

def is_visible(notice: Notice, role: Role, now: datetime) -> bool:
    now = as_utc(now)
    if notice.state != NoticeState.PUBLISHED:
        return False
    if as_utc(notice.publish_start_at) > now:
        return False
    end = as_utc(notice.publish_end_at)
    if end is not None and end < now:
        return False
    return Role(role) in set(notice.target_roles)


def is_visible_to_any(notice: Notice, roles: Iterable[Role], now: datetime) -> bool:
    return any(is_visible(notice, role, now) for role in roles)


def sort_key(notice: Notice):
    """Python mirror of the SQL ordering; sort ascending with this key."""
    return (
        not notice.is_pinned,
        -Priority(notice.priority).rank,
        -as_utc(notice.created_at).timestamp(),
        notice.id,
    )


def _priority_rank():
    return case(
        *[(Notice.priority == priority, priority.rank) for priority in Priority],
        else_=-1,
    )


def _ordering():
    return (
        Notice.is_pinned.desc(),
        _priority_rank().desc(),
        Notice.created_at.desc(),
        Notice.id.asc(),
    )


def _visible_clause(roles: Iterable[Role], now: datetime):
    return and_(
        Notice.state == NoticeState.PUBLISHED,
        Notice.publish_start_at <= now,
        or_(Notice.publish_end_at.is_(None), Notice.publish_end_at >= now),
        Notice.role_links.any(NoticeTargetRole.role.in_([Role(r) for r in roles])),
    )


def _paginate(query, limit: Optional[int], offset: Optional[int]):
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query


# ─── SERVICE ──────────────────────────────────────────────────────────────────

class NoticeService:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, notice_id: str) -> Optional[Notice]:
        return self.db.query(Notice).filter(Notice.id == notice_id).first()

    def find_by_id_or_fail(self, notice_id: str) -> Notice:
        notice = self.find_by_id(notice_id)
        if not notice:
            raise NotFound("Notice", notice_id)
        return notice

    def find_active_notices_for_role(
        self,
        role: Role,
        *,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        priority: Optional[Priority] = None,
    ) -> list[Notice]:
        return self.find_active_notices_for_roles(
            [role], now=now, limit=limit, offset=offset, priority=priority
        )

    def find_active_notices_for_roles(
        self,
        roles: Iterable[Role],
        *,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        priority: Optional[Priority] = None,
    ) -> list[Notice]:
        """Notices visible to at least one of ``roles``; no roles means no notices."""
        roles = list(roles)
        if not roles:
            return []

        query = self.db.query(Notice).filter(_visible_clause(roles, now or utcnow()))
        if priority:
            query = query.filter(Notice.priority == priority)

        query = query.order_by(*_ordering())
        return _paginate(query, limit, offset).all()

    def find_all_for_admin(
        self,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        state: Optional[NoticeState] = None,
        author_id: Optional[str] = None,
    ) -> list[Notice]:
        query = self.db.query(Notice)
        if state:
            query = query.filter(Notice.state == state)
        if author_id:
            query = query.filter(Notice.author_id == author_id)

        query = query.order_by(*_ordering())
        return _paginate(query, limit, offset).all()

    def create(
        self,
        *,
        title: str,
        description: str,
        author_id: str,
        target_roles: Iterable[Role],
        publish_start_at: datetime,
        publish_end_at: Optional[datetime] = None,
        priority: Optional[Priority] = None,
        is_pinned: bool = False,
    ) -> Notice:
        notice = Notice(
            title=title,
            description=description,
            author_id=author_id,
            target_roles=target_roles,
            publish_start_at=publish_start_at,
            publish_end_at=publish_end_at,
            state=NoticeState.DRAFT,
            priority=priority or Priority.MEDIUM,
            is_pinned=bool(is_pinned),
            view_count=0,
        )

        self.db.add(notice)
        self.db.commit()
        self.db.refresh(notice)
        logger.info("Notice %s created by %s", notice.id, author_id)
        return notice

    def update(self, notice_id: str, **changes) -> Notice:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update notice fields: {', '.join(sorted(unknown))}")

        notice = self.find_by_id_or_fail(notice_id)
        for field, value in changes.items():
            setattr(notice, field, value)

        self.db.commit()
        self.db.refresh(notice)
        return notice

    def publish(self, notice_id: str) -> Notice:
        return self._set_state(notice_id, NoticeState.PUBLISHED)

    def hide(self, notice_id: str) -> Notice:
        return self._set_state(notice_id, NoticeState.HIDDEN)

    def expire(self, notice_id: str) -> Notice:
        return self._set_state(notice_id, NoticeState.EXPIRED)

    def _set_state(self, notice_id: str, state: NoticeState) -> Notice:
        notice = self.update(notice_id, state=state)
        logger.info("Notice %s moved to %s", notice_id, state.value)
        return notice

    def increment_view_count(self, notice_id: str) -> Notice:
        # Single UPDATE so concurrent views are never lost
        updated = (
            self.db.query(Notice)
            .filter(Notice.id == notice_id)
            .update({Notice.view_count: Notice.view_count + 1}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise NotFound("Notice", notice_id)

        self.db.commit()
        notice = self.find_by_id_or_fail(notice_id)
        self.db.refresh(notice)
        return notice

    def process_expired_notices(self, now: Optional[datetime] = None) -> int:
        """Move every published notice whose window has closed to EXPIRED.

        Returns the number of notices changed; a second run right after the
        first changes nothing.
        """
        now = now or utcnow()
        affected = (
            self.db.query(Notice)
            .filter(
                Notice.state == NoticeState.PUBLISHED,
                Notice.publish_end_at.isnot(None),
                Notice.publish_end_at < now,
            )
            .update({Notice.state: NoticeState.EXPIRED}, synchronize_session=False)
        )
        self.db.commit()

        if affected:
            logger.info("Expired %d notice(s)", affected)
        return affected or 0

    def delete(self, notice_id: str) -> None:
        notice = self.find_by_id_or_fail(notice_id)
        self.db.delete(notice)
        self.db.commit()
        logger.info("Notice %s deleted", notice_id)

    def count(
        self,
        *,
        state: Optional[NoticeState] = None,
        author_id: Optional[str] = None,
        role: Optional[Role] = None,
        now: Optional[datetime] = None,
    ) -> int:
        query = self.db.query(func.count(Notice.id))
        if state:
            query = query.filter(Notice.state == state)
        if author_id:
            query = query.filter(Notice.author_id == author_id)
        if role:
            query = query.filter(_visible_clause([role], now or utcnow()))
        return query.scalar() or 0
