"""Expire published notices whose window has closed.

Meant to be run by an external scheduler (cron, Kubernetes CronJob, ...).
"""
from cms.config import get_settings
from cms.core.logging import setup_logging
from cms.database.session import build_engine, build_session_factory
from cms.services.notice_service import NoticeService


def expire_notices() -> int:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    db = build_session_factory(build_engine(settings))()
    try:
        return NoticeService(db).process_expired_notices()
    finally:
        db.close()


def main():
    expired = expire_notices()
    print(f"Expired {expired} notice(s)")


if __name__ == "__main__":
    main()
