from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from cms.utils.clock import as_utc


class UTCDateTime(TypeDecorator):
    """Datetime stored as naive UTC and read back tagged with UTC.

    Neither SQLite nor MySQL DATETIME keeps an offset, so values are
    converted to UTC before binding. Naive values are taken to be UTC already.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)
