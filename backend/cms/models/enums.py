import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    NOTICE_MANAGER = "NOTICE_MANAGER"
    SOFTWARE_MANAGER = "SOFTWARE_MANAGER"
    DEPARTMENT_MANAGER = "DEPARTMENT_MANAGER"
    USER = "USER"


class NoticeState(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    EXPIRED = "EXPIRED"
    HIDDEN = "HIDDEN"


class Priority(str, enum.Enum):
    # Declaration order is the sort order: LOW < MEDIUM < HIGH < URGENT
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


class CostCycle(str, enum.Enum):
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    ONCE = "ONCE"


def sort_roles(roles) -> list[Role]:
    order = list(Role)
    return sorted({Role(r) for r in roles}, key=order.index)
