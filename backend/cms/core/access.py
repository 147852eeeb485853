import logging
from dataclasses import dataclass
from typing import Optional

from cms.core.exceptions import Forbidden
from cms.core.security import Identity, TokenVerifier
from cms.models.enums import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteAccess:
    """Access rules attached to a route when it is registered.

    ``public`` routes skip authentication entirely. ``roles`` lists the roles
    that may call the route; holding any one of them is enough. An empty set
    admits every authenticated caller.
    """

    public: bool = False
    roles: frozenset = frozenset()

    @classmethod
    def for_roles(cls, *roles: Role) -> "RouteAccess":
        return cls(roles=frozenset(roles))


PUBLIC = RouteAccess(public=True)
AUTHENTICATED = RouteAccess()
ADMIN_ONLY = RouteAccess.for_roles(Role.ADMIN)
NOTICE_MANAGERS = RouteAccess.for_roles(Role.ADMIN, Role.NOTICE_MANAGER)
SOFTWARE_MANAGERS = RouteAccess.for_roles(Role.ADMIN, Role.SOFTWARE_MANAGER)


class AccessGate:
    def __init__(self, verifier: TokenVerifier):
        self.verifier = verifier

    def authorize(self, access: RouteAccess, authorization: Optional[str]) -> Optional[Identity]:
        """Return the caller's identity, or None for public routes.

        Raises Unauthenticated when the token is absent or invalid and
        Forbidden when none of the caller's roles is accepted by the route.
        """
        if access.public:
            return None

        identity = self.verifier.verify(authorization)
        self.check_roles(access, identity)
        return identity

    @staticmethod
    def check_roles(access: RouteAccess, identity: Optional[Identity]) -> None:
        if not access.roles:
            return

        if identity is None:
            raise Forbidden("Access denied")

        if not identity.has_any_role(access.roles):
            logger.info(
                "Denied user %s: roles %s not in %s",
                identity.id,
                sorted(r.value for r in identity.roles),
                sorted(r.value for r in access.roles),
            )
            raise Forbidden("You do not have permission to access this resource")
