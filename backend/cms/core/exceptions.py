from http import HTTPStatus


class CMSError(Exception):
    """Base class for errors that surface to the caller as a structured response."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(CMSError):
    status_code = HTTPStatus.UNAUTHORIZED


class Forbidden(CMSError):
    status_code = HTTPStatus.FORBIDDEN


class NotFound(CMSError):
    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, kind: str, entity_id):
        super().__init__(f"{kind} not found. ID: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class InvariantViolation(CMSError):
    status_code = HTTPStatus.BAD_REQUEST


class ExternalServiceError(CMSError):
    status_code = HTTPStatus.BAD_GATEWAY


class ConfigurationError(RuntimeError):
    """Raised at startup only; the process must not serve requests without a valid config."""
