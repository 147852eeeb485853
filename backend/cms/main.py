import logging
from http import HTTPStatus
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from cms.config import Settings, get_settings
from cms.core.access import AccessGate
from cms.core.exceptions import CMSError
from cms.core.logging import setup_logging
from cms.core.security import TokenVerifier
from cms.database.base import Base
from cms.database.session import build_engine, build_session_factory
from cms.models.notice import Notice, NoticeTargetRole  # noqa: F401
from cms.models.software import Software, SoftwareDepartment  # noqa: F401
from cms.models.user import User  # noqa: F401
from cms.routes import health, notices, software, users
from cms.services.bootstrap_service import BootstrapService
from cms.services.metadata_client import MetadataClient
from cms.utils.clock import utcnow

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def error_body(request: Request, status_code: int, messages: list[str]) -> dict:
    try:
        error = HTTPStatus(status_code).phrase
    except ValueError:
        error = "Unknown Error"

    return {
        "status_code": status_code,
        "timestamp": utcnow().isoformat(),
        "path": request.url.path,
        "method": request.method,
        "message": messages,
        "error": error,
    }


def _error_response(request: Request, status_code: int, messages: list[str]) -> JSONResponse:
    body = error_body(request, status_code, messages)
    log = logger.error if status_code >= 500 else logger.warning
    log("%s %s -> %s %s", request.method, request.url.path, status_code, "; ".join(messages))
    return JSONResponse(status_code=status_code, content=body)


def _format_validation_messages(exc: RequestValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        loc = [str(v) for v in err.get("loc", []) if str(v) not in {"body", "query", "path"}]
        field = ".".join(loc) if loc else "field"
        err_type = str(err.get("type", ""))
        message = str(err.get("msg", "Invalid value"))

        if err_type in {"missing", "value_error.missing"}:
            messages.append(f"{field} is required")
        elif "string_too_short" in err_type:
            messages.append(f"{field} cannot be empty")
        elif field:
            messages.append(f"{field}: {message}")
        else:
            messages.append(message)

    # Preserve order while de-duplicating.
    return list(dict.fromkeys(messages))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CMSError)
    async def cms_error_handler(request: Request, exc: CMSError):
        return _error_response(request, int(exc.status_code), [exc.message])

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        messages = [str(m) for m in detail] if isinstance(detail, list) else [str(detail)]
        return _error_response(request, exc.status_code, messages)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, 422, _format_validation_messages(exc))


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    http_transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    """Assemble the application with every collaborator built explicitly."""
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    engine = engine or build_engine(settings)
    verifier = TokenVerifier(
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        audience=settings.JWT_AUDIENCE,
    )

    app = FastAPI(title="Corporate CMS")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.access_gate = AccessGate(verifier)
    app.state.metadata_client = MetadataClient(
        settings.METADATA_SERVER_URL,
        settings.METADATA_API_KEY,
        transport=http_transport,
    )
    app.state.bootstrap = BootstrapService(settings, transport=http_transport)

    origins = settings.cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, prefix=API_PREFIX)
    app.include_router(users.router, prefix=API_PREFIX)
    app.include_router(notices.router, prefix=API_PREFIX)
    app.include_router(software.router, prefix=API_PREFIX)

    @app.on_event("startup")
    def on_startup():
        app.state.bootstrap.log_application_info()
        if settings.APP_ENV in {"development", "test"}:
            Base.metadata.create_all(bind=engine)
        app.state.bootstrap.run()

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.metadata_client.close()

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.PORT)
