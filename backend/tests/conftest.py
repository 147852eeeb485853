"""Shared fixtures: settings, in-memory database, tokens and an HTTP client."""
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from cms.config import load_settings
from cms.core.security import create_access_token
from cms.database.base import Base
from cms.database.session import build_session_factory
from cms.main import create_app
from cms.models.notice import Notice, NoticeTargetRole  # noqa: F401
from cms.models.software import Software, SoftwareDepartment  # noqa: F401
from cms.models.user import User  # noqa: F401

TEST_SECRET = "test-secret-key-with-at-least-32-characters"

BASE_SETTINGS = {
    "APP_ENV": "test",
    "JWT_SECRET": TEST_SECRET,
    "DATABASE_URL": "sqlite://",
    "DB_USERNAME": "cms",
    "DB_PASSWORD": "cms-password",
    "DB_NAME": "cms",
    "SSO_SERVER_URL": "http://sso.test",
    "SSO_CLIENT_ID": "cms-client",
    "SSO_CLIENT_SECRET": "sso-client-secret",
    "METADATA_SERVER_URL": "http://metadata.test",
    "METADATA_API_KEY": "metadata-key",
}


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")


@pytest.fixture
def settings():
    return load_settings(_env_file=None, **BASE_SETTINGS)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_token():
    def _make(sub="emp-001", roles=("USER",), expires=timedelta(hours=1), secret=TEST_SECRET, **claims):
        payload = {"sub": sub, "roles": list(roles), **claims}
        return create_access_token(payload, secret, expires)

    return _make


@pytest.fixture
def auth_header(make_token):
    def _header(*roles, sub="emp-001"):
        return {"Authorization": f"Bearer {make_token(sub=sub, roles=roles)}"}

    return _header


@pytest.fixture
def external_transport():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok"})

    return httpx.MockTransport(handler)


@pytest.fixture
def client(settings, engine, external_transport):
    app = create_app(settings, engine=engine, http_transport=external_transport)
    return TestClient(app)
