"""
Pytest fixtures for the myRC test suite.

Provides:
- A fresh in-memory SQLite database per test (engine + tables)
- Service registry bound to the test session
- Users, responsibility centres and fiscal years as opt-in fixtures
- A FastAPI TestClient wired to the same database

Every test gets its own database, so no cleanup between tests is needed
beyond disposing the engine.
"""

import json
import logging
from collections.abc import Callable, Generator
from io import StringIO

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from myrc_api.app import create_app
from myrc_api.dependencies import ServiceRegistry
from myrc_config.schema import AppConfig
from myrc_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from myrc_kernel.domain.dtos import (
    CategoryView,
    FiscalYearView,
    MoneyView,
    ResponsibilityCentreView,
    UserInfo,
)
from myrc_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TEST_PASSWORD = "correct-horse-42"

OWNER = "alice"
COLLEAGUE = "bob"
OUTSIDER = "carol"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture myrc logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, services):
            services.rcs.create("alice", "RC")
            logs = captured_logs()
            assert any(r["message"] == "rc_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("myrc")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """A fresh in-memory database with every kernel and module table."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return get_session_factory()


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    """A session for direct service calls; rolled back at teardown."""
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def services(session, config) -> ServiceRegistry:
    """
    Every service bound to ``session``.

    Audit rows are written through ``session`` itself (no separate
    factory) so tests can observe them without committing.
    """
    return ServiceRegistry(session, config)


# =============================================================================
# Domain fixtures (opt-in)
# =============================================================================


@pytest.fixture
def make_user(services) -> Callable[..., UserInfo]:
    """Factory for LOCAL users sharing ``TEST_PASSWORD``."""

    def _make(username: str, *, roles: set[str] | None = None, **kwargs) -> UserInfo:
        kwargs.setdefault("email", f"{username}@example.com")
        kwargs.setdefault("full_name", username.capitalize())
        return services.users.create_user(
            username=username, password=TEST_PASSWORD, roles=roles, **kwargs
        )

    return _make


@pytest.fixture
def owner(make_user) -> UserInfo:
    return make_user(OWNER)


@pytest.fixture
def colleague(make_user) -> UserInfo:
    return make_user(COLLEAGUE)


@pytest.fixture
def outsider(make_user) -> UserInfo:
    return make_user(OUTSIDER)


@pytest.fixture
def rc(services, owner) -> ResponsibilityCentreView:
    return services.rcs.create(OWNER, "Research Computing", "Cluster budget")


@pytest.fixture
def fy(services, rc) -> FiscalYearView:
    return services.fiscal_years.create(rc.id, OWNER, "FY 2025-2026")


@pytest.fixture
def default_money(services, rc, fy) -> MoneyView:
    return next(m for m in services.monies.list_monies(rc.id, fy.id, OWNER) if m.is_default)


@pytest.fixture
def category(services, rc, fy) -> CategoryView:
    return next(
        c for c in services.categories.list_categories(rc.id, fy.id, OWNER) if c.name == "Compute"
    )


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def api_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def api_users(session_factory, api_config) -> dict[str, UserInfo]:
    """Committed accounts for HTTP tests: an admin plus alice, bob and carol."""
    with session_factory() as setup:
        registry = ServiceRegistry(setup, api_config)
        created = {
            "admin": registry.users.create_user(
                "admin", TEST_PASSWORD, "admin@example.com", "Administrator", roles={"ADMIN", "USER"}
            )
        }
        for username in (OWNER, COLLEAGUE, OUTSIDER):
            created[username] = registry.users.create_user(
                username, TEST_PASSWORD, f"{username}@example.com", username.capitalize()
            )
        setup.commit()
    return created


@pytest.fixture
def client(session_factory, api_config, api_users) -> Generator[TestClient, None, None]:
    app = create_app(api_config, session_factory)
    with TestClient(app) as test_client:
        yield test_client


def auth(username: str = OWNER) -> tuple[str, str]:
    """HTTP Basic credentials for a user created by ``api_users``."""
    return (username, TEST_PASSWORD)
