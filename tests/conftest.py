"""Pytest configuration and fixtures for testing."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import jwt
import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from backend.app.config import Settings, get_settings
from backend.app.db.base import Base
from backend.app.db.models import BrandMonitor, MonitorQuestion, Plan, Subscription


@pytest.fixture(scope="function")
def test_db_engine(tmp_path):
    """Create a test database engine on a file SQLite database.

    A file (rather than :memory:) gives every pooled connection the same
    database, so sessions opened from the threadpool see each other's writes.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # Create all tables
    Base.metadata.create_all(engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_session_factory(test_db_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=test_db_engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def test_session(test_session_factory):
    """Create a test database session."""
    session = test_session_factory()

    yield session

    session.close()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


def make_access_token(user_id: UUID, *, expires_in_s: int = 900, **claims) -> str:
    """Sign an access token the way the auth provider does."""
    settings = get_settings()
    payload = {
        "sub": str(user_id),
        "aud": settings.supabase_jwt_audience,
        "exp": datetime.now(UTC) + timedelta(seconds=expires_in_s),
        "email": "test@example.com",
        "role": "authenticated",
        **claims,
    }
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256")


@pytest.fixture
def token_factory():
    """The access token signer, for tests that need custom claims."""
    return make_access_token


@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_access_token(user_id)}"}


@pytest.fixture
def pro_plan(test_session: Session) -> Plan:
    plan = Plan(id="pro", name="Pro", analysis_limit=100)
    test_session.add(plan)
    test_session.commit()
    return plan


@pytest.fixture
def subscribe(test_session: Session):
    """Subscribe a user to a plan: subscribe(user_id, plan_id, limit)."""

    def _subscribe(user_id: UUID, plan_id: str, analysis_limit: int) -> Subscription:
        if test_session.get(Plan, plan_id) is None:
            test_session.add(
                Plan(id=plan_id, name=plan_id.title(), analysis_limit=analysis_limit)
            )
        subscription = Subscription(user_id=user_id, plan_id=plan_id, status="active")
        test_session.add(subscription)
        test_session.commit()
        return subscription

    return _subscribe


@pytest.fixture
def test_monitor(test_session: Session, user_id: UUID) -> BrandMonitor:
    """Create a brand monitor with two enabled questions and one disabled."""
    monitor = BrandMonitor(
        user_id=user_id,
        name="Acme watch",
        brand_names=["Acme", "AcmeCRM"],
        competitor_brands=[{"name": "Globex", "aliases": ["GlobexCRM"]}],
        industry_keywords=["crm"],
        locale="en",
    )
    test_session.add(monitor)
    test_session.flush()
    test_session.add_all(
        [
            MonitorQuestion(
                user_id=user_id,
                monitor_id=monitor.id,
                core_keyword="crm",
                question="best crm for startups",
                intent_type="recommendation",
                sort_order=1,
            ),
            MonitorQuestion(
                user_id=user_id,
                monitor_id=monitor.id,
                core_keyword="crm",
                question="acme vs globex",
                intent_type="comparison",
                sort_order=2,
            ),
            MonitorQuestion(
                user_id=user_id,
                monitor_id=monitor.id,
                core_keyword="crm",
                question="disabled question",
                intent_type="review",
                sort_order=3,
                enabled=False,
            ),
        ]
    )
    test_session.commit()
    return monitor


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        database_url="sqlite://",
        rate_limit_enabled=True,
        rate_limit_backend="memory",
        enforce_quota=True,
        default_analysis_limit=5,
        log_level="WARNING",
    )


@pytest.fixture
def test_app(test_settings: Settings, test_session_factory):
    """Application wired to the test database."""
    from backend.app.main import create_app

    app = create_app(test_settings, test_session_factory)
    yield app
    app.dependency_overrides.clear()
    app.state.rate_limiter.close()


@pytest.fixture
def test_client(test_app):
    """Create test client; leaving the block runs shutdown, draining detached tasks."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """sse-starlette binds its shutdown event to the loop of the first stream."""
    yield
    AppStatus.should_exit_event = None
