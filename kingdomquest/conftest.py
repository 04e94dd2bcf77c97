# kingdomquest/conftest.py
import os

import pytest

os.environ.setdefault("SKIP_ENV_VALIDATION", "1")


@pytest.fixture
def streak_store():
    from kingdomquest.features.streaks.store import InMemoryStreakStore
    return InMemoryStreakStore()


@pytest.fixture
def streak_service(streak_store):
    from kingdomquest.features.streaks.service import StreakService
    return StreakService(streak_store)


@pytest.fixture
def subscription_store():
    from kingdomquest.features.plans.subscriptions import InMemorySubscriptionStore
    return InMemorySubscriptionStore()


@pytest.fixture
def plan_resolver(subscription_store):
    from kingdomquest.features.plans.service import PlanResolver
    return PlanResolver(subscription_store)


@pytest.fixture
def client(streak_service, plan_resolver):
    """
    TestClient wired to in-memory collaborators.

    Services are injected through dependency overrides so no database is touched.
    """
    from fastapi.testclient import TestClient

    from kingdomquest.features.plans.service import get_plan_resolver
    from kingdomquest.features.streaks.service import get_streak_service
    from kingdomquest.main import app

    app.dependency_overrides[get_streak_service] = lambda: streak_service
    app.dependency_overrides[get_plan_resolver] = lambda: plan_resolver
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sql_database(tmp_path):
    """
    File-backed SQLite database with all tables created.

    Swaps the global engine for the duration of the test.
    """
    from kingdomquest.core.database import create_all_tables, dispose_engine, drop_all_tables, init_engine

    dispose_engine()
    engine = init_engine(f"sqlite:///{tmp_path / 'kingdomquest.db'}")
    create_all_tables()
    try:
        yield engine
    finally:
        drop_all_tables()
        dispose_engine()


@pytest.fixture
def fresh_database_url(tmp_path, monkeypatch):
    """
    Point DATABASE_URL at an empty SQLite file and rebuild the service singletons.

    Nothing is created up front; the real providers must set up the schema.
    """
    from kingdomquest.core.database import dispose_engine
    from kingdomquest.features.plans.service import reset_plan_resolver
    from kingdomquest.features.streaks.service import reset_streak_service

    url = f"sqlite:///{tmp_path / 'fresh.db'}"
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_URL", url)
    dispose_engine()
    reset_streak_service()
    reset_plan_resolver()
    try:
        yield url
    finally:
        dispose_engine()
        reset_streak_service()
        reset_plan_resolver()


@pytest.fixture
def sql_client(fresh_database_url):
    """TestClient using the real dependency providers against a fresh database."""
    from fastapi.testclient import TestClient

    from kingdomquest.main import app

    app.dependency_overrides.clear()
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_metrics():
    from kingdomquest.core.metrics import METRICS
    METRICS.reset()
    yield
