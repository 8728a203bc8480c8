"""
Pytest configuration and fixtures for testing.
"""
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path
TESTS_DIR = Path(__file__).resolve().parent
PROJECT_DIR = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_DIR))

# Settings are cached on first import; configure the test environment before that
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from app.models import db_models
from app.services.record_store import ExecutionRecord, RunRecord
from app.utils.identifiers import generate_test_identifier

ORGANIZATION_ID = "org-1"


@pytest.fixture(scope="function")
def test_db():
    """
    Create a temporary in-memory database for testing.
    Each test gets a fresh database.

    StaticPool keeps a single connection so the TestClient worker thread
    sees the same in-memory database as the fixtures.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    # Create all tables
    db_models.Base.metadata.create_all(engine)

    # Create session factory
    TestSessionLocal = sessionmaker(bind=engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        db_models.Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def add_run(test_db):
    """
    Factory fixture inserting one test run with its executions.

    Executions are given as (suite, name, status) or
    (suite, name, status, duration) tuples.

    Usage:
        run = add_run(datetime(2023, 1, 15, 12), [("auth", "login", "passed")])
    """
    def _add_run(
        created_at,
        executions=(),
        organization_id=ORGANIZATION_ID,
        status=db_models.TestRunStatusEnum.COMPLETED.value,
        duration=10.0,
        framework="playwright",
        browser="chromium",
        platform="linux",
        branch="main",
    ):
        run = db_models.TestRun(
            id=str(uuid.uuid4()),
            organization_id=organization_id,
            name="CI run",
            created_at=created_at,
            status=status,
            duration=duration,
            framework=framework,
            browser=browser,
            platform=platform,
            branch=branch,
        )
        for execution in executions:
            suite, name, execution_status = execution[:3]
            execution_duration = execution[3] if len(execution) > 3 else 1.0
            run.test_executions.append(db_models.TestExecution(
                id=str(uuid.uuid4()),
                name=name,
                suite=suite,
                identifier=generate_test_identifier(suite, name, organization_id),
                attempt=1,
                status=execution_status,
                duration=execution_duration,
            ))
        test_db.add(run)
        test_db.commit()
        return run

    return _add_run


@pytest.fixture(scope="function")
def make_execution():
    """
    Factory fixture building ExecutionRecord snapshots for pure service tests.

    Each call gets a unique execution ID and, unless given, its own run ID.
    """
    counter = {"value": 0}

    def _make_execution(
        status,
        run_created_at=datetime(2023, 1, 2, 12),
        identifier="test-a",
        name=None,
        suite="suite",
        test_run_id=None,
        **overrides
    ):
        counter["value"] += 1
        return ExecutionRecord(
            id=f"exec-{counter['value']:04d}",
            test_run_id=test_run_id or f"run-{counter['value']:04d}",
            identifier=identifier,
            name=name or identifier,
            status=status,
            run_created_at=run_created_at,
            suite=suite,
            **overrides
        )

    return _make_execution


@pytest.fixture(scope="function")
def make_run():
    """Factory fixture building RunRecord snapshots for pure service tests."""
    counter = {"value": 0}

    def _make_run(created_at, statuses=(), status="completed", duration=10.0, **overrides):
        counter["value"] += 1
        run_id = f"run-{counter['value']:04d}"
        executions = [
            ExecutionRecord(
                id=f"{run_id}-exec-{index}",
                test_run_id=run_id,
                identifier=f"test-{index}",
                name=f"test {index}",
                status=execution_status,
                run_created_at=created_at,
                suite="suite",
                duration=1.0,
            )
            for index, execution_status in enumerate(statuses)
        ]
        return RunRecord(
            id=run_id,
            created_at=created_at,
            status=status,
            duration=duration,
            executions=executions,
            **overrides
        )

    return _make_run


@pytest.fixture(scope="function")
def override_get_db(test_db):
    """
    Override FastAPI's database dependency to use the test database.

    Usage in test files:
        def test_endpoint(client, add_run, override_get_db):
            # client will now use the same DB as add_run
            response = client.get("/api/v1/test-analytics/overview", headers=ORG_HEADERS)
    """
    from app.main import app
    from app.database import get_db

    def get_test_db():
        try:
            yield test_db
        finally:
            pass  # Don't close test_db here, conftest handles it

    app.dependency_overrides[get_db] = get_test_db
    yield
    # Cleanup: Remove override after test
    app.dependency_overrides.clear()
