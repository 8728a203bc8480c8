"""
SQLAlchemy database models for the test analytics record store.

Read-side mapping of the TestRun / TestExecution tables written by the
test-run ingestion service. Column names follow the shared schema
(camelCase, quoted); attributes are exposed in snake_case. The analytics
services never write through these models.
"""
from datetime import datetime, timezone
import enum
from sqlalchemy import Column, Integer, String, Float, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Return current UTC time as a naive datetime (the store keeps UTC without offset)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TestRunStatusEnum(str, enum.Enum):
    """Lifecycle status of one CI invocation."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    TIMEOUT = "timeout"
    ERROR = "error"


class TestStatusEnum(str, enum.Enum):
    """Outcome of a single test execution attempt.

    Stored as plain strings so that an unexpected value coming from the
    ingestion side is reported as-is instead of failing the whole query.
    """
    QUEUED = "queued"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"
    TIMEOUT = "timeout"
    ERROR = "error"
    FLAKY = "flaky"
    QUARANTINED = "quarantined"


class TestRun(Base):
    """One CI invocation reported by an organization."""
    __tablename__ = "TestRun"

    id = Column(String(36), primary_key=True)
    organization_id = Column("organizationId", String(36), nullable=False)
    name = Column(String(255))
    created_at = Column("createdAt", DateTime, nullable=False, default=utcnow)
    updated_at = Column("updatedAt", DateTime, default=utcnow, onupdate=utcnow)
    status = Column(String(20), nullable=False, default=TestRunStatusEnum.QUEUED.value)
    duration = Column(Float)  # seconds
    commit = Column(String(64))
    branch = Column(String(255))
    framework = Column(String(100))
    browser = Column(String(100))
    browser_version = Column("browserVersion", String(50))
    platform = Column(String(100))
    triggered_by = Column("triggeredBy", String(255))

    # Relationships
    test_executions = relationship("TestExecution", back_populates="test_run")

    __table_args__ = (
        Index('TestRun_status_idx', 'status'),
        Index('TestRun_createdAt_idx', 'createdAt'),
        Index('TestRun_framework_browser_platform_idx', 'framework', 'browser', 'platform'),
    )

    def __repr__(self):
        return f"<TestRun(id='{self.id}', status='{self.status}', created_at={self.created_at})>"


class TestExecution(Base):
    """One test's outcome within one attempt of a test run."""
    __tablename__ = "TestExecution"

    id = Column(String(36), primary_key=True)
    test_run_id = Column("testRunId", String(36), ForeignKey("TestRun.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(500), nullable=False)
    suite = Column(String(500))
    description = Column(Text)
    identifier = Column(String(32), nullable=False)  # md5(organization:suite:name)
    attempt = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=TestStatusEnum.QUEUED.value)
    duration = Column(Float)
    logs = Column(Text)
    error_message = Column("errorMessage", Text)
    stack_trace = Column("stackTrace", Text)
    screenshot_key = Column("screenshotKey", String(500))
    video_key = Column("videoKey", String(500))
    started_at = Column("startedAt", DateTime)
    completed_at = Column("completedAt", DateTime)

    # Relationships
    test_run = relationship("TestRun", back_populates="test_executions")

    __table_args__ = (
        Index('TestExecution_status_idx', 'status'),
        Index('TestExecution_identifier_idx', 'identifier'),
        Index('TestExecution_testRunId_attempt_idx', 'testRunId', 'attempt'),
        Index('TestExecution_identifier_status_idx', 'identifier', 'status'),
    )

    def __repr__(self):
        return f"<TestExecution(name='{self.name}', status='{self.status}', attempt={self.attempt})>"
