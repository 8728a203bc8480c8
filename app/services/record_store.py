"""
Record store access for the analytics services.

Provides the two organization-scoped reads the analytics need (test runs with
their executions, and executions joined with their run metadata) and returns
them as plain snapshot records, so that every computation downstream is a pure
function over data loaded once per request.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, contains_eager, selectinload

from app.models.db_models import TestRun, TestExecution
from app.services.date_buckets import DateRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionRecord:
    """A test execution together with the metadata of its parent run."""
    id: str
    test_run_id: str
    identifier: str
    name: str
    status: str
    run_created_at: datetime
    suite: Optional[str] = None
    attempt: int = 1
    duration: Optional[float] = None
    framework: Optional[str] = None
    browser: Optional[str] = None
    platform: Optional[str] = None
    branch: Optional[str] = None


@dataclass
class RunRecord:
    """A test run with its executions."""
    id: str
    created_at: datetime
    status: str
    duration: Optional[float] = None
    framework: Optional[str] = None
    browser: Optional[str] = None
    platform: Optional[str] = None
    branch: Optional[str] = None
    executions: List[ExecutionRecord] = field(default_factory=list)


def build_run_conditions(
    organization_id: str,
    date_range: DateRange,
    framework: Optional[str] = None,
    browser: Optional[str] = None
) -> list:
    """
    Filter conditions on TestRun shared by both record store reads.

    Both reads must use exactly this predicate so that the run and execution
    result sets describe the same population.
    """
    conditions = [TestRun.organization_id == organization_id]
    if date_range.start is not None:
        conditions.append(TestRun.created_at >= date_range.start)
    if date_range.end is not None:
        conditions.append(TestRun.created_at <= date_range.end)
    if framework:
        conditions.append(TestRun.framework == framework)
    if browser:
        conditions.append(TestRun.browser == browser)
    return conditions


def _to_execution_record(execution: TestExecution, run: TestRun) -> ExecutionRecord:
    return ExecutionRecord(
        id=execution.id,
        test_run_id=run.id,
        identifier=execution.identifier,
        name=execution.name,
        status=execution.status,
        run_created_at=run.created_at,
        suite=execution.suite,
        attempt=execution.attempt or 1,
        duration=execution.duration,
        framework=run.framework,
        browser=run.browser,
        platform=run.platform,
        branch=run.branch,
    )


def find_test_runs(
    db: Session,
    organization_id: str,
    date_range: Optional[DateRange] = None,
    framework: Optional[str] = None,
    browser: Optional[str] = None
) -> List[RunRecord]:
    """
    Get all test runs of an organization with their executions.

    Args:
        db: Database session
        organization_id: Tenant to read
        date_range: Optional creation-time range
        framework: Optional exact framework filter
        browser: Optional exact browser filter

    Returns:
        Run records ordered by creation time ascending

    Raises:
        SQLAlchemyError: If the record store query fails
    """
    date_range = date_range or DateRange()

    try:
        runs = db.query(TestRun)\
            .options(selectinload(TestRun.test_executions))\
            .filter(*build_run_conditions(organization_id, date_range, framework, browser))\
            .order_by(TestRun.created_at.asc(), TestRun.id.asc())\
            .all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load test runs for organization {organization_id}: {e}", exc_info=True)
        raise

    records = []
    for run in runs:
        executions = sorted(run.test_executions, key=lambda e: (e.attempt or 1, e.id))
        records.append(RunRecord(
            id=run.id,
            created_at=run.created_at,
            status=run.status,
            duration=run.duration,
            framework=run.framework,
            browser=run.browser,
            platform=run.platform,
            branch=run.branch,
            executions=[_to_execution_record(execution, run) for execution in executions],
        ))

    logger.debug(f"Loaded {len(records)} test runs for organization {organization_id}")
    return records


def find_test_executions(
    db: Session,
    organization_id: str,
    date_range: Optional[DateRange] = None,
    identifier: Optional[str] = None,
    framework: Optional[str] = None,
    browser: Optional[str] = None,
    newest_first: bool = True
) -> List[ExecutionRecord]:
    """
    Get all test executions of an organization joined with their run metadata.

    Executions of the same run keep attempt order (latest attempt first when
    ``newest_first`` is set).

    Args:
        db: Database session
        organization_id: Tenant to read
        date_range: Optional run creation-time range
        identifier: Optional test identifier to restrict to
        framework: Optional exact framework filter on the parent run
        browser: Optional exact browser filter on the parent run
        newest_first: Order by run creation time descending (default) or ascending

    Returns:
        Execution records

    Raises:
        SQLAlchemyError: If the record store query fails
    """
    date_range = date_range or DateRange()

    query = db.query(TestExecution)\
        .join(TestExecution.test_run)\
        .options(contains_eager(TestExecution.test_run))\
        .filter(*build_run_conditions(organization_id, date_range, framework, browser))

    if identifier:
        query = query.filter(TestExecution.identifier == identifier)

    if newest_first:
        query = query.order_by(
            TestRun.created_at.desc(), TestRun.id.desc(),
            TestExecution.attempt.desc(), TestExecution.id.desc()
        )
    else:
        query = query.order_by(
            TestRun.created_at.asc(), TestRun.id.asc(),
            TestExecution.attempt.asc(), TestExecution.id.asc()
        )

    try:
        executions = query.all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load test executions for organization {organization_id}: {e}", exc_info=True)
        raise

    records = [_to_execution_record(execution, execution.test_run) for execution in executions]
    logger.debug(f"Loaded {len(records)} test executions for organization {organization_id}")
    return records
