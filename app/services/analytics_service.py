"""
Test analytics service.

Entry points used by the analytics router. Each call loads a fresh snapshot
of the organization's records from the record store and computes the report
in memory; nothing is cached or written back.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.services import aggregation, flakiness_analyzer, flakiness_timeline, impact_scorer
from app.services.date_buckets import normalize_timeframe, resolve_date_range
from app.services.flakiness_analyzer import FlakyAnalysisOptions
from app.services.record_store import find_test_executions, find_test_runs

logger = logging.getLogger(__name__)


def get_test_trends(
    db: Session,
    organization_id: str,
    timeframe: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    framework: Optional[str] = None,
    browser: Optional[str] = None
) -> Dict[str, Any]:
    """
    Overview report: run summary, status breakdown, framework/browser success
    tables, run timeline and execution duration statistics.

    Args:
        db: Database session
        organization_id: Tenant
        timeframe: day, week or month (unsupported values use the default)
        start_date: Optional ISO-8601 lower bound on run creation time
        end_date: Optional ISO-8601 upper bound on run creation time
        framework: Optional framework filter
        browser: Optional browser filter

    Returns:
        Trends report dict

    Raises:
        ValueError: If a date is not valid ISO-8601
        SQLAlchemyError: If the record store is unavailable
    """
    settings = get_settings()
    timeframe = normalize_timeframe(timeframe, settings.DEFAULT_TIMEFRAME)
    date_range = resolve_date_range(start_date, end_date)

    runs = find_test_runs(db, organization_id, date_range, framework=framework, browser=browser)
    executions = find_test_executions(db, organization_id, date_range, framework=framework, browser=browser)

    logger.debug(
        f"Building trends for organization {organization_id}: "
        f"{len(runs)} runs, {len(executions)} executions, timeframe={timeframe}"
    )
    return aggregation.build_trends_report(runs, executions, timeframe)


def get_detailed_trends(
    db: Session,
    organization_id: str,
    timeframe: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    framework: Optional[str] = None,
    browser: Optional[str] = None
) -> Dict[str, Any]:
    """
    Detailed trends: run timeline with flaky counts, duration trends,
    per-test distribution and environment usage, optionally restricted to
    one framework and/or browser.
    """
    settings = get_settings()
    timeframe = normalize_timeframe(timeframe, settings.DEFAULT_TIMEFRAME)
    date_range = resolve_date_range(start_date, end_date)

    runs = find_test_runs(db, organization_id, date_range, framework=framework, browser=browser)

    logger.debug(f"Building detailed trends for organization {organization_id}: {len(runs)} runs")
    return aggregation.build_detailed_trends_report(runs, timeframe)


def get_flaky_tests(
    db: Session,
    organization_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Basic flaky test list, highest flakiness score first."""
    settings = get_settings()
    date_range = resolve_date_range(start_date, end_date)

    executions = find_test_executions(db, organization_id, date_range, newest_first=True)
    return flakiness_analyzer.analyze_flaky_tests(executions, settings.DEFAULT_RECENT_EXECUTIONS)


def get_advanced_flaky_tests(
    db: Session,
    organization_id: str,
    options: Optional[FlakyAnalysisOptions] = None,
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    """
    Advanced flaky test analysis with patterns, trend, confidence and impact.

    Args:
        db: Database session
        organization_id: Tenant
        options: Analysis options (defaults when omitted)
        now: Reference time for ``options.time_window``

    Returns:
        Reports sorted by ``options.sort_by``
    """
    settings = get_settings()
    options = options or FlakyAnalysisOptions()
    date_range = resolve_date_range(options.start_date, options.end_date, options.time_window, now)

    executions = find_test_executions(db, organization_id, date_range, newest_first=False)

    reports = flakiness_analyzer.analyze_advanced_flaky_tests(
        executions, options, settings.DEFAULT_RECENT_EXECUTIONS
    )
    impact_scorer.apply_impact_scores(reports, executions)
    return impact_scorer.sort_flaky_tests(reports, options.sort_by)


def get_flaky_tests_timeline(
    db: Session,
    organization_id: str,
    identifier: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    group_by: Optional[str] = None,
    aggregation_mode: Optional[str] = None
) -> Dict[str, Any]:
    """
    Flakiness evolution per period, optionally for a single test identifier.

    Returns:
        Dict with timeline and summary
    """
    settings = get_settings()
    group_by = normalize_timeframe(group_by, settings.DEFAULT_TIMEFRAME)
    aggregation_mode = flakiness_timeline.normalize_aggregation(aggregation_mode)
    date_range = resolve_date_range(start_date, end_date)

    executions = find_test_executions(
        db, organization_id, date_range, identifier=identifier, newest_first=False
    )
    return flakiness_timeline.build_flakiness_timeline(executions, group_by, aggregation_mode)
