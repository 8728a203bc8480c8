"""
Impact scoring for flaky tests.

Weighs a test's flakiness against the share of CI runs it broke:
impactScore = flakinessScore * 0.6 + impactPercentage * 0.4, where
impactPercentage is the percentage of observed runs in which the test had at
least one failed execution.
"""
import logging
from typing import Any, Dict, List, Set

from app.constants import (
    DEFAULT_SORT_BY,
    IMPACT_FLAKINESS_WEIGHT,
    IMPACT_RUNS_AFFECTED_WEIGHT,
    SORT_BY_FAILURE_RATE,
    SORT_BY_FLAKINESS,
    SORT_BY_IMPACT,
)
from app.models.db_models import TestStatusEnum
from app.services.record_store import ExecutionRecord
from app.utils.helpers import percentage

logger = logging.getLogger(__name__)

_SORT_KEYS = {
    SORT_BY_FLAKINESS: lambda report: report['flakiness_score'],
    SORT_BY_IMPACT: lambda report: report['impact']['impact_score'],
    SORT_BY_FAILURE_RATE: lambda report: report['failure_rate'],
}


def collect_failed_runs(executions: List[ExecutionRecord]) -> Dict[str, Set[str]]:
    """Map each identifier to the IDs of runs where it failed at least once."""
    failed_runs: Dict[str, Set[str]] = {}
    for execution in executions:
        if execution.status == TestStatusEnum.FAILED:
            failed_runs.setdefault(execution.identifier, set()).add(execution.test_run_id)
    return failed_runs


def calculate_impact(flakiness_score: float, runs_affected: int, total_runs: int) -> Dict[str, Any]:
    """
    Combine flakiness and run coverage into one impact score.

    Args:
        flakiness_score: Flakiness score (percent)
        runs_affected: Distinct runs where the test failed
        total_runs: Distinct runs observed

    Returns:
        Dict with runs_affected, total_runs, impact_percentage, impact_score
    """
    impact_percentage = percentage(runs_affected, total_runs)
    return {
        'runs_affected': runs_affected,
        'total_runs': total_runs,
        'impact_percentage': impact_percentage,
        'impact_score': flakiness_score * IMPACT_FLAKINESS_WEIGHT + impact_percentage * IMPACT_RUNS_AFFECTED_WEIGHT,
    }


def apply_impact_scores(
    reports: List[Dict[str, Any]],
    executions: List[ExecutionRecord]
) -> List[Dict[str, Any]]:
    """
    Attach an ``impact`` entry to every flaky test report.

    Args:
        reports: Flaky test reports (modified in place)
        executions: The full execution set the reports were computed from

    Returns:
        The same list of reports
    """
    total_runs = len({execution.test_run_id for execution in executions})
    failed_runs = collect_failed_runs(executions)

    for report in reports:
        runs_affected = len(failed_runs.get(report['identifier'], ()))
        report['impact'] = calculate_impact(report['flakiness_score'], runs_affected, total_runs)

    return reports


def sort_flaky_tests(reports: List[Dict[str, Any]], sort_by: str) -> List[Dict[str, Any]]:
    """
    Sort reports descending by the selected metric.

    Unknown sort keys sort by flakiness score. Ties keep their input order.
    """
    key = _SORT_KEYS.get(sort_by)
    if key is None:
        logger.debug(f"Unsupported sort key '{sort_by}', sorting by {DEFAULT_SORT_BY}")
        key = _SORT_KEYS[DEFAULT_SORT_BY]
    return sorted(reports, key=key, reverse=True)
