"""
Flakiness evolution over time.

Buckets executions by period and, inside each period, counts the distinct
tests seen, the status changes between their consecutive executions and the
tests that changed status at least once.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.constants import AGGREGATIONS, DEFAULT_AGGREGATION
from app.services.date_buckets import format_date
from app.services.flakiness_analyzer import sort_chronologically
from app.services.record_store import ExecutionRecord
from app.utils.helpers import percentage

logger = logging.getLogger(__name__)


@dataclass
class _PeriodTestState:
    last_status: Optional[str] = None
    status_changes: int = 0


@dataclass
class _Period:
    tests: Dict[str, _PeriodTestState] = field(default_factory=dict)
    status_changes: int = 0

    def add(self, execution: ExecutionRecord) -> None:
        state = self.tests.setdefault(execution.identifier, _PeriodTestState())
        if state.last_status is not None and state.last_status != execution.status:
            state.status_changes += 1
            self.status_changes += 1
        state.last_status = execution.status

    @property
    def total_tests(self) -> int:
        return len(self.tests)

    @property
    def flaky_tests(self) -> int:
        return sum(1 for state in self.tests.values() if state.status_changes > 0)


def normalize_aggregation(value: Optional[str]) -> str:
    """Return ``value`` if it is a supported aggregation mode, otherwise the default."""
    if value in AGGREGATIONS:
        return value
    if value:
        logger.debug(f"Unsupported aggregation '{value}', falling back to '{DEFAULT_AGGREGATION}'")
    return DEFAULT_AGGREGATION


def empty_timeline() -> Dict[str, Any]:
    return {
        'timeline': [],
        'summary': {
            'total_tests': 0,
            'total_flaky_tests': 0,
            'average_flakiness_score': 0.0,
        },
    }


def build_flakiness_timeline(
    executions: List[ExecutionRecord],
    group_by: str,
    aggregation: str
) -> Dict[str, Any]:
    """
    Build the flakiness timeline and its summary.

    Status changes are only counted between executions that fall in the same
    period. The summary reports the largest per-period test and flaky test
    counts (not sums), and the mean of the per-period flakiness rates.

    Args:
        executions: Execution records in any order
        group_by: day, week or month
        aggregation: "count" or "percentage"; percentage adds flakiness_rate
            and average_status_change_rate to every entry

    Returns:
        Dict with timeline (chronological entries) and summary
    """
    if not executions:
        return empty_timeline()

    periods: Dict[str, _Period] = {}
    for execution in sort_chronologically(executions):
        period = periods.setdefault(format_date(execution.run_created_at, group_by), _Period())
        period.add(execution)

    timeline = []
    flakiness_rates = []
    for date, period in periods.items():
        flakiness_rate = percentage(period.flaky_tests, period.total_tests)
        flakiness_rates.append(flakiness_rate)

        entry = {
            'date': date,
            'total_tests': period.total_tests,
            'flaky_tests': period.flaky_tests,
            'status_changes': period.status_changes,
        }
        if aggregation == 'percentage':
            entry['flakiness_rate'] = flakiness_rate
            entry['average_status_change_rate'] = period.status_changes / period.total_tests
        timeline.append(entry)

    summary = {
        'total_tests': max(period.total_tests for period in periods.values()),
        'total_flaky_tests': max(period.flaky_tests for period in periods.values()),
        'average_flakiness_score': sum(flakiness_rates) / len(flakiness_rates),
    }

    return {'timeline': timeline, 'summary': summary}
