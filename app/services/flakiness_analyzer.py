"""
Flakiness analyzer for test execution history.

Groups executions by test identifier and measures how often a test's status
flips between consecutive executions. The basic analysis reports failure rate
and flakiness score; the advanced analysis adds pattern detection, trend
direction, a confidence level and environment correlations.

A status change is any pair of adjacent executions (ordered by run creation
time) whose statuses differ. flakinessScore = statusChanges / (totalRuns - 1) * 100
and is 0 for tests with fewer than two executions.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.constants import (
    ALTERNATING_CHANGE_RATIO,
    DEFAULT_MIN_EXECUTIONS,
    DEFAULT_MIN_FLAKINESS_SCORE,
    DEFAULT_SORT_BY,
    ENVIRONMENT_DIFFERENCE_THRESHOLD,
    ENVIRONMENT_FACTORS,
    ENVIRONMENT_MIN_EXECUTIONS,
    SORT_OPTIONS,
    TIME_BASED_MIN_FAILURE_RATE,
    TIME_BASED_RELATIVE_FACTOR,
    TREND_CHANGE_THRESHOLD,
    TREND_MIN_EXECUTIONS,
)
from app.models.db_models import TestStatusEnum
from app.services.record_store import ExecutionRecord
from app.utils.helpers import percentage

logger = logging.getLogger(__name__)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

TREND_IMPROVING = "improving"
TREND_STABLE = "stable"
TREND_WORSENING = "worsening"


@dataclass
class FlakyAnalysisOptions:
    """
    Options for the advanced flaky test analysis.

    ``time_window`` (days) only applies when no ``start_date`` is given.
    """
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    min_flakiness_score: float = DEFAULT_MIN_FLAKINESS_SCORE
    min_executions: int = DEFAULT_MIN_EXECUTIONS
    sort_by: str = DEFAULT_SORT_BY
    time_window: Optional[int] = None

    @classmethod
    def build(
        cls,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        min_flakiness_score: Optional[float] = None,
        min_executions: Optional[int] = None,
        sort_by: Optional[str] = None,
        time_window: Optional[int] = None
    ) -> "FlakyAnalysisOptions":
        """
        Build options from optional request values, applying defaults.

        An unsupported ``sort_by`` falls back to sorting by flakiness score.
        """
        if sort_by not in SORT_OPTIONS:
            if sort_by:
                logger.debug(f"Unsupported sortBy '{sort_by}', falling back to '{DEFAULT_SORT_BY}'")
            sort_by = DEFAULT_SORT_BY

        return cls(
            start_date=start_date,
            end_date=end_date,
            min_flakiness_score=(
                DEFAULT_MIN_FLAKINESS_SCORE if min_flakiness_score is None else float(min_flakiness_score)
            ),
            min_executions=DEFAULT_MIN_EXECUTIONS if min_executions is None else int(min_executions),
            sort_by=sort_by,
            time_window=time_window or None,
        )


@dataclass
class TestHistory:
    """Execution history of one test identifier, in the order executions were added."""
    identifier: str
    name: str
    suite: Optional[str] = None
    executions: List[ExecutionRecord] = field(default_factory=list)
    failures: int = 0
    status_changes: int = 0
    last_status: Optional[str] = None

    def add(self, execution: ExecutionRecord) -> None:
        self.executions.append(execution)
        if execution.status == TestStatusEnum.FAILED:
            self.failures += 1
        if self.last_status is not None and self.last_status != execution.status:
            self.status_changes += 1
        self.last_status = execution.status

    @property
    def total_runs(self) -> int:
        return len(self.executions)

    @property
    def failure_rate(self) -> float:
        return percentage(self.failures, self.total_runs)

    @property
    def flakiness_score(self) -> float:
        if self.total_runs < 2:
            return 0.0
        return (self.status_changes / (self.total_runs - 1)) * 100


@dataclass
class _FailureCounts:
    total: int = 0
    failures: int = 0

    @property
    def failure_rate(self) -> float:
        return percentage(self.failures, self.total)


def _is_failure(execution: ExecutionRecord) -> bool:
    return execution.status == TestStatusEnum.FAILED


def sort_chronologically(executions: List[ExecutionRecord]) -> List[ExecutionRecord]:
    """Oldest run first; executions of the same run in attempt order."""
    return sorted(executions, key=lambda e: (e.run_created_at, e.test_run_id, e.attempt, e.id))


def count_status_changes(statuses: List[str]) -> int:
    """Number of adjacent pairs with differing statuses."""
    return sum(1 for previous, current in zip(statuses, statuses[1:]) if previous != current)


def group_executions_by_identifier(executions: List[ExecutionRecord]) -> Dict[str, TestHistory]:
    """
    Build per-test histories.

    Histories keep the order in which each identifier was first seen, and
    executions keep their input order.
    """
    histories: Dict[str, TestHistory] = {}

    for execution in executions:
        history = histories.get(execution.identifier)
        if history is None:
            history = histories[execution.identifier] = TestHistory(
                identifier=execution.identifier,
                name=execution.name,
                suite=execution.suite,
            )
        history.add(execution)

    return histories


def _recent_executions(newest_first: List[ExecutionRecord], limit: int) -> List[Dict[str, Any]]:
    return [
        {'status': execution.status, 'date': execution.run_created_at}
        for execution in newest_first[:limit]
    ]


def analyze_flaky_tests(executions: List[ExecutionRecord], recent_limit: int = 5) -> List[Dict[str, Any]]:
    """
    Basic flaky test analysis.

    Args:
        executions: Execution records ordered by run creation time, newest first
        recent_limit: Number of recent executions to attach per test

    Returns:
        Reports for tests with a flakiness score above zero, highest score
        first. Ties keep the order in which tests were first seen.
    """
    histories = group_executions_by_identifier(executions)

    reports = [
        {
            'identifier': identifier,
            'name': history.name,
            'suite': history.suite,
            'total_runs': history.total_runs,
            'failure_rate': history.failure_rate,
            'flakiness_score': history.flakiness_score,
            'recent_executions': _recent_executions(history.executions, recent_limit),
        }
        for identifier, history in histories.items()
    ]

    flaky = [report for report in reports if report['flakiness_score'] > 0]
    flaky.sort(key=lambda report: report['flakiness_score'], reverse=True)

    logger.debug(f"Basic flaky analysis: {len(flaky)} of {len(histories)} tests flaky")
    return flaky


def _time_bucket_descriptions(executions: List[ExecutionRecord], overall_failure_rate: float) -> List[str]:
    """Describe the day-of-week and hour-of-day buckets that fail unusually often."""
    if overall_failure_rate <= 0:
        return []

    dimensions = (
        (lambda e: e.run_created_at.weekday(), lambda day: f"on {DAY_NAMES[day]}s"),
        (lambda e: e.run_created_at.hour, lambda hour: f"around {hour:02d}:00 UTC"),
    )

    descriptions = []
    for bucket_key, describe in dimensions:
        buckets: Dict[int, _FailureCounts] = {}
        for execution in executions:
            counts = buckets.setdefault(bucket_key(execution), _FailureCounts())
            counts.total += 1
            if _is_failure(execution):
                counts.failures += 1

        worst_bucket = None
        worst_rate = 0.0
        for bucket, counts in buckets.items():
            rate = counts.failure_rate
            if (rate > overall_failure_rate * TIME_BASED_RELATIVE_FACTOR
                    and rate > TIME_BASED_MIN_FAILURE_RATE
                    and rate > worst_rate):
                worst_bucket, worst_rate = bucket, rate

        if worst_bucket is not None:
            descriptions.append(
                f"Fails more often {describe(worst_bucket)} "
                f"({worst_rate:.1f}% vs {overall_failure_rate:.1f}% overall)"
            )

    return descriptions


def find_environment_correlations(executions: List[ExecutionRecord]) -> List[Dict[str, Any]]:
    """
    Find environment values associated with a different failure rate.

    For each factor (browser, framework, platform, branch) and each value seen
    in at least ENVIRONMENT_MIN_EXECUTIONS executions, compares the failure
    rate of executions with that value against all other executions. Values
    whose failure rate differs by more than ENVIRONMENT_DIFFERENCE_THRESHOLD
    percentage points in either direction are reported with the signed
    difference, largest absolute difference first.
    """
    total = len(executions)
    total_failures = sum(1 for execution in executions if _is_failure(execution))
    correlations = []

    for factor in ENVIRONMENT_FACTORS:
        by_value: Dict[str, _FailureCounts] = {}
        for execution in executions:
            value = getattr(execution, factor)
            if not value:
                continue
            counts = by_value.setdefault(value, _FailureCounts())
            counts.total += 1
            if _is_failure(execution):
                counts.failures += 1

        for value, counts in by_value.items():
            other_total = total - counts.total
            if counts.total < ENVIRONMENT_MIN_EXECUTIONS or other_total == 0:
                continue

            other_failure_rate = percentage(total_failures - counts.failures, other_total)
            difference = counts.failure_rate - other_failure_rate
            if abs(difference) > ENVIRONMENT_DIFFERENCE_THRESHOLD:
                correlations.append({
                    'factor': factor,
                    'value': value,
                    'executions': counts.total,
                    'failure_rate': counts.failure_rate,
                    'other_failure_rate': other_failure_rate,
                    'difference': difference,
                })

    correlations.sort(key=lambda c: abs(c['difference']), reverse=True)
    return correlations


def detect_patterns(
    executions: List[ExecutionRecord],
    failure_rate: float,
    correlations: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """
    Classify the flakiness pattern of one test.

    Args:
        executions: The test's executions in chronological order
        failure_rate: The test's overall failure rate (percent)
        correlations: Precomputed environment correlations, if available

    Returns:
        Dict with is_alternating, is_time_based, is_environment_specific,
        is_random and a human readable details string
    """
    if correlations is None:
        correlations = find_environment_correlations(executions)

    details = []

    pairs = len(executions) - 1
    changes = count_status_changes([execution.status for execution in executions])
    is_alternating = pairs > 0 and changes / pairs > ALTERNATING_CHANGE_RATIO
    if is_alternating:
        details.append(f"Alternates between statuses in {changes} of {pairs} consecutive executions")

    time_descriptions = _time_bucket_descriptions(executions, failure_rate)
    details.extend(time_descriptions)

    for correlation in correlations:
        direction = "more" if correlation['difference'] > 0 else "less"
        details.append(
            f"Fails {direction} often with {correlation['factor']} '{correlation['value']}' "
            f"({correlation['failure_rate']:.1f}% vs {correlation['other_failure_rate']:.1f}%)"
        )

    is_time_based = bool(time_descriptions)
    is_environment_specific = bool(correlations)
    is_random = not (is_alternating or is_time_based or is_environment_specific)
    if is_random:
        details.append("No clear pattern detected")

    return {
        'is_alternating': is_alternating,
        'is_time_based': is_time_based,
        'is_environment_specific': is_environment_specific,
        'is_random': is_random,
        'details': "; ".join(details),
    }


def _status_change_rate(statuses: List[str]) -> float:
    if len(statuses) < 2:
        return 0.0
    return count_status_changes(statuses) / (len(statuses) - 1) * 100


def calculate_trend(executions: List[ExecutionRecord]) -> Dict[str, Any]:
    """
    Compare the status-change rate of the older and newer half of the history.

    Requires TREND_MIN_EXECUTIONS executions, otherwise the trend is stable.
    When the older half has no status changes at all, any change in the newer
    half counts as a 100% increase.

    Args:
        executions: The test's executions in chronological order

    Returns:
        Dict with direction (improving / stable / worsening) and rate (percent change)
    """
    if len(executions) < TREND_MIN_EXECUTIONS:
        return {'direction': TREND_STABLE, 'rate': 0.0}

    statuses = [execution.status for execution in executions]
    middle = len(statuses) // 2
    first_rate = _status_change_rate(statuses[:middle])
    second_rate = _status_change_rate(statuses[middle:])

    if first_rate == 0:
        trend_rate = 100.0 if second_rate > 0 else 0.0
    else:
        trend_rate = (second_rate - first_rate) / first_rate * 100

    if trend_rate > TREND_CHANGE_THRESHOLD:
        direction = TREND_WORSENING
    elif trend_rate < -TREND_CHANGE_THRESHOLD:
        direction = TREND_IMPROVING
    else:
        direction = TREND_STABLE

    return {'direction': direction, 'rate': trend_rate}


def calculate_confidence_level(execution_count: int) -> float:
    """
    Confidence (0-100) in a flakiness verdict based on sample size.

    <5 executions: 20; 5-9: 40 + 6 per execution above 5;
    10-19: 70 + 2 per execution above 10; 20+: 90 + 1 per execution above 20, capped at 100.
    """
    n = execution_count
    if n < 5:
        return 20.0
    if n < 10:
        return 40.0 + 6 * (n - 5)
    if n < 20:
        return 70.0 + 2 * (n - 10)
    return 90.0 + min(n - 20, 10)


def analyze_advanced_flaky_tests(
    executions: List[ExecutionRecord],
    options: FlakyAnalysisOptions,
    recent_limit: int = 5
) -> List[Dict[str, Any]]:
    """
    Advanced flaky test analysis (before impact scoring and sorting).

    Tests with fewer than ``options.min_executions`` executions or a flakiness
    score below ``options.min_flakiness_score`` are excluded.

    Args:
        executions: Execution records in any order
        options: Analysis options
        recent_limit: Number of recent executions to attach per test

    Returns:
        Reports in first-seen (chronological) order
    """
    histories = group_executions_by_identifier(sort_chronologically(executions))
    reports = []

    for identifier, history in histories.items():
        if history.total_runs < options.min_executions:
            continue

        flakiness_score = history.flakiness_score
        if flakiness_score < options.min_flakiness_score:
            continue

        chronological = history.executions
        newest_first = list(reversed(chronological))
        correlations = find_environment_correlations(chronological)

        reports.append({
            'identifier': identifier,
            'name': history.name,
            'suite': history.suite,
            'total_runs': history.total_runs,
            'failures': history.failures,
            'status_changes': history.status_changes,
            'failure_rate': history.failure_rate,
            'flakiness_score': flakiness_score,
            'recent_executions': _recent_executions(newest_first, recent_limit),
            'last_execution': newest_first[0].run_created_at,
            'patterns': detect_patterns(chronological, history.failure_rate, correlations),
            'trend': calculate_trend(chronological),
            'confidence_level': calculate_confidence_level(history.total_runs),
            'environment_correlations': correlations,
        })

    logger.debug(f"Advanced flaky analysis: {len(reports)} of {len(histories)} tests retained")
    return reports
