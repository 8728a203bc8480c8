"""
Aggregation engine for test run and test execution statistics.

Pure functions over record store snapshots: run summaries, status breakdowns,
per-environment success tables, bucketed timelines and duration statistics.
Every function accepts empty input and returns a zeroed / empty result.
"""
import logging
import math
from collections import Counter
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from app.constants import DURATION_PERCENTILE, NO_SUITE_LABEL, UNKNOWN_ENVIRONMENT
from app.models.db_models import TestRunStatusEnum, TestStatusEnum
from app.services.date_buckets import format_date
from app.services.record_store import ExecutionRecord, RunRecord
from app.utils.helpers import percentage, safe_duration

logger = logging.getLogger(__name__)


@dataclass
class _OutcomeCounts:
    total: int = 0
    passed: int = 0
    failed: int = 0


@dataclass
class _RunBucket:
    total: int = 0
    passed: int = 0
    failed: int = 0
    flaky: int = 0
    duration: float = 0.0


@dataclass
class _DurationBucket:
    total: float = 0.0
    count: int = 0
    min: float = 0.0
    max: float = 0.0


@dataclass
class _TestDistribution:
    total_runs: int = 0
    passed: int = 0
    failed: int = 0
    avg_duration: float = 0.0


def _environment_label(value: Optional[str]) -> str:
    return value if value else UNKNOWN_ENVIRONMENT


def _duration_or_zero(value: Any) -> float:
    duration = safe_duration(value)
    return duration if duration is not None else 0.0


def _run_passed(run: RunRecord) -> bool:
    """A run counts as passed only if every one of its executions passed."""
    return all(e.status == TestStatusEnum.PASSED for e in run.executions)


def calculate_summary(runs: List[RunRecord]) -> Dict[str, Any]:
    """
    Summarize test runs.

    ``successRate`` counts completed runs and ``failureRate`` counts failed
    runs; other statuses (running, cancelled, ...) count towards neither.

    Args:
        runs: Run records

    Returns:
        Dict with total_runs, success_rate, failure_rate, average_duration
    """
    total = len(runs)
    successful = sum(1 for run in runs if run.status == TestRunStatusEnum.COMPLETED)
    failed = sum(1 for run in runs if run.status == TestRunStatusEnum.FAILED)
    total_duration = sum(_duration_or_zero(run.duration) for run in runs)

    return {
        'total_runs': total,
        'success_rate': percentage(successful, total),
        'failure_rate': percentage(failed, total),
        'average_duration': total_duration / total if total else 0.0,
    }


def calculate_status_breakdown(executions: List[ExecutionRecord]) -> Dict[str, int]:
    """Count executions per status, in first-seen status order."""
    return dict(Counter(execution.status for execution in executions))


def _calculate_environment_stats(
    executions: List[ExecutionRecord],
    key: Callable[[ExecutionRecord], Optional[str]],
    label: str
) -> List[Dict[str, Any]]:
    stats: Dict[str, _OutcomeCounts] = {}

    for execution in executions:
        bucket = stats.setdefault(_environment_label(key(execution)), _OutcomeCounts())
        bucket.total += 1
        if execution.status == TestStatusEnum.PASSED:
            bucket.passed += 1
        elif execution.status == TestStatusEnum.FAILED:
            bucket.failed += 1

    return [
        {
            label: value,
            'total': counts.total,
            'passed': counts.passed,
            'failed': counts.failed,
            'success_rate': percentage(counts.passed, counts.total),
        }
        for value, counts in stats.items()
    ]


def calculate_framework_stats(executions: List[ExecutionRecord]) -> List[Dict[str, Any]]:
    """Execution success rate per test framework of the parent run."""
    return _calculate_environment_stats(executions, lambda e: e.framework, 'framework')


def calculate_browser_stats(executions: List[ExecutionRecord]) -> List[Dict[str, Any]]:
    """Execution success rate per browser of the parent run."""
    return _calculate_environment_stats(executions, lambda e: e.browser, 'browser')


def _bucket_runs(runs: List[RunRecord], timeframe: str) -> Dict[str, _RunBucket]:
    buckets: Dict[str, _RunBucket] = {}

    for run in runs:
        bucket = buckets.setdefault(format_date(run.created_at, timeframe), _RunBucket())
        bucket.total += 1
        bucket.duration += _duration_or_zero(run.duration)

        if _run_passed(run):
            bucket.passed += 1
        else:
            bucket.failed += 1

        if any(e.status == TestStatusEnum.FLAKY for e in run.executions):
            bucket.flaky += 1

    return buckets


def calculate_timeline(runs: List[RunRecord], timeframe: str) -> List[Dict[str, Any]]:
    """
    Bucket runs by time period with per-run pass/fail counts.

    Args:
        runs: Run records, ordered by creation time
        timeframe: day, week or month

    Returns:
        One entry per bucket in first-seen order
    """
    return [
        {
            'date': date,
            'total': bucket.total,
            'passed': bucket.passed,
            'failed': bucket.failed,
            'duration': bucket.duration,
            'success_rate': percentage(bucket.passed, bucket.total),
            'average_duration': bucket.duration / bucket.total,
        }
        for date, bucket in _bucket_runs(runs, timeframe).items()
    ]


def calculate_timeline_trends(runs: List[RunRecord], timeframe: str) -> List[Dict[str, Any]]:
    """Detailed variant of the run timeline, additionally counting runs with flaky executions."""
    return [
        {
            'date': date,
            'total_runs': bucket.total,
            'passed': bucket.passed,
            'failed': bucket.failed,
            'flaky': bucket.flaky,
            'total_duration': bucket.duration,
            'avg_duration': bucket.duration / bucket.total,
            'success_rate': percentage(bucket.passed, bucket.total),
        }
        for date, bucket in _bucket_runs(runs, timeframe).items()
    ]


def percentile_nearest_rank(sorted_values: List[float], fraction: float) -> float:
    """
    Value at index floor(n * fraction) of an ascending list (no interpolation).

    Returns 0.0 for an empty list.
    """
    if not sorted_values:
        return 0.0
    index = min(int(math.floor(len(sorted_values) * fraction)), len(sorted_values) - 1)
    return sorted_values[index]


def calculate_duration_stats(executions: List[ExecutionRecord]) -> Dict[str, float]:
    """
    Min / max / average / p95 of execution durations.

    Executions without a usable duration are skipped.

    Returns:
        Dict with min, max, average, p95 (all zero when no durations)
    """
    durations = []
    skipped = 0
    for execution in executions:
        duration = safe_duration(execution.duration)
        if duration is None:
            if execution.duration is not None:
                skipped += 1
            continue
        durations.append(duration)

    if skipped:
        logger.debug(f"Skipped {skipped} executions with malformed durations")

    if not durations:
        return {'min': 0.0, 'max': 0.0, 'average': 0.0, 'p95': 0.0}

    durations.sort()
    return {
        'min': durations[0],
        'max': durations[-1],
        'average': sum(durations) / len(durations),
        'p95': percentile_nearest_rank(durations, DURATION_PERCENTILE),
    }


def calculate_duration_trends(runs: List[RunRecord], timeframe: str) -> Dict[str, Dict[str, float]]:
    """Run duration total / count / min / max / avg per time bucket."""
    buckets: Dict[str, _DurationBucket] = {}

    for run in runs:
        duration = _duration_or_zero(run.duration)
        date = format_date(run.created_at, timeframe)
        bucket = buckets.get(date)
        if bucket is None:
            bucket = buckets[date] = _DurationBucket(min=duration, max=duration)

        bucket.total += duration
        bucket.count += 1
        bucket.min = min(bucket.min, duration)
        bucket.max = max(bucket.max, duration)

    return {
        date: {
            'total': bucket.total,
            'count': bucket.count,
            'min': bucket.min,
            'max': bucket.max,
            'avg': bucket.total / bucket.count,
        }
        for date, bucket in buckets.items()
    }


def calculate_test_distribution(runs: List[RunRecord]) -> List[Dict[str, Any]]:
    """
    Per-test outcome table keyed by "<suite>:<name>".

    Any status other than passed counts as failed here.
    """
    distribution: Dict[str, _TestDistribution] = {}

    for run in runs:
        for execution in run.executions:
            key = f"{execution.suite or NO_SUITE_LABEL}:{execution.name}"
            stats = distribution.setdefault(key, _TestDistribution())

            stats.total_runs += 1
            if execution.status == TestStatusEnum.PASSED:
                stats.passed += 1
            else:
                stats.failed += 1
            stats.avg_duration = (
                stats.avg_duration * (stats.total_runs - 1) + _duration_or_zero(execution.duration)
            ) / stats.total_runs

    return [
        {
            'test': key,
            'total_runs': stats.total_runs,
            'passed': stats.passed,
            'failed': stats.failed,
            'avg_duration': stats.avg_duration,
            'success_rate': percentage(stats.passed, stats.total_runs),
        }
        for key, stats in distribution.items()
    ]


def calculate_environment_stats(runs: List[RunRecord]) -> Dict[str, Dict[str, int]]:
    """Number of runs per framework, browser and platform."""
    frameworks = Counter(_environment_label(run.framework) for run in runs)
    browsers = Counter(_environment_label(run.browser) for run in runs)
    platforms = Counter(_environment_label(run.platform) for run in runs)

    return {
        'frameworks': dict(frameworks),
        'browsers': dict(browsers),
        'platforms': dict(platforms),
    }


def build_trends_report(
    runs: List[RunRecord],
    executions: List[ExecutionRecord],
    timeframe: str
) -> Dict[str, Any]:
    """
    Assemble the overview report.

    Args:
        runs: Run records (ascending creation time)
        executions: Execution records filtered with the same predicate as ``runs``
        timeframe: Bucketing granularity

    Returns:
        Dict with summary, status_breakdown, framework_stats, browser_stats,
        timeline and duration
    """
    return {
        'summary': calculate_summary(runs),
        'status_breakdown': calculate_status_breakdown(executions),
        'framework_stats': calculate_framework_stats(executions),
        'browser_stats': calculate_browser_stats(executions),
        'timeline': calculate_timeline(runs, timeframe),
        'duration': calculate_duration_stats(executions),
    }


def build_detailed_trends_report(runs: List[RunRecord], timeframe: str) -> Dict[str, Any]:
    """Assemble the detailed trends report from (optionally filtered) runs."""
    return {
        'timeline_trends': calculate_timeline_trends(runs, timeframe),
        'duration_trends': calculate_duration_trends(runs, timeframe),
        'test_distribution': calculate_test_distribution(runs),
        'environment_stats': calculate_environment_stats(runs),
    }
