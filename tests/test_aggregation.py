"""
Tests for the aggregation engine (summaries, timelines, duration statistics).
"""
from datetime import datetime

import pytest

from app.constants import UNKNOWN_ENVIRONMENT
from app.services import aggregation
from app.services.record_store import ExecutionRecord


class TestSummary:
    """Tests for run summaries."""

    def test_empty_input_gives_zeroed_summary(self):
        summary = aggregation.calculate_summary([])
        assert summary == {
            'total_runs': 0,
            'success_rate': 0.0,
            'failure_rate': 0.0,
            'average_duration': 0.0,
        }

    def test_rates_count_completed_and_failed_runs(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 1), status="completed", duration=10.0),
            make_run(datetime(2023, 1, 2), status="failed", duration=20.0),
            make_run(datetime(2023, 1, 3), status="running", duration=30.0),
            make_run(datetime(2023, 1, 4), status="completed", duration=40.0),
        ]
        summary = aggregation.calculate_summary(runs)
        assert summary['total_runs'] == 4
        assert summary['success_rate'] == 50.0
        assert summary['failure_rate'] == 25.0
        assert summary['average_duration'] == 25.0

    def test_missing_duration_counts_as_zero(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 1), duration=None),
            make_run(datetime(2023, 1, 2), duration=30.0),
        ]
        assert aggregation.calculate_summary(runs)['average_duration'] == 15.0


class TestExecutionBreakdowns:
    """Tests for status and environment breakdowns."""

    def test_status_breakdown(self, make_execution):
        executions = [
            make_execution("passed"),
            make_execution("failed"),
            make_execution("passed"),
            make_execution("skipped"),
        ]
        assert aggregation.calculate_status_breakdown(executions) == {
            'passed': 2, 'failed': 1, 'skipped': 1
        }

    def test_framework_stats(self, make_execution):
        executions = [
            make_execution("passed", framework="playwright"),
            make_execution("failed", framework="playwright"),
            make_execution("skipped", framework="playwright"),
            make_execution("passed", framework="cypress"),
        ]
        stats = aggregation.calculate_framework_stats(executions)
        assert stats[0] == {
            'framework': 'playwright', 'total': 3, 'passed': 1, 'failed': 1,
            'success_rate': pytest.approx(100 / 3),
        }
        assert stats[1]['framework'] == 'cypress'
        assert stats[1]['success_rate'] == 100.0

    def test_browser_stats_label_missing_values(self, make_execution):
        executions = [make_execution("passed", browser=None), make_execution("failed", browser="")]
        stats = aggregation.calculate_browser_stats(executions)
        assert len(stats) == 1
        assert stats[0]['browser'] == UNKNOWN_ENVIRONMENT
        assert stats[0]['total'] == 2


class TestTimeline:
    """Tests for the bucketed run timeline."""

    def test_run_passes_only_if_all_executions_passed(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 15, 8), ["passed", "passed"], duration=10.0),
            make_run(datetime(2023, 1, 15, 9), ["passed", "failed"], duration=30.0),
            make_run(datetime(2023, 1, 16, 9), ["passed", "skipped"], duration=5.0),
        ]
        timeline = aggregation.calculate_timeline(runs, "day")

        assert [entry['date'] for entry in timeline] == ["2023-01-15", "2023-01-16"]
        first = timeline[0]
        assert first['total'] == 2
        assert first['passed'] == 1
        assert first['failed'] == 1
        assert first['duration'] == 40.0
        assert first['success_rate'] == 50.0
        assert first['average_duration'] == 20.0
        assert timeline[1]['failed'] == 1

    def test_run_without_executions_counts_as_passed(self, make_run):
        timeline = aggregation.calculate_timeline([make_run(datetime(2023, 1, 15))], "month")
        assert timeline == [{
            'date': '2023-01', 'total': 1, 'passed': 1, 'failed': 0,
            'duration': 10.0, 'success_rate': 100.0, 'average_duration': 10.0,
        }]

    def test_empty_timeline(self):
        assert aggregation.calculate_timeline([], "week") == []

    def test_timeline_trends_count_flaky_runs(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 15), ["passed", "flaky"]),
            make_run(datetime(2023, 1, 15), ["passed"]),
        ]
        trends = aggregation.calculate_timeline_trends(runs, "day")
        assert len(trends) == 1
        assert trends[0]['total_runs'] == 2
        assert trends[0]['flaky'] == 1
        assert trends[0]['passed'] == 1
        assert trends[0]['avg_duration'] == 10.0


class TestDurationStats:
    """Tests for duration statistics."""

    def test_p95_uses_nearest_rank(self):
        values = [10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0, 100.0]
        assert aggregation.percentile_nearest_rank(values, 0.95) == 100.0

    def test_percentile_of_empty_list(self):
        assert aggregation.percentile_nearest_rank([], 0.95) == 0.0

    def test_duration_stats(self, make_execution):
        executions = [make_execution("passed", duration=float(d)) for d in (100, 10, 50, 20, 80, 30, 60, 40, 90, 70)]
        stats = aggregation.calculate_duration_stats(executions)
        assert stats == {'min': 10.0, 'max': 100.0, 'average': 55.0, 'p95': 100.0}

    def test_malformed_durations_are_skipped(self, make_execution):
        executions = [
            make_execution("passed", duration=4.0),
            make_execution("passed", duration=None),
            make_execution("passed", duration=-1.0),
            make_execution("passed", duration=float("nan")),
            make_execution("passed", duration=2.0),
        ]
        stats = aggregation.calculate_duration_stats(executions)
        assert stats['min'] == 2.0
        assert stats['max'] == 4.0
        assert stats['average'] == 3.0

    def test_no_durations(self):
        assert aggregation.calculate_duration_stats([]) == {'min': 0.0, 'max': 0.0, 'average': 0.0, 'p95': 0.0}


class TestDetailedTrends:
    """Tests for the detailed trends report parts."""

    def test_duration_trends(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 3), duration=10.0),
            make_run(datetime(2023, 1, 20), duration=30.0),
            make_run(datetime(2023, 2, 1), duration=5.0),
        ]
        trends = aggregation.calculate_duration_trends(runs, "month")
        assert trends["2023-01"] == {'total': 40.0, 'count': 2, 'min': 10.0, 'max': 30.0, 'avg': 20.0}
        assert trends["2023-02"]['count'] == 1

    def test_test_distribution(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 1), ["passed", "failed"]),
            make_run(datetime(2023, 1, 2), ["passed", "skipped"]),
        ]
        distribution = {row['test']: row for row in aggregation.calculate_test_distribution(runs)}
        assert distribution["suite:test 0"]['total_runs'] == 2
        assert distribution["suite:test 0"]['success_rate'] == 100.0
        # Anything but passed counts as failed in the distribution table
        assert distribution["suite:test 1"]['failed'] == 2
        assert distribution["suite:test 1"]['avg_duration'] == 1.0

    def test_test_distribution_without_suite(self, make_run):
        run = make_run(datetime(2023, 1, 1))
        run.executions.append(ExecutionRecord(
            id="e1", test_run_id=run.id, identifier="x", name="smoke", status="passed",
            run_created_at=run.created_at, suite=None,
        ))
        rows = aggregation.calculate_test_distribution([run])
        assert rows[0]['test'] == "No Suite:smoke"

    def test_environment_stats(self, make_run):
        runs = [
            make_run(datetime(2023, 1, 1), framework="jest", browser="chromium", platform="linux"),
            make_run(datetime(2023, 1, 2), framework="jest", browser=None, platform="linux"),
        ]
        stats = aggregation.calculate_environment_stats(runs)
        assert stats == {
            'frameworks': {'jest': 2},
            'browsers': {'chromium': 1, 'unknown': 1},
            'platforms': {'linux': 2},
        }

    def test_empty_reports(self):
        report = aggregation.build_detailed_trends_report([], "week")
        assert report['timeline_trends'] == []
        assert report['duration_trends'] == {}
        assert report['test_distribution'] == []

        overview = aggregation.build_trends_report([], [], "week")
        assert overview['summary']['total_runs'] == 0
        assert overview['status_breakdown'] == {}
        assert overview['timeline'] == []
