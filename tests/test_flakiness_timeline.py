"""
Tests for the flakiness timeline.
"""
import random
from datetime import datetime

from app.services import flakiness_timeline


class TestNormalizeAggregation:
    """Tests for aggregation mode fallback."""

    def test_supported_values(self):
        assert flakiness_timeline.normalize_aggregation("count") == "count"
        assert flakiness_timeline.normalize_aggregation("percentage") == "percentage"

    def test_unsupported_values_fall_back_to_percentage(self):
        assert flakiness_timeline.normalize_aggregation(None) == "percentage"
        assert flakiness_timeline.normalize_aggregation("sum") == "percentage"


class TestBuildFlakinessTimeline:
    """Tests for per-period flakiness counting."""

    def _executions(self, make_execution):
        return [
            make_execution("passed", identifier="a", run_created_at=datetime(2023, 1, 15, 8)),
            make_execution("failed", identifier="a", run_created_at=datetime(2023, 1, 15, 9)),
            make_execution("passed", identifier="b", run_created_at=datetime(2023, 1, 15, 9)),
            make_execution("passed", identifier="a", run_created_at=datetime(2023, 1, 16, 8)),
        ]

    def test_empty_input(self):
        assert flakiness_timeline.build_flakiness_timeline([], "day", "percentage") == {
            'timeline': [],
            'summary': {'total_tests': 0, 'total_flaky_tests': 0, 'average_flakiness_score': 0.0},
        }

    def test_percentage_mode(self, make_execution):
        result = flakiness_timeline.build_flakiness_timeline(self._executions(make_execution), "day", "percentage")

        assert result['timeline'] == [
            {
                'date': '2023-01-15', 'total_tests': 2, 'flaky_tests': 1, 'status_changes': 1,
                'flakiness_rate': 50.0, 'average_status_change_rate': 0.5,
            },
            {
                'date': '2023-01-16', 'total_tests': 1, 'flaky_tests': 0, 'status_changes': 0,
                'flakiness_rate': 0.0, 'average_status_change_rate': 0.0,
            },
        ]
        assert result['summary'] == {
            'total_tests': 2,
            'total_flaky_tests': 1,
            'average_flakiness_score': 25.0,
        }

    def test_count_mode_omits_rates(self, make_execution):
        result = flakiness_timeline.build_flakiness_timeline(self._executions(make_execution), "day", "count")
        for entry in result['timeline']:
            assert 'flakiness_rate' not in entry
            assert 'average_status_change_rate' not in entry

    def test_changes_across_periods_are_not_counted(self, make_execution):
        executions = [
            make_execution("passed", identifier="a", run_created_at=datetime(2023, 1, 15)),
            make_execution("failed", identifier="a", run_created_at=datetime(2023, 1, 16)),
        ]
        result = flakiness_timeline.build_flakiness_timeline(executions, "day", "count")
        assert [entry['status_changes'] for entry in result['timeline']] == [0, 0]

        result = flakiness_timeline.build_flakiness_timeline(executions, "month", "count")
        assert result['timeline'] == [
            {'date': '2023-01', 'total_tests': 1, 'flaky_tests': 1, 'status_changes': 1}
        ]

    def test_output_does_not_depend_on_input_order(self, make_execution):
        executions = self._executions(make_execution)
        shuffled = list(executions)
        random.Random(42).shuffle(shuffled)

        expected = flakiness_timeline.build_flakiness_timeline(executions, "week", "percentage")
        assert flakiness_timeline.build_flakiness_timeline(shuffled, "week", "percentage") == expected
        assert flakiness_timeline.build_flakiness_timeline(executions, "week", "percentage") == expected
