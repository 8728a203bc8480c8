"""
Application-wide constants.

Defines the heuristic thresholds and enumerated option values used by the
analytics services. Changing any threshold changes observable report output.
"""

# Time bucketing
TIMEFRAMES = ("day", "week", "month")
"""Supported bucketing granularities for timelines (timeframe / groupBy)."""

# Flakiness timeline aggregation modes
AGGREGATIONS = ("count", "percentage")
DEFAULT_AGGREGATION = "percentage"

# Advanced flaky test sort keys
SORT_BY_FLAKINESS = "flakinessScore"
SORT_BY_IMPACT = "impact"
SORT_BY_FAILURE_RATE = "failureRate"
SORT_OPTIONS = (SORT_BY_FLAKINESS, SORT_BY_IMPACT, SORT_BY_FAILURE_RATE)
DEFAULT_SORT_BY = SORT_BY_FLAKINESS

# Advanced analysis defaults
DEFAULT_MIN_FLAKINESS_SCORE = 1.0
DEFAULT_MIN_EXECUTIONS = 2

# Pattern detection thresholds
ALTERNATING_CHANGE_RATIO = 0.7
"""Share of adjacent status pairs that must differ for an alternating pattern."""

TIME_BASED_RELATIVE_FACTOR = 1.5
"""A day/hour bucket must fail this many times more often than the overall rate."""

TIME_BASED_MIN_FAILURE_RATE = 30.0
"""...and above this absolute failure rate (percent)."""

ENVIRONMENT_DIFFERENCE_THRESHOLD = 20.0
"""Failure rate gap (percentage points) between with/without an environment value."""

ENVIRONMENT_MIN_EXECUTIONS = 3
"""Executions required with an environment value before it is considered."""

ENVIRONMENT_FACTORS = ("browser", "framework", "platform", "branch")

# Trend detection
TREND_MIN_EXECUTIONS = 6
TREND_CHANGE_THRESHOLD = 10.0
"""Percent change in status-change rate separating stable from improving/worsening."""

# Impact score weights
IMPACT_FLAKINESS_WEIGHT = 0.6
IMPACT_RUNS_AFFECTED_WEIGHT = 0.4

# Duration percentile
DURATION_PERCENTILE = 0.95

NO_SUITE_LABEL = "No Suite"
"""Suite label used in the test distribution table for suite-less tests."""

UNKNOWN_ENVIRONMENT = "unknown"
"""Label used when a run has no framework, browser or platform recorded."""
