"""
Pydantic schemas for API responses.

These schemas define the API contract separate from the service layer.
Fields are declared in snake_case and serialized in camelCase.
"""
from datetime import datetime
from typing import Optional, Dict, List
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: accepts snake_case input, emits camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Overview / trends

class SummarySchema(CamelModel):
    """Run-level summary."""
    total_runs: int
    success_rate: float = Field(..., description="Percentage of completed runs")
    failure_rate: float = Field(..., description="Percentage of failed runs")
    average_duration: float = Field(..., description="Mean run duration in seconds")


class FrameworkStatSchema(CamelModel):
    framework: str
    total: int
    passed: int
    failed: int
    success_rate: float


class BrowserStatSchema(CamelModel):
    browser: str
    total: int
    passed: int
    failed: int
    success_rate: float


class TimelineEntrySchema(CamelModel):
    """Runs in one time bucket; a run passes only if all its executions passed."""
    date: str
    total: int
    passed: int
    failed: int
    duration: float
    success_rate: float
    average_duration: float


class DurationStatsSchema(CamelModel):
    """Execution duration statistics; p95 uses the nearest-rank rule."""
    min: float
    max: float
    average: float
    p95: float


class TrendsReportSchema(CamelModel):
    """Overview report."""
    summary: SummarySchema
    status_breakdown: Dict[str, int]
    framework_stats: List[FrameworkStatSchema]
    browser_stats: List[BrowserStatSchema]
    timeline: List[TimelineEntrySchema]
    duration: DurationStatsSchema


class TimelineTrendSchema(CamelModel):
    date: str
    total_runs: int
    passed: int
    failed: int
    flaky: int = Field(..., description="Runs containing at least one flaky execution")
    total_duration: float
    avg_duration: float
    success_rate: float


class DurationTrendSchema(CamelModel):
    total: float
    count: int
    min: float
    max: float
    avg: float


class TestDistributionSchema(CamelModel):
    test: str = Field(..., description="'<suite>:<name>'")
    total_runs: int
    passed: int
    failed: int
    avg_duration: float
    success_rate: float


class EnvironmentStatsSchema(CamelModel):
    frameworks: Dict[str, int]
    browsers: Dict[str, int]
    platforms: Dict[str, int]


class DetailedTrendsReportSchema(CamelModel):
    """Detailed trends report."""
    timeline_trends: List[TimelineTrendSchema]
    duration_trends: Dict[str, DurationTrendSchema]
    test_distribution: List[TestDistributionSchema]
    environment_stats: EnvironmentStatsSchema


# Flaky tests

class RecentExecutionSchema(CamelModel):
    status: str
    date: datetime


class FlakyTestSchema(CamelModel):
    """Basic flaky test report."""
    identifier: str
    name: str
    suite: Optional[str] = None
    total_runs: int
    failure_rate: float
    flakiness_score: float
    recent_executions: List[RecentExecutionSchema]


class FlakyPatternsSchema(CamelModel):
    is_alternating: bool
    is_time_based: bool
    is_environment_specific: bool
    is_random: bool
    details: str


class FlakyTrendSchema(CamelModel):
    direction: str = Field(..., description="improving, stable or worsening")
    rate: float = Field(..., description="Percent change of the status-change rate")


class EnvironmentCorrelationSchema(CamelModel):
    factor: str
    value: str
    executions: int
    failure_rate: float
    other_failure_rate: float
    difference: float = Field(..., description="Percentage points above (positive) or below (negative) the other executions")


class ImpactSchema(CamelModel):
    runs_affected: int
    total_runs: int
    impact_percentage: float
    impact_score: float


class AdvancedFlakyTestSchema(FlakyTestSchema):
    """Advanced flaky test report."""
    failures: int
    status_changes: int
    last_execution: datetime
    patterns: FlakyPatternsSchema
    trend: FlakyTrendSchema
    confidence_level: float
    environment_correlations: List[EnvironmentCorrelationSchema]
    impact: ImpactSchema


class FlakinessTimelineEntrySchema(CamelModel):
    date: str
    total_tests: int
    flaky_tests: int
    status_changes: int
    flakiness_rate: Optional[float] = None
    average_status_change_rate: Optional[float] = None


class FlakinessTimelineSummarySchema(CamelModel):
    total_tests: int = Field(..., description="Most distinct tests seen in a single period")
    total_flaky_tests: int = Field(..., description="Most flaky tests seen in a single period")
    average_flakiness_score: float


class FlakinessTimelineSchema(CamelModel):
    timeline: List[FlakinessTimelineEntrySchema]
    summary: FlakinessTimelineSummarySchema
