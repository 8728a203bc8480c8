"""
Test analytics API router.
Provides organization-scoped trend and flaky test reports.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.services import analytics_service
from app.services.flakiness_analyzer import FlakyAnalysisOptions
from app.models.schemas import (
    TrendsReportSchema,
    DetailedTrendsReportSchema,
    FlakyTestSchema,
    AdvancedFlakyTestSchema,
    FlakinessTimelineSchema
)
from app.utils.auth import verify_api_key, get_organization_id

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("/overview", response_model=TrendsReportSchema)
async def get_overview(
    timeframe: Optional[str] = Query(None, description="Timeline grouping (day, week, month)"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Start date (ISO format)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="End date (ISO format)"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """
    Get overview of test analytics including summary stats and trends.

    Args:
        timeframe: Timeline grouping; unsupported values fall back to the default
        start_date: Optional lower bound on run creation time
        end_date: Optional upper bound on run creation time
        organization_id: Tenant resolved from the auth context
        db: Database session

    Returns:
        Summary, status breakdown, framework/browser stats, timeline and durations
    """
    return analytics_service.get_test_trends(
        db, organization_id,
        timeframe=timeframe,
        start_date=start_date,
        end_date=end_date
    )


@router.get("/trends", response_model=DetailedTrendsReportSchema)
async def get_trends(
    timeframe: Optional[str] = Query(None, description="Timeline grouping (day, week, month)"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Start date (ISO format)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="End date (ISO format)"),
    framework: Optional[str] = Query(None, max_length=100, description="Filter by test framework"),
    browser: Optional[str] = Query(None, max_length=100, description="Filter by browser"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """
    Get historical trends with detailed analytics.

    Returns:
        Timeline trends, duration trends, test distribution and environment stats
    """
    return analytics_service.get_detailed_trends(
        db, organization_id,
        timeframe=timeframe,
        start_date=start_date,
        end_date=end_date,
        framework=framework,
        browser=browser
    )


@router.get("/flaky-tests", response_model=List[FlakyTestSchema])
async def get_flaky_tests(
    start_date: Optional[str] = Query(None, alias="startDate", description="Start date (ISO format)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="End date (ISO format)"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """
    Get list of flaky tests, highest flakiness score first.

    Only tests whose status changed at least once are returned.
    """
    return analytics_service.get_flaky_tests(
        db, organization_id,
        start_date=start_date,
        end_date=end_date
    )


@router.get("/flaky-tests/advanced", response_model=List[AdvancedFlakyTestSchema])
async def get_advanced_flaky_tests(
    start_date: Optional[str] = Query(None, alias="startDate", description="Start date (ISO format)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="End date (ISO format)"),
    min_flakiness_score: Optional[float] = Query(
        None, alias="minFlakinessScore", ge=0, le=100,
        description="Minimum flakiness score to consider a test flaky (percentage, default 1)"
    ),
    min_executions: Optional[int] = Query(
        None, alias="minExecutions", ge=1,
        description="Minimum number of executions required for analysis (default 2)"
    ),
    sort_by: Optional[str] = Query(
        None, alias="sortBy",
        description="Sort results by metric (flakinessScore, impact, failureRate)"
    ),
    time_window: Optional[int] = Query(
        None, alias="timeWindow", ge=1, le=3650,
        description="Analysis period in days, used when startDate is not given"
    ),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """
    Get advanced flaky test analysis with pattern detection and impact metrics.
    """
    options = FlakyAnalysisOptions.build(
        start_date=start_date,
        end_date=end_date,
        min_flakiness_score=min_flakiness_score,
        min_executions=min_executions,
        sort_by=sort_by,
        time_window=time_window
    )
    return analytics_service.get_advanced_flaky_tests(db, organization_id, options)


@router.get(
    "/flaky-tests/timeline",
    response_model=FlakinessTimelineSchema,
    response_model_exclude_none=True
)
async def get_flaky_tests_timeline(
    identifier: Optional[str] = Query(None, max_length=64, description="Focus on a single test identifier"),
    start_date: Optional[str] = Query(None, alias="startDate", description="Start date (ISO format)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="End date (ISO format)"),
    group_by: Optional[str] = Query(None, alias="groupBy", description="Time grouping (day, week, month)"),
    aggregation: Optional[str] = Query(None, description="How to aggregate data (count, percentage)"),
    organization_id: str = Depends(get_organization_id),
    db: Session = Depends(get_db)
):
    """
    Get historical timeline of test flakiness evolution.
    """
    return analytics_service.get_flaky_tests_timeline(
        db, organization_id,
        identifier=identifier,
        start_date=start_date,
        end_date=end_date,
        group_by=group_by,
        aggregation_mode=aggregation
    )
