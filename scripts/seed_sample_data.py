#!/usr/bin/env python3
"""
Populate a local development database with sample test runs and executions.

The analytics API only reads the record store; this script stands in for the
ingestion service so that the reports have something to show locally.

Usage:
    python scripts/seed_sample_data.py [--organization ORG] [--runs N] [--seed SEED]

Examples:
    # 60 runs over the last 30 days for organization "demo-org"
    python scripts/seed_sample_data.py

    # Reproducible data set for another organization
    python scripts/seed_sample_data.py --organization acme --runs 120 --seed 7
"""
import sys
import random
import argparse
import logging
import uuid
from pathlib import Path
from datetime import timedelta

# Add parent directory to path
SCRIPT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(SCRIPT_DIR))

from app.database import SessionLocal, init_db
from app.models.db_models import (
    TestRun, TestExecution, TestRunStatusEnum, TestStatusEnum, utcnow
)
from app.utils.identifiers import generate_test_identifier

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

FRAMEWORKS = ["playwright", "cypress", "jest"]
BROWSERS = ["chromium", "firefox", "webkit"]
PLATFORMS = ["linux", "macos", "windows"]
BRANCHES = ["main", "develop", "feature/checkout"]

# (suite, name, failure probability, browser that fails more often)
SAMPLE_TESTS = [
    ("auth", "logs in with valid credentials", 0.0, None),
    ("auth", "rejects expired session", 0.05, None),
    ("checkout", "applies discount code", 0.35, None),
    ("checkout", "renders payment form", 0.15, "webkit"),
    ("search", "returns paginated results", 0.5, None),
    (None, "smoke test", 0.0, None),
]


def _execution_status(rng: random.Random, failure_probability: float, browser: str, flaky_browser) -> str:
    if flaky_browser and browser == flaky_browser:
        failure_probability = min(failure_probability + 0.5, 0.95)
    return TestStatusEnum.FAILED.value if rng.random() < failure_probability else TestStatusEnum.PASSED.value


def seed(organization_id: str, run_count: int, rng: random.Random) -> int:
    """
    Insert ``run_count`` runs spread over the last 30 days.

    Returns:
        Number of executions inserted
    """
    now = utcnow()
    execution_count = 0

    with SessionLocal() as db:
        for index in range(run_count):
            created_at = now - timedelta(days=30) + timedelta(hours=index * 720 / max(run_count, 1))
            browser = rng.choice(BROWSERS)
            run = TestRun(
                id=str(uuid.uuid4()),
                organization_id=organization_id,
                name=f"CI run #{index + 1}",
                created_at=created_at,
                commit=uuid.uuid4().hex[:12],
                branch=rng.choice(BRANCHES),
                framework=rng.choice(FRAMEWORKS),
                browser=browser,
                browser_version="120",
                platform=rng.choice(PLATFORMS),
                triggered_by="seed-script",
            )

            statuses = []
            for suite, name, failure_probability, flaky_browser in SAMPLE_TESTS:
                status = _execution_status(rng, failure_probability, browser, flaky_browser)
                statuses.append(status)
                run.test_executions.append(TestExecution(
                    id=str(uuid.uuid4()),
                    name=name,
                    suite=suite,
                    identifier=generate_test_identifier(suite, name, organization_id),
                    attempt=1,
                    status=status,
                    duration=round(rng.uniform(0.5, 30.0), 2),
                    started_at=created_at,
                    completed_at=created_at + timedelta(minutes=5),
                ))
                execution_count += 1

            failed = TestStatusEnum.FAILED.value in statuses
            run.status = TestRunStatusEnum.FAILED.value if failed else TestRunStatusEnum.COMPLETED.value
            run.duration = round(sum(e.duration for e in run.test_executions), 2)
            db.add(run)

        db.commit()

    return execution_count


def main():
    parser = argparse.ArgumentParser(
        description="Seed the local database with sample test runs and executions"
    )
    parser.add_argument(
        '--organization',
        type=str,
        default='demo-org',
        help='Organization ID to create data for (default: demo-org)'
    )
    parser.add_argument(
        '--runs',
        type=int,
        default=60,
        help='Number of test runs to create (default: 60)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for reproducible data'
    )

    args = parser.parse_args()

    if args.runs < 1:
        parser.error("--runs must be at least 1")

    init_db()
    executions = seed(args.organization, args.runs, random.Random(args.seed))
    logger.info(f"Created {args.runs} runs and {executions} executions for organization '{args.organization}'")


if __name__ == "__main__":
    main()
