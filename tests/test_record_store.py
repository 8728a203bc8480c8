"""
Tests for record store reads (organization scoping, filters, ordering).
"""
from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.models import db_models
from app.services import record_store
from app.services.date_buckets import DateRange

ORGANIZATION_ID = "org-1"


@pytest.fixture(scope="function")
def sample_runs(add_run):
    """Three runs for org-1 and one for another organization."""
    return [
        add_run(datetime(2023, 1, 10, 9), [("auth", "login", "passed"), ("auth", "logout", "passed")]),
        add_run(datetime(2023, 1, 12, 9), [("auth", "login", "failed")], browser="firefox"),
        add_run(datetime(2023, 1, 14, 9), [("auth", "login", "passed")], framework="cypress"),
        add_run(datetime(2023, 1, 11, 9), [("auth", "login", "failed")], organization_id="org-2"),
    ]


class TestFindTestRuns:
    """Tests for run reads."""

    def test_scoped_to_organization_ascending(self, test_db, sample_runs):
        runs = record_store.find_test_runs(test_db, ORGANIZATION_ID)
        assert [run.id for run in runs] == [sample_runs[0].id, sample_runs[1].id, sample_runs[2].id]
        assert all(isinstance(run, record_store.RunRecord) for run in runs)
        assert len(runs[0].executions) == 2

    def test_unknown_organization_has_no_runs(self, test_db, sample_runs):
        assert record_store.find_test_runs(test_db, "missing-org") == []

    def test_inclusive_date_range(self, test_db, sample_runs):
        date_range = DateRange(start=datetime(2023, 1, 12, 9), end=datetime(2023, 1, 14, 9))
        runs = record_store.find_test_runs(test_db, ORGANIZATION_ID, date_range)
        assert [run.id for run in runs] == [sample_runs[1].id, sample_runs[2].id]

    def test_framework_and_browser_filters(self, test_db, sample_runs):
        assert [r.id for r in record_store.find_test_runs(test_db, ORGANIZATION_ID, framework="cypress")] == [
            sample_runs[2].id
        ]
        assert [r.id for r in record_store.find_test_runs(test_db, ORGANIZATION_ID, browser="firefox")] == [
            sample_runs[1].id
        ]

    def test_execution_records_carry_run_metadata(self, test_db, sample_runs):
        run = record_store.find_test_runs(test_db, ORGANIZATION_ID)[1]
        execution = run.executions[0]
        assert execution.test_run_id == run.id
        assert execution.run_created_at == datetime(2023, 1, 12, 9)
        assert execution.browser == "firefox"
        assert execution.framework == "playwright"
        assert execution.status == "failed"


class TestFindTestExecutions:
    """Tests for execution reads."""

    def test_newest_first_by_default(self, test_db, sample_runs):
        executions = record_store.find_test_executions(test_db, ORGANIZATION_ID)
        dates = [execution.run_created_at for execution in executions]
        assert len(executions) == 4
        assert dates == sorted(dates, reverse=True)

    def test_oldest_first(self, test_db, sample_runs):
        executions = record_store.find_test_executions(test_db, ORGANIZATION_ID, newest_first=False)
        dates = [execution.run_created_at for execution in executions]
        assert dates == sorted(dates)

    def test_identifier_filter(self, test_db, sample_runs):
        login = sample_runs[0].test_executions[0]
        identifier = login.identifier if login.name == "login" else sample_runs[0].test_executions[1].identifier

        executions = record_store.find_test_executions(test_db, ORGANIZATION_ID, identifier=identifier)
        assert len(executions) == 3
        assert {execution.name for execution in executions} == {"login"}

    def test_same_predicate_as_runs(self, test_db, sample_runs):
        date_range = DateRange(start=datetime(2023, 1, 11))
        runs = record_store.find_test_runs(test_db, ORGANIZATION_ID, date_range, browser="firefox")
        executions = record_store.find_test_executions(test_db, ORGANIZATION_ID, date_range, browser="firefox")
        assert {e.test_run_id for e in executions} == {run.id for run in runs}

    def test_organizations_are_isolated(self, test_db, sample_runs):
        executions = record_store.find_test_executions(test_db, "org-2")
        assert [execution.test_run_id for execution in executions] == [sample_runs[3].id]


class TestRecordStoreErrors:
    """Tests for record store failures."""

    def test_errors_propagate(self, test_db):
        db_models.Base.metadata.drop_all(test_db.get_bind())

        with pytest.raises(SQLAlchemyError):
            record_store.find_test_runs(test_db, ORGANIZATION_ID)

        test_db.rollback()
        with pytest.raises(SQLAlchemyError):
            record_store.find_test_executions(test_db, ORGANIZATION_ID)
