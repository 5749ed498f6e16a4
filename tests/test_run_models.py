"""
Unit tests for run models
Tests outcome consistency and report aggregate invariants
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from insight_runner.models.run import Outcome, RunReport, Tenant, WorkResult

STARTED = datetime(2026, 10, 17, 2, 0, tzinfo=timezone.utc)
FINISHED = STARTED + timedelta(seconds=42)


def _ok(tenant_id: str, items: int) -> Outcome:
    return Outcome(tenant=Tenant(tenant_id=tenant_id), succeeded=True, items_produced=items)


def _failed(tenant_id: str, message: str = "timeout") -> Outcome:
    return Outcome(
        tenant=Tenant(tenant_id=tenant_id), succeeded=False, error_message=message
    )


def test_tenant_is_immutable():
    """Tenants cannot change during a run"""
    tenant = Tenant(tenant_id="org-1", name="Acme")

    with pytest.raises(ValidationError):
        tenant.name = "Other"


def test_tenant_requires_identifier():
    with pytest.raises(ValidationError):
        Tenant(tenant_id="")


def test_tenant_label():
    assert Tenant(tenant_id="org-1", name="Acme").label == "Acme (org-1)"
    assert Tenant(tenant_id="org-1").label == "org-1"


def test_work_result_rejects_negative_count():
    with pytest.raises(ValidationError):
        WorkResult(items_produced=-1)


def test_failed_outcome_must_not_produce_items():
    with pytest.raises(ValidationError):
        Outcome(
            tenant=Tenant(tenant_id="org-1"),
            succeeded=False,
            items_produced=3,
            error_message="boom",
        )


def test_failed_outcome_needs_error_message():
    with pytest.raises(ValidationError):
        Outcome(tenant=Tenant(tenant_id="org-1"), succeeded=False)


def test_succeeded_outcome_cannot_carry_error():
    with pytest.raises(ValidationError):
        Outcome(
            tenant=Tenant(tenant_id="org-1"), succeeded=True, error_message="boom"
        )


def test_report_from_outcomes_derives_aggregates():
    """Example run: T1 ok with 5, T2 timeout, T3 ok with 0"""
    outcomes = [_ok("T1", 5), _failed("T2", "timeout"), _ok("T3", 0)]

    report = RunReport.from_outcomes(outcomes, started_at=STARTED, finished_at=FINISHED)

    assert report.tenants_processed == 3
    assert report.tenants_succeeded == 2
    assert report.tenants_failed == 1
    assert report.total_items_produced == 5
    assert [o.tenant.tenant_id for o in report.outcomes] == ["T1", "T2", "T3"]
    assert report.duration_seconds == 42
    assert report.has_failures


def test_empty_report_has_zero_aggregates():
    report = RunReport.from_outcomes([], started_at=STARTED, finished_at=FINISHED)

    assert report.tenants_processed == 0
    assert report.tenants_succeeded == 0
    assert report.total_items_produced == 0
    assert report.outcomes == ()
    assert not report.has_failures


def test_all_failing_report_produces_no_items():
    report = RunReport.from_outcomes(
        [_failed("T1"), _failed("T2", "API returned 500: Internal Server Error")],
        started_at=STARTED,
        finished_at=FINISHED,
    )

    assert report.tenants_succeeded == 0
    assert report.total_items_produced == 0
    assert len(report.failed_outcomes()) == 2


def test_report_rejects_inconsistent_aggregates():
    """Hand-built reports cannot lie about their outcomes"""
    with pytest.raises(ValidationError):
        RunReport(
            tenants_processed=2,
            tenants_succeeded=1,
            total_items_produced=5,
            outcomes=(_ok("T1", 5),),
            started_at=STARTED,
            finished_at=FINISHED,
        )

    with pytest.raises(ValidationError):
        RunReport(
            tenants_processed=1,
            tenants_succeeded=1,
            total_items_produced=7,
            outcomes=(_ok("T1", 5),),
            started_at=STARTED,
            finished_at=FINISHED,
        )


def test_report_rejects_finish_before_start():
    with pytest.raises(ValidationError):
        RunReport.from_outcomes([], started_at=FINISHED, finished_at=STARTED)


def test_report_is_immutable():
    report = RunReport.from_outcomes([_ok("T1", 1)], started_at=STARTED, finished_at=FINISHED)

    with pytest.raises(ValidationError):
        report.total_items_produced = 100


def test_log_entry_shape():
    report = RunReport.from_outcomes(
        [_ok("T1", 5), _failed("T2", "timeout")],
        started_at=STARTED,
        finished_at=FINISHED,
        trigger="scheduled",
    )

    entry = report.to_log_entry()

    assert entry["function_name"] == "generate-insights"
    assert entry["trigger"] == "scheduled"
    assert entry["organizations_processed"] == 2
    assert entry["successful_orgs"] == 1
    assert entry["total_insights_generated"] == 5
    assert entry["results"] == [
        {"org_id": "T1", "success": True, "insights_created": 5},
        {"org_id": "T2", "success": False, "insights_created": 0, "error": "timeout"},
    ]
