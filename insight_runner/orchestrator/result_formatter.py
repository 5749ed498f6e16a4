"""
Result Formatter Module
Single Responsibility: Build outcomes and run reports, render them for operators
"""

from datetime import datetime
from typing import Optional, Sequence

from insight_runner.models.run import (
    Outcome,
    RetryResult,
    RunReport,
    Tenant,
    TriggerSource,
    WorkResult,
)
from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)


class ResultFormatter:
    """
    Formats per-tenant outcomes and run summaries.
    Pure formatting - no business logic.
    """

    @staticmethod
    def describe_error(error: BaseException) -> str:
        """Message recorded on a failed outcome. Never empty."""
        message = str(error).strip()
        return message or type(error).__name__

    @staticmethod
    def format_outcome(
        tenant: Tenant,
        result: Optional[WorkResult] = None,
        error: Optional[BaseException] = None,
    ) -> Outcome:
        """
        Creates the outcome for one tenant.

        Args:
            tenant: Tenant the unit of work ran for
            result: WorkResult on success
            error: Exception on failure (takes precedence over result)

        Returns:
            Immutable Outcome
        """
        if error is not None or result is None:
            message = (
                ResultFormatter.describe_error(error)
                if error is not None
                else "unit of work returned no result"
            )
            return Outcome(
                tenant=tenant, succeeded=False, items_produced=0, error_message=message
            )

        return Outcome(
            tenant=tenant,
            succeeded=True,
            items_produced=result.items_produced,
            error_message="",
        )

    @staticmethod
    def generate_report(
        outcomes: Sequence[Outcome],
        started_at: datetime,
        finished_at: datetime,
        trigger: TriggerSource = "manual",
    ) -> RunReport:
        """Aggregates outcomes into the run report"""
        report = RunReport.from_outcomes(
            outcomes, started_at=started_at, finished_at=finished_at, trigger=trigger
        )
        logger.debug(
            f"Report {report.run_id}: {report.tenants_succeeded}/"
            f"{report.tenants_processed} succeeded, {report.total_items_produced} items"
        )
        return report

    @staticmethod
    def print_outcome(outcome: Outcome):
        """Prints one tenant's outcome to console"""
        if outcome.succeeded:
            print(
                f"  [OK]   {outcome.tenant.label}: "
                f"{outcome.items_produced} insight(s) created"
            )
        else:
            print(f"  [FAIL] {outcome.tenant.label}: {outcome.error_message}")

    @staticmethod
    def print_summary(report: RunReport):
        """Prints formatted run summary to console"""
        print(f"\n{'=' * 60}")
        print("INSIGHT GENERATION SUMMARY")
        print(f"{'=' * 60}")
        print(f"Run ID:              {report.run_id}")
        print(f"Trigger:             {report.trigger}")
        print(f"Duration:            {report.duration_seconds:.2f}s")
        print(f"Tenants Processed:   {report.tenants_processed}")
        print(f"  Succeeded:         {report.tenants_succeeded}")
        print(f"  Failed:            {report.tenants_failed}")
        print(f"Insights Created:    {report.total_items_produced}")

        if report.has_failures:
            print("\nFailed tenants:")
            for outcome in report.failed_outcomes():
                print(f"  - {outcome.tenant.label}: {outcome.error_message}")
        print(f"{'=' * 60}\n")

    @staticmethod
    def print_retry_result(result: RetryResult):
        """Prints the outcome of a retry-failed-items call"""
        if result.succeeded:
            print(
                f"[OK]   {result.tenant.label}: retried {result.items_retried}, "
                f"{result.items_succeeded} succeeded"
            )
        else:
            print(f"[FAIL] {result.tenant.label}: {result.error_message}")
