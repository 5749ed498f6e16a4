"""
Run Notices
Turns run reports and retry results into user-facing notifications
"""

from typing import Optional

from insight_runner.models.notification import NotificationAction
from insight_runner.models.run import RetryResult, RunReport
from insight_runner.notifications.aggregator import NotificationAggregator

DEFAULT_DURATION_MS = 6000


def notify_run_report(
    aggregator: NotificationAggregator,
    report: RunReport,
    duration_ms: Optional[int] = DEFAULT_DURATION_MS,
    action: Optional[NotificationAction] = None,
) -> str:
    """Success notice for a clean run, warning notice when some tenants failed"""
    metadata = {
        "run_id": report.run_id,
        "tenants_processed": report.tenants_processed,
        "tenants_succeeded": report.tenants_succeeded,
        "total_items_produced": report.total_items_produced,
    }

    if not report.has_failures:
        return aggregator.add(
            "success",
            "Insight generation completed",
            f"Generated insights for {report.tenants_succeeded}/"
            f"{report.tenants_processed} organizations "
            f"({report.total_items_produced} insights)",
            duration_ms=duration_ms,
            action=action,
            metadata=metadata,
        )

    failed_ids = [o.tenant.tenant_id for o in report.failed_outcomes()]
    metadata["failed_tenant_ids"] = failed_ids
    return aggregator.add(
        "warning",
        "Insight generation completed with failures",
        f"{report.tenants_failed} of {report.tenants_processed} organizations failed; "
        f"{report.total_items_produced} insights generated",
        # Partial failures stay until the user dismisses them
        duration_ms=None,
        action=action,
        metadata=metadata,
    )


def notify_run_failed(aggregator: NotificationAggregator, error: Exception) -> str:
    """Error notice for a run that produced no report"""
    return aggregator.add(
        "error",
        "Insight generation failed",
        f"Failed to generate insights: {error}",
        metadata={"error_type": type(error).__name__},
    )


def notify_retry_result(
    aggregator: NotificationAggregator,
    result: RetryResult,
    duration_ms: Optional[int] = DEFAULT_DURATION_MS,
) -> str:
    """Notice for a retry-failed-items call"""
    if result.succeeded:
        return aggregator.add(
            "success",
            "Retry completed",
            f"Successfully retried {result.items_succeeded} embeddings",
            duration_ms=duration_ms,
            metadata={"tenant_id": result.tenant.tenant_id},
        )
    return aggregator.add(
        "error",
        "Retry failed",
        "Failed to retry embeddings",
        duration_ms=duration_ms,
        metadata={"tenant_id": result.tenant.tenant_id, "error": result.error_message},
    )
