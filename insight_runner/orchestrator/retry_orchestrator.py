"""
Retry Orchestrator Module
Single Responsibility: Ask the service to retry one tenant's failed sub-units

Narrower than a full run: one tenant, one call, failures captured into the
returned RetryResult instead of raised.
"""

from typing import Optional

from insight_runner.models.run import RetryResult, Tenant
from insight_runner.orchestrator.result_formatter import ResultFormatter
from insight_runner.orchestrator.tenant_locks import TenantLockRegistry
from insight_runner.utils.logging_config import get_logger
from insight_runner.work.insight_client import InsightServiceClient

logger = get_logger(__name__)


class RetryFailedOrchestrator:
    """Retries previously failed embeddings for a single tenant"""

    def __init__(
        self,
        client: InsightServiceClient,
        tenant_locks: Optional[TenantLockRegistry] = None,
    ):
        """
        Args:
            client: Insight service client used for the retry call
            tenant_locks: Registry shared with the BatchOrchestrator so a retry
                never overlaps a full run for the same tenant
        """
        self.client = client
        self.tenant_locks = tenant_locks

    def retry_failed_items(self, tenant: Tenant) -> RetryResult:
        """
        Retries failed sub-units for one tenant.

        Returns:
            RetryResult; never raises for service or transport failures
        """
        logger.info(f"Retrying failed embeddings for {tenant.label}")

        try:
            if self.tenant_locks is not None:
                with self.tenant_locks.hold(tenant.tenant_id):
                    response = self.client.retry_failed_embeddings(tenant.tenant_id)
            else:
                response = self.client.retry_failed_embeddings(tenant.tenant_id)
        except Exception as e:
            message = ResultFormatter.describe_error(e)
            logger.error(
                f"Retry failed for {tenant.label}: {type(e).__name__}: {message}",
                extra={"tenant_id": tenant.tenant_id, "error": message},
            )
            return RetryResult(tenant=tenant, succeeded=False, error_message=message)

        if not response.success:
            logger.warning(
                f"Service declined retry for {tenant.label}",
                extra={"tenant_id": tenant.tenant_id},
            )
            return RetryResult(
                tenant=tenant,
                succeeded=False,
                items_retried=response.retried,
                items_succeeded=response.succeeded,
                error_message="Failed to retry embeddings",
            )

        logger.info(
            f"Retried {response.retried} embeddings for {tenant.label}, "
            f"{response.succeeded} succeeded",
            extra={"tenant_id": tenant.tenant_id},
        )
        return RetryResult(
            tenant=tenant,
            succeeded=True,
            items_retried=response.retried,
            items_succeeded=response.succeeded,
        )
