"""
Batch Orchestrator Module
Fans insight generation out over every tenant with per-tenant fault isolation
"""

import json
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from insight_runner.errors import (
    EnumerationError,
    MalformedResponseError,
    RunDeadlineExceeded,
    TenantBusyError,
    UnitOfWorkTimeout,
)
from insight_runner.models.run import Outcome, RunReport, Tenant, TriggerSource, WorkResult
from insight_runner.orchestrator.result_formatter import ResultFormatter
from insight_runner.orchestrator.tenant_enumerator import TenantEnumerator
from insight_runner.orchestrator.tenant_locks import TenantLockRegistry
from insight_runner.storage.run_ledger import RunLedger
from insight_runner.utils.logging_config import get_logger
from insight_runner.work.insight_client import UnitOfWork

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchOrchestrator:
    """
    Runs one unit of work per tenant and aggregates the outcomes into a RunReport.

    Workflow:
    1. Record start time, resolve tenants (TenantEnumerator)
       - enumeration failure aborts the run, no report is produced
    2. For each tenant, in enumeration order:
       a. Skip with a failed outcome if the optional run deadline has passed
       b. Invoke the unit of work under its own timeout
       c. Convert success or any failure into exactly one Outcome
    3. Re-order outcomes by enumeration index, derive aggregates (ResultFormatter)
    4. Optionally persist the report (RunLedger)
    """

    def __init__(
        self,
        enumerator: TenantEnumerator,
        max_workers: int = 1,
        unit_timeout: float = 60.0,
        run_deadline: Optional[float] = None,
        ledger: Optional[RunLedger] = None,
        tenant_locks: Optional[TenantLockRegistry] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            enumerator: Source of the tenant set, queried fresh on every run
            max_workers: Bounded worker pool size; 1 processes tenants sequentially
            unit_timeout: Seconds allowed for each tenant's unit of work
            run_deadline: Optional cap in seconds; tenants not started in time fail
                with "run deadline exceeded"
            ledger: Optional run ledger the completed report is saved to
            tenant_locks: Optional registry shared with retry operations
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        if unit_timeout <= 0:
            raise ValueError(f"unit_timeout must be positive, got {unit_timeout}")
        if run_deadline is not None and run_deadline <= 0:
            raise ValueError(f"run_deadline must be positive, got {run_deadline}")

        self.enumerator = enumerator
        self.max_workers = max_workers
        self.unit_timeout = unit_timeout
        self.run_deadline = run_deadline
        self.ledger = ledger
        self.tenant_locks = tenant_locks

        logger.debug(
            f"Configuration: max_workers={max_workers}, unit_timeout={unit_timeout}, "
            f"run_deadline={run_deadline}, ledger={'on' if ledger else 'off'}"
        )

    def run_insight_generation(
        self, unit_of_work: UnitOfWork, trigger: TriggerSource = "manual"
    ) -> RunReport:
        """
        Main entry point: generates insights for every tenant.

        Args:
            unit_of_work: Callable performing one tenant's remote computation
            trigger: "scheduled" or "manual"; recorded on the report only

        Returns:
            Completed RunReport (partial failure is a normal, successful run)

        Raises:
            EnumerationError: If the tenant set cannot be resolved
        """
        started_at = _utcnow()
        started_clock = time.monotonic()
        deadline = (
            started_clock + self.run_deadline if self.run_deadline is not None else None
        )

        tenants = self._enumerate()
        logger.info(
            f"Starting insight generation for {len(tenants)} tenant(s)",
            extra={"trigger": trigger, "tenant_count": len(tenants)},
        )

        if self.max_workers == 1 or len(tenants) <= 1:
            outcomes = [
                self._process_tenant(tenant, unit_of_work, deadline) for tenant in tenants
            ]
        else:
            outcomes = self._process_concurrently(tenants, unit_of_work, deadline)

        # Wall-clock steps during the run must not reorder the timestamps
        finished_at = started_at + timedelta(seconds=time.monotonic() - started_clock)
        report = ResultFormatter.generate_report(
            outcomes, started_at=started_at, finished_at=finished_at, trigger=trigger
        )

        logger.info(
            f"Generated insights for {report.tenants_succeeded}/"
            f"{report.tenants_processed} organizations, "
            f"{report.total_items_produced} insight(s) created"
        )
        logger.info(f"Job completed: {json.dumps(report.to_log_entry())}")

        if self.ledger is not None:
            try:
                self.ledger.save_run(report)
            except Exception as e:
                logger.error(
                    f"Could not save run {report.run_id} to ledger: {type(e).__name__}: {e}",
                    exc_info=True,
                )

        return report

    def _enumerate(self) -> List[Tenant]:
        try:
            return list(self.enumerator.list_tenants())
        except EnumerationError as e:
            logger.error(f"Tenant enumeration failed, aborting run: {e}")
            raise
        except Exception as e:
            logger.error(
                f"Tenant enumeration failed, aborting run: {type(e).__name__}: {e}",
                exc_info=True,
            )
            raise EnumerationError(f"Failed to fetch organizations: {e}") from e

    def _process_concurrently(
        self,
        tenants: List[Tenant],
        unit_of_work: UnitOfWork,
        deadline: Optional[float],
    ) -> List[Outcome]:
        """
        Runs tenants on a bounded pool. The calling thread is the only collector;
        outcomes are placed by enumeration index, not completion order.
        """
        collected: Dict[int, Outcome] = {}

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="insight-worker"
        ) as executor:
            futures = {
                executor.submit(self._process_tenant, tenant, unit_of_work, deadline): index
                for index, tenant in enumerate(tenants)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    collected[index] = future.result()
                except Exception as e:
                    # Exactly one outcome per tenant, even if a worker crashes
                    logger.error(
                        f"Worker crashed for {tenants[index].label}: {e}", exc_info=True
                    )
                    collected[index] = ResultFormatter.format_outcome(
                        tenants[index], error=e
                    )

        return [collected[index] for index in range(len(tenants))]

    def _process_tenant(
        self,
        tenant: Tenant,
        unit_of_work: UnitOfWork,
        deadline: Optional[float],
    ) -> Outcome:
        """Processes a single tenant. Never raises."""
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning(
                f"Run deadline exceeded before {tenant.label} started",
                extra={"tenant_id": tenant.tenant_id},
            )
            return ResultFormatter.format_outcome(tenant, error=RunDeadlineExceeded())

        logger.info(f"Generating insights for org: {tenant.label}")

        try:
            result = self._invoke_with_timeout(unit_of_work, tenant)
            if not isinstance(result, WorkResult):
                raise MalformedResponseError(
                    f"unit of work returned {type(result).__name__}, expected WorkResult"
                )
        except Exception as e:
            outcome = ResultFormatter.format_outcome(tenant, error=e)
            logger.error(
                f"Failed to generate insights for {tenant.label}: "
                f"{type(e).__name__}: {outcome.error_message}",
                extra={"tenant_id": tenant.tenant_id, "error": outcome.error_message},
            )
            return outcome

        logger.info(
            f"Generated {result.items_produced} insights for {tenant.label}",
            extra={"tenant_id": tenant.tenant_id, "items_produced": result.items_produced},
        )
        return ResultFormatter.format_outcome(tenant, result=result)

    def _invoke_with_timeout(self, unit_of_work: UnitOfWork, tenant: Tenant) -> WorkResult:
        """
        Runs the unit of work on a dedicated daemon thread and waits at most
        unit_timeout seconds. An overrunning call is abandoned by the run but
        keeps the tenant lock until it actually returns.

        Raises:
            TenantBusyError: If the tenant lock was not free within unit_timeout
            UnitOfWorkTimeout: If the call did not finish within unit_timeout
        """
        locked = False
        if self.tenant_locks is not None:
            if not self.tenant_locks.acquire(tenant.tenant_id, timeout=self.unit_timeout):
                raise TenantBusyError()
            locked = True

        mailbox: "queue.Queue" = queue.Queue(maxsize=1)

        def _call():
            try:
                value = unit_of_work(tenant)
            except Exception as e:
                result = (False, e)
            else:
                result = (True, value)
            finally:
                if locked:
                    self.tenant_locks.release(tenant.tenant_id)
            mailbox.put(result)

        worker = threading.Thread(
            target=_call, name=f"unit-of-work-{tenant.tenant_id}", daemon=True
        )
        try:
            worker.start()
        except Exception:
            if locked:
                self.tenant_locks.release(tenant.tenant_id)
            raise

        try:
            ok, value = mailbox.get(timeout=self.unit_timeout)
        except queue.Empty:
            raise UnitOfWorkTimeout()

        if not ok:
            raise value
        return value

    def close(self):
        """Cleanup resources"""
        logger.info("Closing orchestrator resources")
        if self.ledger is not None:
            self.ledger.close()
        close_enumerator = getattr(self.enumerator, "close", None)
        if close_enumerator is not None:
            close_enumerator()


# ==========================================
# CLI ENTRY POINT
# ==========================================


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line trigger. A nightly cron entry runs ``run --trigger scheduled``;
    operators run ``run`` or ``retry-failed`` by hand.

    Exit codes: 0 all tenants succeeded, 1 some tenants failed, 2 fatal error.
    """
    import argparse

    from insight_runner.config import Settings
    from insight_runner.errors import ConfigurationError
    from insight_runner.orchestrator.retry_orchestrator import RetryFailedOrchestrator
    from insight_runner.orchestrator.tenant_enumerator import (
        StaticTenantEnumerator,
        SupabaseTenantEnumerator,
    )
    from insight_runner.utils.logging_config import setup_logging
    from insight_runner.work.insight_client import (
        HttpInsightUnitOfWork,
        InsightServiceClient,
        MockUnitOfWork,
    )

    parser = argparse.ArgumentParser(
        prog="insight-runner",
        description="Generate AI insights for every tenant organization",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run insight generation for all tenants")
    run_parser.add_argument(
        "--trigger",
        choices=["scheduled", "manual"],
        default="manual",
        help="What started this run (default: manual)",
    )
    run_parser.add_argument(
        "--tenants-file",
        type=str,
        default=None,
        help="JSON file with [{id, name}, ...] instead of the Supabase directory",
    )
    run_parser.add_argument(
        "--mock",
        action="store_true",
        help="Use a mock unit of work (no calls to the insight service)",
    )
    run_parser.add_argument("--workers", type=int, default=None, help="Worker pool size")
    run_parser.add_argument(
        "--timeout", type=float, default=None, help="Per-tenant timeout in seconds"
    )
    run_parser.add_argument(
        "--deadline", type=float, default=None, help="Optional run deadline in seconds"
    )
    run_parser.add_argument(
        "--no-ledger", action="store_true", help="Do not save the report to the run ledger"
    )

    retry_parser = subparsers.add_parser(
        "retry-failed", help="Retry failed embeddings for one tenant"
    )
    retry_parser.add_argument("tenant_id", type=str)
    retry_parser.add_argument("--name", type=str, default="", help="Tenant display name")

    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        print(f"\nFATAL: {e}")
        return 2

    setup_logging(log_dir=settings.log_dir)
    logger.info(f"Starting insight-runner {args.command}")

    timeout = getattr(args, "timeout", None)
    if timeout is None:
        timeout = settings.unit_timeout_seconds

    if args.command == "retry-failed":
        client = InsightServiceClient(settings.api_url, timeout=timeout)
        try:
            result = RetryFailedOrchestrator(client).retry_failed_items(
                Tenant(tenant_id=args.tenant_id, name=args.name)
            )
        finally:
            client.close()
        ResultFormatter.print_retry_result(result)
        return 0 if result.succeeded else 1

    client = None
    orchestrator = None
    try:
        if args.tenants_file:
            enumerator: TenantEnumerator = StaticTenantEnumerator.from_file(args.tenants_file)
        else:
            enumerator = SupabaseTenantEnumerator(
                settings.supabase_url, settings.supabase_service_key
            )

        if args.mock:
            unit_of_work: UnitOfWork = MockUnitOfWork()
        else:
            client = InsightServiceClient(settings.api_url, timeout=timeout)
            unit_of_work = HttpInsightUnitOfWork(client)

        orchestrator = BatchOrchestrator(
            enumerator,
            max_workers=args.workers if args.workers is not None else settings.max_workers,
            unit_timeout=timeout,
            run_deadline=(
                args.deadline if args.deadline is not None else settings.run_deadline_seconds
            ),
            ledger=None if args.no_ledger else RunLedger(settings.ledger_path),
        )
        report = orchestrator.run_insight_generation(unit_of_work, trigger=args.trigger)

    except (EnumerationError, ConfigurationError, ValueError) as e:
        logger.critical(f"Insight generation run failed: {type(e).__name__}: {e}")
        print(f"\nFATAL ERROR: {type(e).__name__}: {e}")
        return 2

    finally:
        if orchestrator is not None:
            orchestrator.close()
        if client is not None:
            client.close()

    for outcome in report.outcomes:
        ResultFormatter.print_outcome(outcome)
    ResultFormatter.print_summary(report)

    if report.has_failures:
        logger.warning("Run completed with failed tenants")
        return 1
    logger.info("Run completed successfully")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
