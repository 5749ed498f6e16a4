"""
Orchestrator Module
Batch fan-out of insight generation across tenants
"""

from insight_runner.orchestrator.batch_orchestrator import BatchOrchestrator
from insight_runner.orchestrator.retry_orchestrator import RetryFailedOrchestrator

__all__ = ["BatchOrchestrator", "RetryFailedOrchestrator"]
