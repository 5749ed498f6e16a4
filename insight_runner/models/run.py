"""
Run Models
Pydantic v2 models for tenants, per-tenant outcomes and the run report
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

TriggerSource = Literal["scheduled", "manual"]


# ==========================================
# INPUTS
# ==========================================


class Tenant(BaseModel):
    """An organization insights are generated for. Immutable for a run."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant_id: str = Field(min_length=1)
    name: str = ""

    @property
    def label(self) -> str:
        """Human readable identifier for logs"""
        return f"{self.name} ({self.tenant_id})" if self.name else self.tenant_id


class WorkResult(BaseModel):
    """Successful result of one unit of work"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    items_produced: int = Field(ge=0)


# ==========================================
# OUTCOMES
# ==========================================


class Outcome(BaseModel):
    """Recorded result for exactly one tenant in one run"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant: Tenant
    succeeded: bool
    items_produced: int = Field(default=0, ge=0)
    error_message: str = ""

    @model_validator(mode="after")
    def _check_consistency(self) -> "Outcome":
        if self.succeeded and self.error_message:
            raise ValueError("a succeeded outcome cannot carry an error message")
        if not self.succeeded:
            if self.items_produced != 0:
                raise ValueError("a failed outcome cannot produce items")
            if not self.error_message:
                raise ValueError("a failed outcome needs an error message")
        return self

    def to_result_dict(self) -> Dict[str, Any]:
        """Shape used by the job-completion log entry"""
        result: Dict[str, Any] = {
            "org_id": self.tenant.tenant_id,
            "success": self.succeeded,
            "insights_created": self.items_produced,
        }
        if not self.succeeded:
            result["error"] = self.error_message
        return result


class RetryResult(BaseModel):
    """Result of asking the service to retry one tenant's failed sub-units"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tenant: Tenant
    succeeded: bool
    items_retried: int = Field(default=0, ge=0)
    items_succeeded: int = Field(default=0, ge=0)
    error_message: str = ""


# ==========================================
# RUN REPORT
# ==========================================


class RunReport(BaseModel):
    """
    Aggregated, immutable summary of one orchestrator invocation.

    The aggregate counters are derived from ``outcomes``; build reports with
    ``RunReport.from_outcomes`` rather than filling them in by hand.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    trigger: TriggerSource = "manual"
    tenants_processed: int = Field(ge=0)
    tenants_succeeded: int = Field(ge=0)
    total_items_produced: int = Field(ge=0)
    outcomes: Tuple[Outcome, ...] = ()
    started_at: datetime
    finished_at: datetime

    @model_validator(mode="after")
    def _check_aggregates(self) -> "RunReport":
        if self.tenants_processed != len(self.outcomes):
            raise ValueError(
                f"tenants_processed={self.tenants_processed} but "
                f"{len(self.outcomes)} outcomes recorded"
            )
        succeeded = sum(1 for o in self.outcomes if o.succeeded)
        if self.tenants_succeeded != succeeded:
            raise ValueError(
                f"tenants_succeeded={self.tenants_succeeded} but "
                f"{succeeded} outcomes succeeded"
            )
        items = sum(o.items_produced for o in self.outcomes)
        if self.total_items_produced != items:
            raise ValueError(
                f"total_items_produced={self.total_items_produced} but "
                f"outcomes sum to {items}"
            )
        if self.finished_at < self.started_at:
            raise ValueError("finished_at precedes started_at")
        return self

    @classmethod
    def from_outcomes(
        cls,
        outcomes: Sequence[Outcome],
        started_at: datetime,
        finished_at: datetime,
        trigger: TriggerSource = "manual",
        run_id: Optional[str] = None,
    ) -> "RunReport":
        """Builds a report, deriving the aggregate fields from the outcomes"""
        outcomes = tuple(outcomes)
        fields: Dict[str, Any] = {
            "trigger": trigger,
            "tenants_processed": len(outcomes),
            "tenants_succeeded": sum(1 for o in outcomes if o.succeeded),
            "total_items_produced": sum(o.items_produced for o in outcomes),
            "outcomes": outcomes,
            "started_at": started_at,
            "finished_at": finished_at,
        }
        if run_id is not None:
            fields["run_id"] = run_id
        return cls(**fields)

    @property
    def tenants_failed(self) -> int:
        return self.tenants_processed - self.tenants_succeeded

    @property
    def has_failures(self) -> bool:
        return self.tenants_failed > 0

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def failed_outcomes(self) -> List[Outcome]:
        return [o for o in self.outcomes if not o.succeeded]

    def to_log_entry(self) -> Dict[str, Any]:
        """Job-completion record written to the log after every run"""
        return {
            "function_name": "generate-insights",
            "run_id": self.run_id,
            "trigger": self.trigger,
            "execution_time": self.finished_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "organizations_processed": self.tenants_processed,
            "successful_orgs": self.tenants_succeeded,
            "total_insights_generated": self.total_items_produced,
            "results": [o.to_result_dict() for o in self.outcomes],
        }
