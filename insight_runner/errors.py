"""
Error taxonomy for insight generation runs.

Only EnumerationError (and ConfigurationError, before a run starts) is allowed
to cross the orchestrator boundary. Every UnitOfWorkError and
RunDeadlineExceeded is converted into a failed Outcome for one tenant.
"""

from typing import Any, Dict, Optional


class InsightRunnerError(Exception):
    """
    Base error with a stable machine-readable code.

    All custom errors should inherit from this class.
    """

    code = "insight_runner_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a log/report friendly shape."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(InsightRunnerError, ValueError):
    """Settings are missing or invalid."""

    code = "configuration_error"


class EnumerationError(InsightRunnerError):
    """Tenant directory could not be resolved. Fatal to the whole run."""

    code = "enumeration_failed"


class UnitOfWorkError(InsightRunnerError):
    """A single tenant's unit of work failed. Scoped to that tenant."""

    code = "unit_of_work_failed"


class UnitOfWorkTimeout(UnitOfWorkError):
    """The unit of work did not finish within its timeout."""

    code = "timeout"

    def __init__(self, message: str = "timeout", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class TenantBusyError(UnitOfWorkError):
    """Another operation held the tenant's lock for the whole wait."""

    code = "tenant_busy"

    def __init__(self, message: str = "tenant busy", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class TransportError(UnitOfWorkError):
    """The request never produced a response (connection refused, DNS, reset)."""

    code = "transport"


class RejectedResponseError(UnitOfWorkError):
    """The service answered with a non-success status or reported failure."""

    code = "rejected"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class MalformedResponseError(UnitOfWorkError):
    """The service answered 2xx but the payload did not match the contract."""

    code = "malformed"


class RunDeadlineExceeded(InsightRunnerError):
    """The optional global run cap elapsed before this tenant was started."""

    code = "run_deadline_exceeded"

    def __init__(
        self,
        message: str = "run deadline exceeded",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
