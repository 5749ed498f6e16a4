"""
Insight Service Client
Per-tenant calls to the external insight computation service over HTTP
"""

import threading
import time
from typing import Callable, Dict, Mapping, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from insight_runner.errors import (
    MalformedResponseError,
    RejectedResponseError,
    TransportError,
    UnitOfWorkError,
    UnitOfWorkTimeout,
)
from insight_runner.models.run import Tenant, WorkResult
from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)

# A unit of work takes one tenant and returns a WorkResult or raises UnitOfWorkError
UnitOfWork = Callable[[Tenant], WorkResult]


class InsightRunResponse(BaseModel):
    """Body of a successful POST /api/insights/run/{org_id}"""

    model_config = ConfigDict(extra="ignore")

    success: bool = True
    insights_created: int = Field(ge=0)


class RetryResponse(BaseModel):
    """Body of POST /api/v1/documents/retry-failed-embeddings/{org_id}"""

    model_config = ConfigDict(extra="ignore")

    success: bool
    retried: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)


class InsightServiceClient:
    """
    Thin client for the insight computation service.
    Translates every transport and payload problem into a UnitOfWorkError subtype.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            base_url: Service root, e.g. http://localhost:8000
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http_client = client or httpx.Client(timeout=timeout)

    def generate_insights(self, tenant: Tenant) -> WorkResult:
        """
        Asks the service to run insight generation for one tenant.

        Raises:
            UnitOfWorkTimeout, TransportError, RejectedResponseError,
            MalformedResponseError
        """
        url = f"{self.base_url}/api/insights/run/{tenant.tenant_id}"
        data = self._post_json(url)

        try:
            body = InsightRunResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"malformed response: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False)},
            )

        if not body.success:
            raise RejectedResponseError("service reported failure")

        return WorkResult(items_produced=body.insights_created)

    def retry_failed_embeddings(self, tenant_id: str) -> RetryResponse:
        """
        Asks the service to retry previously failed embeddings for one tenant.

        Raises:
            UnitOfWorkTimeout, TransportError, RejectedResponseError,
            MalformedResponseError
        """
        url = f"{self.base_url}/api/v1/documents/retry-failed-embeddings/{tenant_id}"
        data = self._post_json(url)

        try:
            return RetryResponse.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"malformed response: {e.error_count()} validation error(s)",
                details={"errors": e.errors(include_url=False)},
            )

    def _post_json(self, url: str) -> object:
        try:
            response = self._http_client.post(
                url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            raise UnitOfWorkTimeout()
        except httpx.HTTPError as e:
            raise TransportError(f"transport error: {e}")

        if not response.is_success:
            raise RejectedResponseError(
                f"API returned {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise MalformedResponseError("malformed response: body is not JSON")

    def close(self):
        """Close the underlying HTTP client"""
        self._http_client.close()


class HttpInsightUnitOfWork:
    """Adapts InsightServiceClient to the UnitOfWork callable contract"""

    def __init__(self, client: InsightServiceClient):
        self.client = client

    def __call__(self, tenant: Tenant) -> WorkResult:
        return self.client.generate_insights(tenant)


class MockUnitOfWork:
    """
    Scripted unit of work for dry runs and testing without the service.

    ``results`` maps tenant_id to either an item count or an exception to raise.
    Unknown tenants produce ``default_items``.
    """

    def __init__(
        self,
        results: Optional[Mapping[str, Union[int, Exception]]] = None,
        delays: Optional[Mapping[str, float]] = None,
        default_items: int = 0,
    ):
        self.results = dict(results or {})
        self.delays = dict(delays or {})
        self.default_items = default_items
        self.calls: Dict[str, int] = {}
        self._lock = threading.Lock()

    def __call__(self, tenant: Tenant) -> WorkResult:
        with self._lock:
            self.calls[tenant.tenant_id] = self.calls.get(tenant.tenant_id, 0) + 1

        delay = self.delays.get(tenant.tenant_id)
        if delay:
            time.sleep(delay)

        result = self.results.get(tenant.tenant_id, self.default_items)
        if isinstance(result, Exception):
            raise result
        if result < 0:
            raise UnitOfWorkError(f"mock configured with negative count {result}")
        return WorkResult(items_produced=result)
