"""
Unit tests for the insight service client
Checks every remote failure mode maps to the right UnitOfWorkError subtype
"""

import httpx
import pytest

from insight_runner.errors import (
    MalformedResponseError,
    RejectedResponseError,
    TransportError,
    UnitOfWorkError,
    UnitOfWorkTimeout,
)
from insight_runner.models.run import Tenant, WorkResult
from insight_runner.work.insight_client import (
    HttpInsightUnitOfWork,
    InsightServiceClient,
    MockUnitOfWork,
)

API_URL = "http://insights.local"
TENANT = Tenant(tenant_id="org-7", name="Acme")


def _client(handler) -> InsightServiceClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    return InsightServiceClient(API_URL, timeout=5.0, client=http_client)


def test_generate_insights_success():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"success": True, "insights_created": 5})

    result = _client(handler).generate_insights(TENANT)

    assert result == WorkResult(items_produced=5)
    assert seen["method"] == "POST"
    assert seen["url"] == f"{API_URL}/api/insights/run/org-7"


def test_http_unit_of_work_delegates_to_client():
    unit = HttpInsightUnitOfWork(
        _client(lambda request: httpx.Response(200, json={"insights_created": 2}))
    )

    assert unit(TENANT).items_produced == 2


def test_timeout_maps_to_unit_of_work_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UnitOfWorkTimeout) as exc_info:
        _client(handler).generate_insights(TENANT)

    assert str(exc_info.value) == "timeout"


def test_connection_error_maps_to_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        _client(handler).generate_insights(TENANT)


def test_non_success_status_is_rejected():
    client = _client(lambda request: httpx.Response(500))

    with pytest.raises(RejectedResponseError) as exc_info:
        client.generate_insights(TENANT)

    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "API returned 500: Internal Server Error"


def test_service_reported_failure_is_rejected():
    client = _client(
        lambda request: httpx.Response(200, json={"success": False, "insights_created": 0})
    )

    with pytest.raises(RejectedResponseError):
        client.generate_insights(TENANT)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"success": True}),
        httpx.Response(200, json={"insights_created": -1}),
        httpx.Response(200, json={"insights_created": "many"}),
        httpx.Response(200, json=[1, 2, 3]),
    ],
)
def test_malformed_payloads(response):
    with pytest.raises(MalformedResponseError):
        _client(lambda request: response).generate_insights(TENANT)


def test_retry_failed_embeddings():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"success": True, "retried": 4, "succeeded": 3})

    response = _client(handler).retry_failed_embeddings("org-7")

    assert seen["url"] == f"{API_URL}/api/v1/documents/retry-failed-embeddings/org-7"
    assert response.success
    assert response.retried == 4
    assert response.succeeded == 3


def test_retry_failed_embeddings_malformed():
    client = _client(lambda request: httpx.Response(200, json={"retried": 1}))

    with pytest.raises(MalformedResponseError):
        client.retry_failed_embeddings("org-7")


def test_mock_unit_of_work_scripts_results():
    unit = MockUnitOfWork(results={"a": 3, "b": TransportError("down")}, default_items=1)

    assert unit(Tenant(tenant_id="a")).items_produced == 3
    assert unit(Tenant(tenant_id="z")).items_produced == 1
    with pytest.raises(TransportError):
        unit(Tenant(tenant_id="b"))
    assert unit.calls == {"a": 1, "z": 1, "b": 1}


def test_mock_unit_of_work_rejects_negative_counts():
    with pytest.raises(UnitOfWorkError):
        MockUnitOfWork(results={"a": -2})(Tenant(tenant_id="a"))
