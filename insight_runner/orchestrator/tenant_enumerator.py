"""
Tenant Enumerator Module
Single Responsibility: Resolve the set of tenants a run should process
"""

import json
from pathlib import Path
from typing import Any, Iterable, List, Optional

import httpx
from pydantic import ValidationError

from insight_runner.errors import ConfigurationError, EnumerationError
from insight_runner.models.run import Tenant
from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)


def _tenants_from_rows(rows: Any, source: str) -> List[Tenant]:
    """Converts directory rows ({"id": ..., "name": ...}) into Tenants"""
    if not isinstance(rows, list):
        raise EnumerationError(
            f"Tenant directory {source} returned {type(rows).__name__}, expected a list"
        )

    tenants = []
    for position, row in enumerate(rows):
        if not isinstance(row, dict) or row.get("id") in (None, ""):
            raise EnumerationError(
                f"Tenant directory {source} returned an invalid row at position {position}"
            )
        try:
            tenants.append(
                Tenant(tenant_id=str(row["id"]), name=str(row.get("name") or ""))
            )
        except ValidationError as e:
            raise EnumerationError(
                f"Tenant directory {source} returned an invalid row at position {position}: {e}"
            )
    return tenants


class TenantEnumerator:
    """
    Resolves the current universe of tenants.
    Pure directory reader - no business logic, no caching between calls.
    """

    def list_tenants(self) -> List[Tenant]:
        """
        Returns tenants in directory order.

        Raises:
            EnumerationError: If the directory lookup cannot complete
        """
        raise NotImplementedError


class StaticTenantEnumerator(TenantEnumerator):
    """Fixed tenant list, used for operator runs against a hand-picked set"""

    def __init__(self, tenants: Iterable[Tenant]):
        self._tenants = list(tenants)

    @classmethod
    def from_file(cls, path: str) -> "StaticTenantEnumerator":
        """
        Loads tenants from a JSON file holding a list of {"id", "name"} objects.

        Raises:
            EnumerationError: If the file is missing or malformed
        """
        tenants_file = Path(path)
        if not tenants_file.exists():
            logger.error(f"Tenants file not found: {path}")
            raise EnumerationError(f"Tenants file not found: {path}")

        try:
            with open(tenants_file, "r", encoding="utf-8") as f:
                rows = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read tenants file {path}: {e}")
            raise EnumerationError(f"Could not read tenants file {path}: {e}")

        tenants = _tenants_from_rows(rows, source=str(path))
        logger.info(f"Loaded {len(tenants)} tenants from {path}")
        return cls(tenants)

    def list_tenants(self) -> List[Tenant]:
        return list(self._tenants)


class SupabaseTenantEnumerator(TenantEnumerator):
    """
    Reads organizations from the Supabase REST (PostgREST) endpoint.
    Every call issues a fresh request.
    """

    def __init__(
        self,
        base_url: Optional[str],
        service_key: Optional[str],
        table: str = "organizations",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        """
        Args:
            base_url: Supabase project URL
            service_key: Service role key, sent as apikey and bearer token
            table: Table holding one row per tenant
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (tests inject a MockTransport)

        Raises:
            ConfigurationError: If the URL or key is missing
        """
        if not base_url or not service_key:
            raise ConfigurationError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required "
                "for the tenant directory. Set them in .env or use --tenants-file"
            )
        self.base_url = base_url.rstrip("/")
        self.table = table
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Accept": "application/json",
        }
        self._http_client = client or httpx.Client(timeout=timeout)

    def list_tenants(self) -> List[Tenant]:
        url = f"{self.base_url}/rest/v1/{self.table}"
        logger.debug(f"Fetching tenants from {url}")

        try:
            response = self._http_client.get(
                url, params={"select": "id,name"}, headers=self._headers
            )
            response.raise_for_status()
            rows = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Tenant directory returned {e.response.status_code}",
                extra={"status_code": e.response.status_code},
            )
            raise EnumerationError(
                f"Failed to fetch organizations: HTTP {e.response.status_code}"
            )
        except httpx.HTTPError as e:
            logger.error(f"Tenant directory unreachable: {e}")
            raise EnumerationError(f"Failed to fetch organizations: {e}")
        except ValueError as e:
            logger.error(f"Tenant directory returned invalid JSON: {e}")
            raise EnumerationError(f"Failed to fetch organizations: invalid JSON ({e})")

        tenants = _tenants_from_rows(rows, source=url)
        logger.info(f"Discovered {len(tenants)} tenants in {self.table}")
        return tenants

    def close(self):
        """Close the underlying HTTP client"""
        self._http_client.close()
