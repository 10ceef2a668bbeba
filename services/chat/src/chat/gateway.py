"""
Financial data gateway.

Thin async client for the Supabase (PostgREST) data service that owns the
construction budget schema. Five read-only aggregate RPCs, one project-name
lookup and one append-only conversation log write. All budget math
(sums, percentages, remaining, overspent) is computed server-side.
"""

from typing import Any, Dict, List, Optional

import httpx
from libs.budget_shared.errors import ConfigurationError, GatewayError
from libs.budget_shared.logging import get_logger

from .config import ChatConfig
from .models import ConversationLogEntry

logger = get_logger(__name__)

Row = Dict[str, Any]


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class FinancialDataGateway:
    """
    Client for the financial data service.

    Provides:
    - Pooled HTTP client scoped to the service's REST root
    - RPC wrappers for the aggregate queries (tenant scoped)
    - Project name resolution (case-insensitive substring, first match)
    - Conversation log append
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 30.0,
        log_table: str = "chat_logs",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the gateway with a persistent HTTP client.

        Args:
            url: Data service base URL (``SUPABASE_URL``)
            service_key: Service role credential
            timeout: Transport timeout in seconds
            log_table: Table receiving conversation log rows
            transport: Optional transport override (tests)
        """
        if not url or not service_key:
            raise ConfigurationError(
                "Missing SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY"
            )

        self.log_table = log_table
        self.client = httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
        )
        logger.info(f"Financial data gateway initialized for {url}")

    @classmethod
    def from_config(cls, config: ChatConfig) -> "FinancialDataGateway":
        return cls(
            url=config.supabase_url,
            service_key=config.supabase_service_role_key,
            timeout=config.gateway_timeout,
            log_table=config.chat_log_table,
        )

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        await self.client.aclose()
        logger.info("Financial data gateway closed")

    # --- Transport ------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Data service unreachable for {method} {path}: {e}")
            raise GatewayError(f"Data service unavailable: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(
                f"Data service error {response.status_code} for {method} {path}: {message}"
            )
            raise GatewayError(message, status_code=response.status_code)
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """PostgREST errors carry a JSON body with a ``message`` field."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.text or f"HTTP {response.status_code}"

    async def rpc(self, function: str, params: Dict[str, Any]) -> List[Row]:
        """Call a stored procedure and return its rows (possibly empty)."""
        response = await self._request("POST", f"/rpc/{function}", json=params)
        if not response.content:
            return []
        data = response.json()
        if data is None:
            return []
        # Set-returning functions give a list; scalar ones a single object
        rows = data if isinstance(data, list) else [data]
        if not all(isinstance(row, dict) for row in rows):
            logger.error(f"Malformed rows from {function}: {str(rows)[:200]}")
            raise GatewayError(f"Malformed data from the data service for {function}")
        return rows

    # --- Aggregate queries ----------------------------------------------------

    async def budget_by_trade(
        self, tenant_id: str, project_id: Optional[str] = None
    ) -> List[Row]:
        return await self.rpc(
            "get_budget_by_trade",
            {"p_org_id": tenant_id, "p_project_id": project_id},
        )

    async def budget_by_project(self, tenant_id: str) -> List[Row]:
        return await self.rpc("get_budget_by_project", {"p_org_id": tenant_id})

    async def overspent_packages(
        self, tenant_id: str, project_id: Optional[str] = None
    ) -> List[Row]:
        return await self.rpc(
            "get_overspent_packages",
            {"p_org_id": tenant_id, "p_project_id": project_id},
        )

    async def financial_summary(
        self, tenant_id: str, project_id: Optional[str] = None
    ) -> List[Row]:
        return await self.rpc(
            "get_financial_summary",
            {"p_org_id": tenant_id, "p_project_id": project_id},
        )

    async def packages_by_trade(
        self, tenant_id: str, trade_name: str, project_id: Optional[str] = None
    ) -> List[Row]:
        return await self.rpc(
            "get_packages_by_trade",
            {
                "p_org_id": tenant_id,
                "p_trade_name": trade_name,
                "p_project_id": project_id,
            },
        )

    # --- Lookup & log ---------------------------------------------------------

    async def find_project_id(self, tenant_id: str, fragment: str) -> Optional[str]:
        """
        Resolve a free-text project name to its identifier.

        Case-insensitive substring match against the tenant's project names;
        the first match (by name) wins. Returns None when nothing matches.
        """
        # PostgREST turns * into %, so it cannot be matched literally
        needle = fragment.strip().replace("*", "")
        if not needle:
            return None
        needle = _escape_like(needle)

        response = await self._request(
            "GET",
            "/projects",
            params={
                "select": "id,name",
                "org_id": f"eq.{tenant_id}",
                "name": f"ilike.*{needle}*",
                "order": "name.asc",
                "limit": "1",
            },
        )
        rows = response.json() or []
        if not rows:
            logger.info(f"No project matches '{fragment}'")
            return None
        logger.debug(f"Resolved project '{fragment}' -> {rows[0]['name']}")
        return rows[0]["id"]

    async def append_conversation_log(self, entry: ConversationLogEntry) -> None:
        """Insert one conversation log row; nothing is read back."""
        await self._request(
            "POST",
            f"/{self.log_table}",
            json=entry.model_dump(mode="json"),
            headers={"Prefer": "return=minimal"},
        )
