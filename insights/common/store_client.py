"""
Supabase REST Client

Thin async client for the two Supabase projects the engine reads from
(interview corpus and expert profiles). Talks to PostgREST directly over
httpx: table selects with filter query parameters, and RPC calls.

The client is read-only and stateless apart from a lazily created
connection pool, so one instance is shared across concurrent requests.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import httpx

logger = logging.getLogger("insights.common.store_client")

QueryParams = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


class StoreError(Exception):
    """A record store request failed (connection, HTTP status, payload)."""

    def __init__(self, operation: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.message = message
        self.status_code = status_code


class SupabaseRestClient:
    """
    Async PostgREST client for one Supabase project.

    Usage:
        client = SupabaseRestClient(
            base_url="https://xyz.supabase.co",
            service_role_key="..."
        )
        rows = await client.select("interview_messages", [("meeting_id", "eq.123")])
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Supabase project URL (without /rest/v1)
            service_role_key: Service role key used for both apikey and bearer auth
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests inject httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._service_role_key = service_role_key
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}/rest/v1"

    def _ensure_client(self) -> httpx.AsyncClient:
        """Create the pooled async client if not yet created."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.rest_url,
                headers={
                    "apikey": self._service_role_key,
                    "Authorization": f"Bearer {self._service_role_key}",
                    "Accept": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def select(
        self,
        table: str,
        params: QueryParams,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """
        Read rows from a table.

        Args:
            table: Table name
            params: PostgREST filter/order/limit parameters. A sequence of
                pairs allows the same column to be filtered twice
                (e.g. created_at gte + lte).
            columns: select clause

        Returns:
            List of row dicts (empty when nothing matches)

        Raises:
            StoreError: On connection failure, non-2xx status or bad payload
        """
        query: List[Tuple[str, Any]] = [("select", columns)]
        query.extend(params.items() if isinstance(params, dict) else params)
        return await self._request("GET", f"/{table}", operation=f"select {table}", params=query)

    async def rpc(self, function: str, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Call a Postgres function exposed through PostgREST.

        Raises:
            StoreError: On connection failure, non-2xx status or bad payload
        """
        return await self._request("POST", f"/rpc/{function}", operation=f"rpc {function}", json=arguments)

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> List[Dict[str, Any]]:
        client = self._ensure_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Store %s error: %s", operation, e)
            raise StoreError(operation, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error("Store %s returned %s: %s", operation, response.status_code, message)
            raise StoreError(operation, message, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise StoreError(operation, f"invalid JSON payload: {e}", status_code=response.status_code) from e

        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StoreError(operation, f"unexpected payload type {type(data).__name__}")
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    async def health_check(self) -> bool:
        """Check if the PostgREST endpoint answers."""
        try:
            client = self._ensure_client()
            response = await client.get("/", timeout=5.0)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.warning("Store health check failed for %s: %s", self.base_url, e)
            return False


def create_store_client(
    base_url: Optional[str],
    service_role_key: Optional[str],
    timeout: float = 30.0,
) -> Optional[SupabaseRestClient]:
    """
    Factory returning a client, or None when the store is not configured.
    """
    if not base_url or not service_role_key:
        logger.info("Store not configured (url or service role key missing)")
        return None
    return SupabaseRestClient(base_url=base_url, service_role_key=service_role_key, timeout=timeout)
