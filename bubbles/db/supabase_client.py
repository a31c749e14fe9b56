"""
Supabase client for reading and writing tables through the PostgREST API.

Only the handful of operations the stores need are implemented: filtered
select with ordering/limit, insert, update and delete.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from bubbles.config import settings


class SupabaseError(Exception):
    """Base exception for Supabase errors."""
    pass


class SupabaseAuthError(SupabaseError):
    """Authentication error when calling Supabase."""
    pass


class SupabaseQueryError(SupabaseError):
    """Error executing a PostgREST request."""
    pass


Filter = Tuple[str, str, Any]  # (column, operator, value), e.g. ("session_id", "eq", "abc")


class SupabaseClient:
    """
    Async client for Supabase tables.

    Example usage:
        client = SupabaseClient(url="https://xyz.supabase.co", service_key="...")

        rows = await client.select(
            "chat_messages",
            filters=[("conversation_id", "eq", conversation_id)],
            order=[("timestamp", True)],
        )
        row = await client.insert("chat_conversations", {"session_id": "abc"})
    """

    def __init__(
        self,
        url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = (url or settings.supabase_url or "").rstrip("/")
        self.service_key = service_key or settings.supabase_service_role_key
        self.timeout = timeout
        self._transport = transport

        if not self.url:
            raise SupabaseError("SUPABASE_URL is required")

        self._client: Optional[httpx.AsyncClient] = None

    @property
    def headers(self) -> Dict[str, str]:
        """Get headers for PostgREST requests."""
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.service_key:
            headers["apikey"] = self.service_key
            headers["Authorization"] = f"Bearer {self.service_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/rest/v1",
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _params(
        filters: Sequence[Filter] = (),
        order: Sequence[Tuple[str, bool]] = (),
        limit: Optional[int] = None,
        columns: str = "*",
        offset: Optional[int] = None,
    ) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = [("select", columns)]
        for column, op, value in filters:
            if isinstance(value, bool):
                value = "true" if value else "false"
            params.append((column, f"{op}.{value}"))
        if order:
            params.append(("order", ",".join(f"{col}.{'asc' if asc else 'desc'}" for col, asc in order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))
        return params

    async def _send(self, method: str, table: str, **kwargs: Any) -> Any:
        client = await self._get_client()
        try:
            response = await client.request(method, f"/{table}", **kwargs)

            if response.status_code in (401, 403):
                raise SupabaseAuthError("Invalid or missing service role key")

            response.raise_for_status()
            if not response.content:
                return None
            return response.json()

        except httpx.HTTPStatusError as e:
            raise SupabaseQueryError(f"{method} {table} failed: {e.response.text}") from e
        except httpx.RequestError as e:
            raise SupabaseQueryError(f"Request failed: {str(e)}") from e

    async def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Tuple[str, bool]] = (),
        limit: Optional[int] = None,
        columns: str = "*",
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows from a table.

        Args:
            table: Table name
            filters: (column, operator, value) triples; operators are PostgREST ones (eq, gte, ilike...)
            order: (column, ascending) pairs applied in order
            limit: Maximum rows to return
            offset: Rows to skip (paging)
            columns: Column list for ``select``

        Raises:
            SupabaseQueryError: If the request fails
        """
        data = await self._send("GET", table, params=self._params(filters, order, limit, columns, offset))
        if not isinstance(data, list):
            raise SupabaseQueryError(f"select {table} returned a non-list payload")
        return data

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        data = await self._send(
            "POST",
            table,
            json=row,
            headers={"Prefer": "return=representation"},
        )
        if isinstance(data, list) and data:
            return data[0]
        raise SupabaseQueryError(f"insert into {table} returned no row")

    async def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> List[Dict[str, Any]]:
        """Update matching rows and return them."""
        data = await self._send(
            "PATCH",
            table,
            json=values,
            params=self._params(filters),
            headers={"Prefer": "return=representation"},
        )
        return data or []

    async def delete(self, table: str, filters: Sequence[Filter]) -> None:
        if not filters:
            raise SupabaseError("refusing to delete without filters")
        await self._send("DELETE", table, params=self._params(filters))


_client: Optional[SupabaseClient] = None


def get_supabase_client() -> Optional[SupabaseClient]:
    """Shared client, or None when Supabase is not configured."""
    global _client
    if not settings.has_supabase:
        return None
    if _client is None:
        _client = SupabaseClient()
    return _client
