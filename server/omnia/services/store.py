"""Record store backed by the Supabase (PostgREST) REST API."""

import logging
from typing import Any, Optional

import httpx

from ..config import get_settings
from ..pipeline.errors import StoreError, redact

logger = logging.getLogger(__name__)

# PostgREST operators accepted in (op, value) filters
OPERATORS = {"eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in", "is"}


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_filters(filters: Optional[dict[str, Any]]) -> list[tuple[str, str]]:
    """Translate a filter dict into PostgREST query parameters.

    Plain values are equality matches; ``(op, value)`` tuples pick the operator.
    """
    params = []
    for column, value in (filters or {}).items():
        op = "eq"
        if isinstance(value, tuple):
            op, value = value
            if op not in OPERATORS:
                raise ValueError(f"unsupported filter operator: {op}")
        if op == "in":
            value = "(" + ",".join(_format_value(v) for v in value) + ")"
        elif value is None and op == "eq":
            op = "is"
        params.append((column, f"{op}.{_format_value(value)}"))
    return params


class RecordStore:
    """Fetch, insert and update rows through the REST endpoint."""

    def __init__(
        self,
        url: str,
        service_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    @property
    def headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[list[tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        headers = self.headers
        if prefer:
            headers["Prefer"] = prefer

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    f"{self.url}/{path}",
                    params=params,
                    json=json,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            raise StoreError(redact(f"store request failed: {e}", [self.service_key]))

        if response.status_code >= 400:
            raise StoreError(redact(
                f"store returned {response.status_code} for {path}: {response.text[:200]}",
                [self.service_key],
            ))

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise StoreError(f"store returned a non-JSON body for {path}")

    async def fetch(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        columns: str = "*",
        limit: Optional[int] = None,
        order: Optional[str] = None,
    ) -> list[dict]:
        """Fetch rows matching filters."""
        params = [("select", columns)] + build_filters(filters)
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        rows = await self._request("GET", collection, params=params)
        return rows or []

    async def fetch_one(self, collection: str, id: Any, columns: str = "*") -> dict:
        """Fetch a row by id; a missing row is a not-found StoreError."""
        rows = await self.fetch(collection, {"id": id}, columns=columns, limit=1)
        if not rows:
            raise StoreError(f"{collection} row {id} not found", not_found=True)
        return rows[0]

    async def insert(self, collection: str, fields: dict) -> dict:
        """Insert a row and return it as stored."""
        rows = await self._request(
            "POST", collection, json=fields, prefer="return=representation"
        )
        if not rows:
            raise StoreError(f"insert into {collection} returned no row")
        return rows[0] if isinstance(rows, list) else rows

    async def update(self, collection: str, id: Any, fields: dict) -> None:
        """Update one row by id."""
        await self.update_where(collection, {"id": id}, fields)

    async def update_where(self, collection: str, filters: dict[str, Any], fields: dict) -> None:
        """Update every row matching filters."""
        if not filters:
            raise ValueError("update_where needs at least one filter")
        await self._request(
            "PATCH",
            collection,
            params=build_filters(filters),
            json=fields,
            prefer="return=minimal",
        )

    async def upsert(self, collection: str, fields: dict, on_conflict: str) -> dict:
        """Insert or merge a row keyed on ``on_conflict``."""
        rows = await self._request(
            "POST",
            collection,
            params=[("on_conflict", on_conflict)],
            json=fields,
            prefer="resolution=merge-duplicates,return=representation",
        )
        if isinstance(rows, list):
            return rows[0] if rows else {}
        return rows or {}

    async def rpc(self, function: str, params: Optional[dict] = None) -> Any:
        """Call a database function."""
        return await self._request("POST", f"rpc/{function}", json=params or {})


def get_record_store() -> RecordStore:
    """Build a record store from settings."""
    settings = get_settings()
    return RecordStore(
        url=settings.store_rest_url,
        service_key=settings.supabase_service_role_key,
        timeout=settings.store_timeout,
    )
