# eve_core/core/gateway.py

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import httpx
from loguru import logger

from eve_core.core.logging_config import trace_id_var

Filters = Mapping[str, Any]
OrderBy = Sequence[Tuple[str, str]]

_RESERVED_CHARS = set(',()"')


class DatabaseError(RuntimeError):
    """Raised when PostgREST answers with an error or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _quote(value: Any) -> str:
    text = _format_value(value)
    if any(ch in _RESERVED_CHARS for ch in text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


@dataclass(frozen=True)
class Condition:
    """A single PostgREST filter, e.g. ``eq.42`` or ``in.(a,b)``."""

    operator: str
    value: Any = None

    def render(self, nested: bool = False) -> str:
        """``nested`` quotes reserved characters, as required inside ``or=(...)``."""
        if self.operator == "in":
            return f"in.({','.join(_quote(v) for v in self.value)})"
        if self.operator == "is":
            return "is.null" if self.value is None else f"is.{_format_value(self.value).lower()}"
        value = _quote(self.value) if nested else _format_value(self.value)
        return f"{self.operator}.{value}"


def eq(value: Any) -> Condition:
    return Condition("eq", value)


def neq(value: Any) -> Condition:
    return Condition("neq", value)


def gte(value: Any) -> Condition:
    return Condition("gte", value)


def lte(value: Any) -> Condition:
    return Condition("lte", value)


def in_(values: Sequence[Any]) -> Condition:
    return Condition("in", list(values))


def ilike(pattern: str) -> Condition:
    """Case-insensitive match; ``*`` is the PostgREST wildcard."""
    return Condition("ilike", pattern)


def is_null() -> Condition:
    return Condition("is", None)


def as_condition(value: Any) -> Condition:
    """Plain values become ``eq``; lists become ``in``; ``None`` becomes ``is.null``."""
    if isinstance(value, Condition):
        return value
    if value is None:
        return is_null()
    if isinstance(value, (list, tuple, set, frozenset)):
        return in_(list(value))
    return eq(value)


def contains_text(query: str) -> str:
    """Builds an ilike pattern for a free-text substring, stripping wildcard characters."""
    cleaned = query.replace("*", " ").replace("%", " ").strip()
    return f"*{cleaned}*"


class QueryGateway:
    """
    Async client for the Supabase REST surface (PostgREST).
    Issues filtered selects, inserts, updates and deletes against named tables
    and invokes stored procedures through ``/rpc``.
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, api_key: str, access_token: Optional[str] = None):
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token or api_key

    @property
    def rest_url(self) -> str:
        return f"{self.base_url}/rest/v1"

    def with_access_token(self, access_token: Optional[str]) -> "QueryGateway":
        """Returns a gateway sharing the HTTP client but acting as another principal."""
        return QueryGateway(self.http, self.base_url, self.api_key, access_token)

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        trace_id = trace_id_var.get()
        if trace_id != "unset":
            headers["X-Request-ID"] = trace_id
        return headers

    @staticmethod
    def build_params(
        filters: Optional[Filters] = None,
        *,
        columns: Optional[str] = None,
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
        or_filters: Optional[Sequence[Tuple[str, Condition]]] = None,
    ) -> List[Tuple[str, str]]:
        params: List[Tuple[str, str]] = []
        if columns:
            params.append(("select", columns))
        for column, value in (filters or {}).items():
            params.append((column, as_condition(value).render()))
        if or_filters:
            rendered = ",".join(f"{column}.{condition.render(nested=True)}" for column, condition in or_filters)
            params.append(("or", f"({rendered})"))
        if order:
            params.append(("order", ",".join(f"{column}.{direction}" for column, direction in order)))
        if limit is not None:
            params.append(("limit", str(limit)))
        return params

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[List[Tuple[str, str]]] = None,
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        url = f"{self.rest_url}/{path.lstrip('/')}"
        log = logger.bind(service="QueryGateway", method=method, path=path)
        try:
            response = await self.http.request(method, url, params=params, json=json, headers=self._headers(prefer))
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as http_err:
            body: Dict[str, Any] = {}
            try:
                body = http_err.response.json()
            except ValueError:
                body = {"message": http_err.response.text[:300]}
            message = body.get("message") or f"HTTP {http_err.response.status_code}"
            log.warning(f"PostgREST error {http_err.response.status_code} on {method} {path}: {message}")
            raise DatabaseError(
                message,
                status_code=http_err.response.status_code,
                code=body.get("code"),
                details=body.get("details"),
            ) from http_err
        except httpx.TimeoutException as timeout_err:
            log.error(f"Timeout calling PostgREST {method} {path}")
            raise DatabaseError(f"Database request timed out: {path}") from timeout_err
        except httpx.RequestError as req_err:
            log.error(f"Network error calling PostgREST {method} {path}: {req_err}")
            raise DatabaseError(f"Database request failed: {req_err}") from req_err

    async def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        columns: str = "*",
        order: Optional[OrderBy] = None,
        limit: Optional[int] = None,
        or_filters: Optional[Sequence[Tuple[str, Condition]]] = None,
    ) -> List[Dict[str, Any]]:
        params = self.build_params(filters, columns=columns, order=order, limit=limit, or_filters=or_filters)
        response = await self._request("GET", table, params=params)
        return response.json()

    async def select_one(self, table: str, filters: Filters, *, columns: str = "*") -> Optional[Dict[str, Any]]:
        rows = await self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, values: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        payload = values if isinstance(values, list) else [values]
        response = await self._request("POST", table, json=payload, prefer="return=representation")
        return response.json()

    async def update(self, table: str, filters: Filters, values: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError(f"Refusing unfiltered update on '{table}'.")
        params = self.build_params(filters)
        response = await self._request("PATCH", table, params=params, json=values, prefer="return=representation")
        return response.json()

    async def delete(self, table: str, filters: Filters) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on '{table}'.")
        params = self.build_params(filters)
        response = await self._request("DELETE", table, params=params, prefer="return=representation")
        return response.json()

    async def count(self, table: str, filters: Optional[Filters] = None) -> int:
        params = self.build_params(filters, columns="id")
        response = await self._request("HEAD", table, params=params, prefer="count=exact")
        content_range = response.headers.get("Content-Range", "*/0")
        total = content_range.rsplit("/", 1)[-1]
        return int(total) if total.isdigit() else 0

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None, filters: Optional[Filters] = None) -> Any:
        """Calls a stored procedure; ``filters`` apply to set-returning results."""
        query = self.build_params(filters) if filters else None
        response = await self._request("POST", f"rpc/{function}", params=query, json=params or {})
        if not response.content:
            return None
        return response.json()

    async def ping(self) -> int:
        """Hits the REST root; any status below 500 means the service is reachable."""
        url = f"{self.rest_url}/"
        try:
            response = await self.http.get(url, headers=self._headers())
        except httpx.RequestError as req_err:
            raise DatabaseError(f"Supabase unreachable: {req_err}") from req_err
        if response.status_code >= 500:
            raise DatabaseError(f"Supabase returned {response.status_code}", status_code=response.status_code)
        return response.status_code
