# tests/conftest.py
import os

os.environ.update({
    "PROJECT_NAME": "EVE Platform Test",
    "API_V1_STR": "/api/v1",
    "LOG_LEVEL": "DEBUG",
    "SUPABASE_URL": "http://supabase.test",
    "SUPABASE_SERVICE_ROLE_KEY": "service-role-test-key",
    "SUPABASE_ANON_KEY": "anon-test-key",
    "SUPABASE_JWT_SECRET": "",
    "TWILIO_AUTH_TOKEN": "",
    "OPENAI_API_KEY": "sk-test",
    "BACKFILL_ENABLED": "false",
})

import copy
import fnmatch
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from eve_core.core.gateway import Condition, DatabaseError, as_condition
from eve_core.services.ai_gateway import AIGatewayError, CompletionResult, MissingCredentialsError

UNIQUE_KEYS = {
    "memories": ("eve_id", "key"),
    "memory_vectors": ("memory_id",),
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _read(row: Dict[str, Any], column: str) -> Any:
    if "->>" in column:
        base, key = column.split("->>", 1)
        value = row.get(base)
        if isinstance(value, dict):
            inner = value.get(key)
            return None if inner is None else str(inner)
        return None
    return row.get(column)


def _matches(row: Dict[str, Any], column: str, condition: Any) -> bool:
    cond: Condition = as_condition(condition)
    actual = _read(row, column)
    if cond.operator == "eq":
        return actual == cond.value
    if cond.operator == "neq":
        return actual != cond.value
    if cond.operator == "in":
        return actual in cond.value
    if cond.operator == "is":
        return actual is cond.value
    if cond.operator == "ilike":
        return actual is not None and fnmatch.fnmatch(str(actual).lower(), cond.value.lower())
    if cond.operator == "gte":
        return actual is not None and actual >= cond.value
    if cond.operator == "lte":
        return actual is not None and actual <= cond.value
    raise AssertionError(f"Unsupported operator in fake gateway: {cond.operator}")


class InMemoryGateway:
    """Stand-in for the PostgREST gateway that evaluates filters over Python dicts."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        self.rpc_calls: List[tuple] = []
        self.rpc_handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self.failing_rpcs: set = set()
        self.failing_tables: set = set()

    def seed(self, table: str, **row: Any) -> Dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _now_iso())
        self.tables[table].append(row)
        return row

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]

    def with_access_token(self, access_token: Optional[str]) -> "InMemoryGateway":
        return self

    def _check_table(self, table: str) -> None:
        if table in self.failing_tables:
            raise DatabaseError(f"relation {table} is unavailable", status_code=503)

    def _filtered(self, table: str, filters=None, or_filters=None) -> List[Dict[str, Any]]:
        rows = [
            row for row in self.tables[table]
            if all(_matches(row, column, cond) for column, cond in (filters or {}).items())
        ]
        if or_filters:
            rows = [row for row in rows if any(_matches(row, column, cond) for column, cond in or_filters)]
        return rows

    async def select(self, table, filters=None, *, columns="*", order=None, limit=None, or_filters=None):
        self._check_table(table)
        rows = self._filtered(table, filters, or_filters)
        for column, direction in reversed(list(order or [])):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            rows = sorted(present, key=lambda r: r[column], reverse=direction == "desc") + missing
        if limit is not None:
            rows = rows[:limit]
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            return [{c: row.get(c) for c in wanted} for row in rows]
        return copy.deepcopy(rows)

    async def select_one(self, table, filters, *, columns="*"):
        rows = await self.select(table, filters, columns=columns, limit=1)
        return rows[0] if rows else None

    async def insert(self, table, values):
        self._check_table(table)
        payload = values if isinstance(values, list) else [values]
        created = []
        for value in payload:
            row = dict(value)
            unique = UNIQUE_KEYS.get(table)
            if unique and any(all(existing.get(k) == row.get(k) for k in unique) for existing in self.tables[table]):
                raise DatabaseError("duplicate key value violates unique constraint", status_code=409, code="23505")
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", _now_iso())
            self.tables[table].append(row)
            created.append(copy.deepcopy(row))
        return created

    async def update(self, table, filters, values):
        self._check_table(table)
        if not filters:
            raise ValueError(f"Refusing unfiltered update on '{table}'.")
        updated = []
        for row in self._filtered(table, filters):
            row.update(values)
            row["updated_at"] = _now_iso()
            updated.append(copy.deepcopy(row))
        return updated

    async def delete(self, table, filters):
        self._check_table(table)
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on '{table}'.")
        doomed = self._filtered(table, filters)
        self.tables[table] = [row for row in self.tables[table] if row not in doomed]
        return copy.deepcopy(doomed)

    async def count(self, table, filters=None):
        self._check_table(table)
        return len(self._filtered(table, filters))

    async def rpc(self, function, params=None, filters=None):
        self.rpc_calls.append((function, params))
        if function in self.failing_rpcs:
            raise DatabaseError(f"function {function} failed", status_code=500)
        if function in self.rpc_handlers:
            result = self.rpc_handlers[function](params or {})
        elif function == "log_event":
            self.seed(
                "logs",
                eve_id=params.get("p_eve_id"),
                action_id=params.get("p_action_id"),
                company_id=params.get("p_company_id"),
                event_type=params.get("p_event_type"),
                status=params.get("p_status"),
                message=params.get("p_message"),
                metadata=params.get("p_metadata"),
            )
            result = None
        elif function == "search_memory_vectors":
            result = self._vector_search(params or {})
        else:
            result = None
        if filters and isinstance(result, list):
            result = [row for row in result if all(_matches(row, c, v) for c, v in filters.items())]
        return result

    def _vector_search(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with_vectors = {v["memory_id"] for v in self.tables["memory_vectors"]}
        rows = [
            {**copy.deepcopy(m), "similarity": 1.0 - index * 0.01}
            for index, m in enumerate(self.tables["memories"])
            if m["eve_id"] == params.get("eve_id_param") and m["id"] in with_vectors
        ]
        return rows

    async def ping(self):
        return 200


class FakeAIGateway:
    """Records calls and answers with canned content."""

    def __init__(self):
        self.completion_content = "Fake analysis"
        self.tokens_used = 42
        self.stream_pieces = ["Hello", " there"]
        self.embedding = [0.01] * 1536
        self.fail_complete = False
        self.fail_embed = False
        self.calls: List[tuple] = []

    async def complete(self, messages, **kwargs):
        self.calls.append(("complete", messages, kwargs))
        if self.fail_complete:
            raise AIGatewayError("provider down")
        return CompletionResult(content=self.completion_content, tokens_used=self.tokens_used, model=kwargs.get("model") or "gpt-4")

    async def stream_completion(self, messages, **kwargs):
        self.calls.append(("stream_completion", messages, kwargs))
        if self.fail_complete:
            raise AIGatewayError("provider down")
        for piece in self.stream_pieces:
            yield piece

    async def collect_completion(self, messages, **kwargs):
        parts = []
        async for piece in self.stream_completion(messages, **kwargs):
            parts.append(piece)
        return "".join(parts)

    async def embed(self, text):
        self.calls.append(("embed", text))
        if self.fail_embed:
            raise AIGatewayError("embedding failed")
        return list(self.embedding)

    async def transcribe(self, audio, filename="audio.webm", language="en"):
        self.calls.append(("transcribe", audio, language))
        return "transcribed text"

    async def synthesize_speech(self, text, voice):
        self.calls.append(("synthesize_speech", text, voice))
        return b"ID3-fake-mp3"

    async def stream_speech(self, text, voice):
        self.calls.append(("stream_speech", text, voice))
        yield b"ID3-"
        yield b"fake-mp3"

    async def proxy(self, endpoint, params):
        self.calls.append(("proxy", endpoint, params))
        raise AIGatewayError("proxy not stubbed")

    async def proxy_stream(self, params):
        self.calls.append(("proxy_stream", params))
        yield "{}"


class FakeResolver:
    def __init__(self, ai: FakeAIGateway):
        self.ai = ai
        self.missing_credentials = False

    async def for_company(self, company_id):
        if self.missing_credentials:
            raise MissingCredentialsError("No OpenAI API key available")
        return self.ai

    def platform(self):
        if self.missing_credentials:
            raise MissingCredentialsError("No OpenAI API key available")
        return self.ai


@pytest.fixture
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture
def fake_ai() -> FakeAIGateway:
    return FakeAIGateway()


@pytest.fixture
def resolver(fake_ai: FakeAIGateway) -> FakeResolver:
    return FakeResolver(fake_ai)


@pytest.fixture
def seeded(gateway: InMemoryGateway) -> Dict[str, Dict[str, Any]]:
    """Two companies; Acme has two EVEs and a task, Globex has one EVE."""
    acme = gateway.seed("companies", name="Acme")
    globex = gateway.seed("companies", name="Globex")
    ava = gateway.seed("eves", name="Ava", company_id=acme["id"], status="active", capabilities=["scheduling", "email"])
    bo = gateway.seed("eves", name="Bo", company_id=acme["id"], status="active", capabilities=["research"])
    gus = gateway.seed("eves", name="Gus", company_id=globex["id"], status="active")
    task = gateway.seed("tasks", eve_id=ava["id"], description="Prepare the quarterly report", status="pending", priority="medium", company_id=acme["id"])
    return {"acme": acme, "globex": globex, "ava": ava, "bo": bo, "gus": gus, "task": task}


@pytest.fixture
def app(gateway: InMemoryGateway, resolver: FakeResolver):
    from eve_core.core.database import get_query_gateway, get_redis_client
    from eve_core.main import create_app
    from eve_core.services.ai_gateway import get_ai_gateway_resolver

    application = create_app()
    application.dependency_overrides[get_query_gateway] = lambda: gateway
    application.dependency_overrides[get_redis_client] = lambda: None
    application.dependency_overrides[get_ai_gateway_resolver] = lambda: resolver
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
