# tests/core/test_query_gateway.py
import json

import httpx
import pytest

from eve_core.core.gateway import DatabaseError, QueryGateway, contains_text, ilike, in_, is_null
from eve_core.modules.office.repository import CompanyRepository

BASE_URL = "http://supabase.test"


def make_gateway(handler, access_token=None) -> QueryGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return QueryGateway(client, BASE_URL, "anon-key", access_token)


def test_build_params_renders_postgrest_filters():
    params = QueryGateway.build_params(
        {"company_id": "c1", "deleted_at": None, "status": in_(["pending", "active"]), "enabled": True},
        columns="id,name",
        order=[("created_at", "desc"), ("name", "asc")],
        limit=5,
        or_filters=[("name", ilike("*a,b*")), ("email", ilike("*x*"))],
    )

    assert params == [
        ("select", "id,name"),
        ("company_id", "eq.c1"),
        ("deleted_at", "is.null"),
        ("status", "in.(pending,active)"),
        ("enabled", "eq.true"),
        ("or", '(name.ilike."*a,b*",email.ilike.*x*)'),
        ("order", "created_at.desc,name.asc"),
        ("limit", "5"),
    ]


def test_contains_text_strips_wildcards():
    assert contains_text(" 50% *off ") == "*50   off*"
    assert is_null().render() == "is.null"


@pytest.mark.asyncio
async def test_select_sends_headers_and_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["headers"] = request.headers
        return httpx.Response(200, json=[{"id": "e1", "name": "Ava"}])

    gateway = make_gateway(handler, access_token="user-jwt")
    rows = await gateway.select("eves", {"company_id": "c1"}, order=[("created_at", "desc")])

    assert rows == [{"id": "e1", "name": "Ava"}]
    assert seen["url"].path == "/rest/v1/eves"
    assert seen["url"].params["company_id"] == "eq.c1"
    assert seen["url"].params["order"] == "created_at.desc"
    assert seen["headers"]["apikey"] == "anon-key"
    assert seen["headers"]["authorization"] == "Bearer user-jwt"


@pytest.mark.asyncio
async def test_insert_asks_for_representation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        body = json.loads(request.content)
        return httpx.Response(201, json=[{**body[0], "id": "new-id"}])

    rows = await make_gateway(handler).insert("tasks", {"description": "x"})

    assert rows == [{"description": "x", "id": "new-id"}]


@pytest.mark.asyncio
async def test_count_reads_content_range():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        assert request.headers["prefer"] == "count=exact"
        return httpx.Response(200, headers={"Content-Range": "0-9/27"})

    assert await make_gateway(handler).count("memories", {"eve_id": "e1"}) == 27


@pytest.mark.asyncio
async def test_error_body_becomes_database_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "column does not exist", "code": "42703"})

    with pytest.raises(DatabaseError) as exc_info:
        await make_gateway(handler).select("eves")

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "42703"
    assert exc_info.value.message == "column does not exist"


@pytest.mark.asyncio
async def test_unfiltered_delete_is_refused():
    gateway = make_gateway(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(ValueError):
        await gateway.delete("eves", {})


@pytest.mark.asyncio
async def test_repository_maps_conflict_to_value_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "duplicate key value", "code": "23505"})

    repo = CompanyRepository(make_gateway(handler))

    with pytest.raises(ValueError, match="Duplicate key error"):
        await repo.create({"id": "ignored", "name": "Acme"})


@pytest.mark.asyncio
async def test_ping_treats_server_errors_as_failure():
    gateway = make_gateway(lambda request: httpx.Response(503))

    with pytest.raises(DatabaseError):
        await gateway.ping()
