# tests/client/test_knowledge_stores.py
import pytest

pytestmark = pytest.mark.asyncio


@pytest.fixture
def eve(gateway, company):
    return gateway.seed("eves", name="Ava", company_id=company["id"], status="active")


async def test_memory_crud_refreshes_last_accessed(session, gateway, eve, company):
    memory = await session.memories.create_memory({"eve_id": eve["id"], "type": "fact", "key": "office_hours", "value": {"text": "9 to 5"}})

    assert session.memories.error is None
    assert memory.company_id == company["id"]
    assert memory.last_accessed is not None
    assert memory.importance == 1

    updated = await session.memories.update_memory(memory.id, {"importance": 4})
    assert updated.importance == 4
    assert updated.last_accessed >= memory.last_accessed

    assert (await session.memories.get_memory(memory.id)).id == memory.id
    assert await session.memories.fetch_memories(eve["id"]) == [updated]

    assert await session.memories.delete_memory(memory.id) is True
    assert session.memories.memories == []
    assert await session.memories.get_memory(memory.id) is None
    assert session.memories.error == "Memory not found"


async def test_duplicate_memory_key_is_reported(session, gateway, eve):
    data = {"eve_id": eve["id"], "type": "fact", "key": "office_hours", "value": "9 to 5"}
    await session.memories.create_memory(data)

    assert await session.memories.create_memory(data) is None
    assert session.memories.error.startswith("Duplicate key error")


async def test_memory_search_and_type_filter_stay_in_company(session, gateway, eve, company):
    gateway.seed("memories", eve_id=eve["id"], company_id=company["id"], type="preference", key="Favorite color", value="blue", importance=2)
    gateway.seed("memories", eve_id=eve["id"], company_id=company["id"], type="fact", key="favorite lunch spot", value="deli", importance=5)
    gateway.seed("memories", eve_id=eve["id"], company_id="globex", type="fact", key="favorite rival", value="x", importance=9)

    found = await session.memories.search_memories(eve["id"], "favorite")
    assert [m.key for m in found] == ["favorite lunch spot", "Favorite color"]

    preferences = await session.memories.get_memories_by_type(eve["id"], "preference")
    assert [m.key for m in preferences] == ["Favorite color"]


async def test_company_knowledge_crud_and_queries(session, gateway, company):
    store = session.company_knowledge
    policy = await store.add_knowledge("policies", "refunds", {"text": "Refunds within 30 days"}, importance=3)
    await store.add_knowledge("products", "pricing", {"text": "Starter plan is 49 per month"})
    gateway.seed("company_knowledge", company_id="globex", category="policies", key="refunds", value={"text": "none"})

    assert policy.company_id == company["id"]
    assert policy.metadata == {}
    assert len(await store.fetch_knowledge()) == 2

    assert [k.key for k in await store.search_knowledge("30 days")] == ["refunds"]
    assert [k.key for k in await store.get_knowledge_by_category("products")] == ["pricing"]

    updated = await store.update_knowledge(policy.id, {"is_private": True})
    assert updated.is_private is True

    assert await store.delete_knowledge(policy.id) is True
    assert [k.key for k in await store.fetch_knowledge()] == ["pricing"]


async def test_eve_knowledge_is_scoped_to_the_eve(session, gateway, eve, company):
    store = session.eve_knowledge
    entry = await store.add_knowledge(eve["id"], "clients", "Globex contact", {"text": "Hank Scorpio"}, importance=2, is_private=True)
    gateway.seed("eve_knowledge", eve_id="other-eve", company_id=company["id"], category="clients", key="Globex contact", value={"text": "x"})

    assert entry.eve_id == eve["id"]
    assert entry.is_private is True
    assert [k.id for k in await store.search_knowledge(eve["id"], "globex")] == [entry.id]
    assert [k.id for k in await store.get_knowledge_by_category(eve["id"], "clients")] == [entry.id]
    assert await store.get_knowledge_by_category(eve["id"], "vendors") == []


async def test_update_unknown_knowledge_entry(session):
    assert await session.company_knowledge.update_knowledge("missing", {"key": "x"}) is None
    assert session.company_knowledge.error == "Knowledge entry not found"
