"""
school-bridge integration tests.

Two layers:
  - Router.dispatch driven directly with wire messages
  - a real SchoolBridgeServer on a local port with AsyncClient connected

No Postgres or MongoDB: the server is handed a DataLayer over SQLite and
the in-memory document store (see conftest.py).

Run with: pytest tests/test_integration.py -v
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from school_bridge.client.async_client import AsyncClient, ServerError
from school_bridge.server.app import SchoolBridgeServer
from school_bridge.server.protocol import (
    ErrorCode, Message, MsgType,
    entity_create, entity_delete, entity_join, entity_list, entity_update,
    health, ping, restore,
)
from school_bridge.server.router import Router

TEST_PORT = 19997


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture
def router(data):
    return Router(data)


@pytest_asyncio.fixture
async def server(data):
    """A live server on TEST_PORT sharing the test's stores."""
    srv = SchoolBridgeServer(host="127.0.0.1", port=TEST_PORT, data=data)
    await srv.start()
    yield srv
    await srv.stop()


@pytest.fixture
def server_url(server):
    return f"ws://127.0.0.1:{TEST_PORT}"


# ─────────────────────────────────────────────────────────────
# Router
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRouter:

    async def test_ping(self, router):
        reply = await router.dispatch(ping("p1"))
        assert reply.type == MsgType.PONG
        assert reply.msg_id == "p1"

    async def test_unknown_message_type(self, router):
        reply = await router.dispatch(Message({"type": "entity.explode", "id": "x"}))
        assert reply["code"] == ErrorCode.UNKNOWN_TYPE

    async def test_bye_has_no_reply(self, router):
        assert await router.dispatch(Message({"type": MsgType.BYE})) is None

    async def test_list(self, router):
        reply = await router.dispatch(entity_list("teachers", "combined"))
        assert reply.type == MsgType.OK
        assert len(reply["result"]) == 10

    async def test_join(self, router):
        reply = await router.dispatch(entity_join("students"))
        assert len(reply["result"]) == 10

    async def test_unknown_entity_type(self, router):
        reply = await router.dispatch(entity_list("janitors"))
        assert reply.type == MsgType.ERROR
        assert reply["code"] == ErrorCode.UNKNOWN_ENTITY_TYPE

    async def test_invalid_view(self, router):
        reply = await router.dispatch(entity_list("teachers", "sideways"))
        assert reply["code"] == ErrorCode.INVALID

    async def test_missing_entity_type(self, router):
        reply = await router.dispatch(Message({"type": MsgType.ENTITY_LIST, "id": "x"}))
        assert reply["code"] == ErrorCode.INVALID

    async def test_create_routes_by_document_field(self, router):
        reply = await router.dispatch(entity_create(
            "teacher", {"first_name": "Ada", "last_name": "Lovelace", "department": "Math"},
        ))
        assert reply["result"]["teacher_id"] == 6
        assert "_id" in reply["result"]

    async def test_create_with_store_override(self, router):
        reply = await router.dispatch(entity_create(
            "subject", {"subject_name": "Botany"}, store="document",
        ))
        assert reply["code"] == ErrorCode.STORE_NOT_SUPPORTED

    async def test_create_foreign_key_violation(self, router):
        reply = await router.dispatch(entity_create(
            "subject", {"subject_name": "Botany", "teacher_id": 999},
        ))
        assert reply["code"] == ErrorCode.CONSTRAINT

    async def test_update_not_found(self, router):
        reply = await router.dispatch(entity_update("subject", 999, {"credits": 1}))
        assert reply["code"] == ErrorCode.NOT_FOUND

    async def test_update_no_updatable_fields(self, router):
        reply = await router.dispatch(entity_update("teacher", 1, {}))
        assert reply["code"] == ErrorCode.NO_UPDATABLE_FIELDS

    async def test_delete_blocked(self, router):
        reply = await router.dispatch(entity_delete("teacher", 1))
        assert reply["code"] == ErrorCode.HAS_DEPENDENTS
        assert reply["details"]["dependents"] == {"classes": 1, "subjects": 1}

    async def test_delete_explicit_null_reassign(self, router):
        reply = await router.dispatch(entity_delete("teacher", 1, reassign_to=None))
        assert reply.type == MsgType.OK
        assert reply["result"]["mode"] == "nullify"

    async def test_delete_cascade(self, router):
        reply = await router.dispatch(entity_delete("teacher", 1, cascade=True))
        assert reply["result"]["affected"]["enrollments"] == 3

    async def test_delete_cascade_string_false_blocks(self, router):
        msg = entity_delete("teacher", 1)
        msg["cascade"] = "false"
        reply = await router.dispatch(msg)
        assert reply["code"] == ErrorCode.HAS_DEPENDENTS

    async def test_delete_cascade_string_true(self, router):
        msg = entity_delete("teacher", 1)
        msg["cascade"] = "true"
        reply = await router.dispatch(msg)
        assert reply["result"]["mode"] == "cascade"

    async def test_delete_not_found(self, router):
        reply = await router.dispatch(entity_delete("event", 999))
        assert reply["code"] == ErrorCode.NOT_FOUND

    async def test_restore(self, router):
        reply = await router.dispatch(restore("mongodb"))
        assert reply["result"]["report"]["target"] == "document"

    async def test_restore_bad_target(self, router):
        reply = await router.dispatch(restore("everything"))
        assert reply["code"] == ErrorCode.INVALID

    async def test_health(self, router):
        reply = await router.dispatch(health())
        assert reply["result"]["status"] == "OK"

    async def test_store_unavailable(self, router, documents):
        await documents.close()
        reply = await router.dispatch(entity_update("teacher", 1, {"department": "Art"}))
        assert reply["code"] == ErrorCode.STORE_UNAVAILABLE

    async def test_reply_serializes(self, router):
        reply = await router.dispatch(entity_list("teachers"))
        parsed = Message.parse(reply.serialize())
        assert parsed["result"]["tabular"][0]["hire_date"] == "2020-01-15"


# ─────────────────────────────────────────────────────────────
# Live server + async client
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestAsyncClient:

    async def test_connect_and_welcome(self, server_url):
        async with AsyncClient.connect("test_async", server_url) as client:
            assert client.is_connected
            assert client.session_id is not None
            assert "party-teacher" in client.registry_summary["entity_types"]

    async def test_ping(self, server_url):
        async with AsyncClient.connect("test_ping", server_url) as client:
            await client.ping()

    async def test_list_entities(self, server_url):
        async with AsyncClient.connect("test_list", server_url) as client:
            result = await client.list_entities("teachers")
            assert len(result["tabular"]) == 5
            assert len(result["combined"]) == 10

    async def test_create_and_update(self, server_url):
        async with AsyncClient.connect("test_write", server_url) as client:
            created = await client.create_entity(
                "library-book", {"title": "Dune", "author": "Frank Herbert"},
            )
            assert created["book_id"] == 6
            updated = await client.update_entity("library-book", "6", {"available": False})
            assert updated["available"] is False

    async def test_delete_blocked_raises(self, server_url):
        async with AsyncClient.connect("test_delete", server_url) as client:
            with pytest.raises(ServerError) as exc:
                await client.delete_entity("teacher", 1)
            assert exc.value.code == "HAS_DEPENDENTS"
            assert exc.value.details["dependents"]["classes"] == 1

    async def test_delete_with_reassign(self, server_url):
        async with AsyncClient.connect("test_reassign", server_url) as client:
            result = await client.delete_entity("teacher", 1, reassign_to=2)
            assert result["mode"] == "reassign"
            classes = await client.list_entities("classes", "tabular")
            assert classes[0]["teacher_id"] == 2

    async def test_restore_and_health(self, server_url):
        async with AsyncClient.connect("test_admin", server_url) as client:
            await client.delete_entity("teacher", 1, cascade=True)
            result = await client.restore("all")
            assert "completed" in result["message"]
            assert (await client.health())["status"] == "OK"
