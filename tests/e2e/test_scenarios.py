"""
End-to-end scenarios against a real ArangoDB.

Tests cover:
- Time-windowed event fetch with internal edges
- One-hop related entities
- Request validation
- Source CRUD
- Edge collections joining the named graph
"""

import asyncio
import os

import pytest

from osint.geovision_server.errors import BadRequestError, NotFoundError

E2E_ENABLED = os.environ.get("GEOVISION_E2E_TESTS", "0") == "1"
pytestmark = pytest.mark.skipif(
    not E2E_ENABLED, reason="E2E tests disabled. Set GEOVISION_E2E_TESTS=1 to enable."
)


class TestEventScenarios:
    """Event window and neighborhood queries through gRPC."""

    @pytest.mark.asyncio
    async def test_empty_window(self, client):
        """An event outside the window is not returned."""
        await client.create_event({"happenedAt": 100})

        assert await client.get_events(200, 300) == {"events": [], "relations": []}

    @pytest.mark.asyncio
    async def test_window_with_internal_edge(self, client):
        """Both events come back with the edge between them."""
        e1 = await client.create_event({"happenedAt": 1000})
        e2 = await client.create_event({"happenedAt": 2000})
        edge = await client.create_relationship(
            {"from": e1["id"], "to": e2["id"], "name": "related to"}
        )

        window = await client.get_events(1, 9999999999)

        assert {e["id"] for e in window["events"]} == {e1["id"], e2["id"]}
        assert len(window["relations"]) == 1
        relation = window["relations"][0]
        assert relation["from"] == e1["id"]
        assert relation["to"] == e2["id"]
        assert edge["id"].startswith("events_related_to_events/")

    @pytest.mark.asyncio
    async def test_related_entities_by_type(self, client):
        """Both events see the organization they were hosted by."""
        e1 = await client.create_event({"happenedAt": 1000})
        e2 = await client.create_event({"happenedAt": 2000})
        org = await client.create_entity("organization", {"name": "Org1"})
        for event in (e1, e2):
            await client.create_relationship(
                {"from": event["id"], "to": org["id"], "name": "hosted by"}
            )

        entities = await client.get_event_related_entities(e1["key"])

        matches = [
            e for e in entities
            if e["type"] == "organizations" and e["entity"]["key"] == org["key"]
        ]
        assert matches
        assert matches[0]["edge"]["from"] == e1["id"]
        assert matches[0]["edge"]["to"] == org["id"]
        assert all(e["type"] != "events" for e in entities)

    @pytest.mark.asyncio
    async def test_window_validation(self, client):
        with pytest.raises(BadRequestError):
            await client.get_events(0, 100)
        with pytest.raises(BadRequestError):
            await client.get_events(300, 200)


class TestRequestValidation:
    """Malformed identifiers are rejected before touching the store."""

    @pytest.mark.asyncio
    async def test_bad_qualified_id(self, client):
        with pytest.raises(BadRequestError):
            await client.update_relationship("not-a-qualified-id", {"name": "x"})

    @pytest.mark.asyncio
    async def test_missing_event_key(self, client):
        with pytest.raises(BadRequestError):
            await client.get_event_related_entities("")


class TestSourceCrud:
    """Full lifecycle of a source document."""

    @pytest.mark.asyncio
    async def test_crud(self, client):
        created = await client.create_source({"name": "Test Source"})
        assert created["id"] == f"sources/{created['key']}"
        assert created["rev"]

        assert (await client.get_source(created["key"]))["name"] == "Test Source"

        updated = await client.update_entity("source", created["key"], {"name": "Updated Test Source"})
        assert updated["rev"] != created["rev"]
        assert (await client.get_source(created["key"]))["name"] == "Updated Test Source"

        await client.delete_entity("source", created["key"])
        with pytest.raises(NotFoundError):
            await client.get_source(created["key"])


class TestGraphProvisioning:
    """Edge collections created on demand join the named graph."""

    @pytest.mark.asyncio
    async def test_concurrent_first_creations(self, server, client):
        e1 = await client.create_event({"happenedAt": 1})
        e2 = await client.create_event({"happenedAt": 2})

        await asyncio.gather(
            *(
                client.create_relationship({"from": e1["id"], "to": e2["id"], "name": "Cites"})
                for _ in range(8)
            )
        )

        db = server.store.db
        assert db.has_collection("events_cites_events")
        definitions = db.graph(server.config.arango.graph).edge_definitions()
        assert [d for d in definitions if d["edge_collection"] == "events_cites_events"]
