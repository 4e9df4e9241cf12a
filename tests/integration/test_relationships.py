"""
Integration tests for the relationship router.

Tests cover:
- Edge collection naming and graph registration
- Concurrent first creates of one triple
- Partial update and delete through query statements
- Error categories
"""

import asyncio

import pytest

from osint.geovision_server.errors import BadRequestError, InternalError, NotFoundError
from osint.geovision_server.ids import parse_id
from osint.geovision_server.models import Event, Organization, Relation
from osint.geovision_server.store import CollectionKind, StoreError

GRAPH = "osint_graph"


def relation(source, target, name):
    return Relation.model_validate({"from": source, "to": target, "name": name})


class TestRelationshipRouter:
    """Tests for RelationshipRouter."""

    @pytest.fixture
    async def pair(self, events):
        """Two events to connect."""
        e1 = await events.create(Event(happenedAt=1000))
        e2 = await events.create(Event(happenedAt=2000))
        return e1, e2

    @pytest.mark.asyncio
    async def test_create_provisions_typed_collection(self, store, router, pair):
        e1, e2 = pair

        created = await router.create(relation(e1.id, e2.id, "related to"))

        assert parse_id(created.id).collection == "events_related_to_events"
        assert created.key and created.rev
        assert created.from_ == e1.id
        assert created.to == e2.id
        assert created.name == "related to"
        assert store.collection_names(CollectionKind.EDGE) == ["events_related_to_events"]
        assert store.edge_definitions(GRAPH) == {
            "events_related_to_events": (("events",), ("events",)),
        }

    @pytest.mark.asyncio
    async def test_collection_named_from_endpoint_types(self, router, events, organizations):
        e1 = await events.create(Event(happenedAt=1))
        org = await organizations.create(Organization(name="ACME"))

        created = await router.create(relation(e1.id, org.id, "Hosted By"))

        assert parse_id(created.id).collection == "events_hosted_by_organizations"

    @pytest.mark.asyncio
    async def test_existing_collection_is_reused(self, store, router, pair):
        e1, e2 = pair

        first = await router.create(relation(e1.id, e2.id, "cites"))
        second = await router.create(relation(e2.id, e1.id, "Cites"))

        assert parse_id(first.id).collection == parse_id(second.id).collection
        assert store.collection_names(CollectionKind.EDGE) == ["events_cites_events"]

    @pytest.mark.asyncio
    async def test_concurrent_first_creates_share_one_collection(self, store, router, pair):
        e1, e2 = pair

        created = await asyncio.gather(
            *(router.create(relation(e1.id, e2.id, "mentions")) for _ in range(10))
        )

        assert store.collection_names(CollectionKind.EDGE) == ["events_mentions_events"]
        assert len({r.id for r in created}) == 10
        assert list(store.edge_definitions(GRAPH)) == ["events_mentions_events"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source, target, name",
        [
            ("not-a-qualified-id", "events/2", "x"),
            ("events/1", "", "x"),
            ("events/1", "events/2", ""),
            ("events/1", "events/2/3", "x"),
            ("events/1", "events/2", "a/b"),
            ("events/1", "events/2", "cited.by"),
            ("events/1", "events/2", "r\u00e9f\u00e9rence"),
            ("events/1", "events/2", "x" * 300),
        ],
    )
    async def test_invalid_relation_is_bad_request(self, store, router, source, target, name):
        with pytest.raises(BadRequestError):
            await router.create(relation(source, target, name))

        assert store.collection_names(CollectionKind.EDGE) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("side", ["from", "to"])
    async def test_unknown_endpoint_collection_is_bad_request(self, store, router, pair, side):
        """Nothing is provisioned for an endpoint outside the known collections."""
        e1, _ = pair
        endpoints = {"from": e1.id, "to": e1.id}
        endpoints[side] = "bogus/1"

        with pytest.raises(BadRequestError):
            await router.create(relation(endpoints["from"], endpoints["to"], "x"))

        assert store.collection_names(CollectionKind.EDGE) == []
        assert not await store.collection_exists("bogus_x_events")

    @pytest.mark.asyncio
    async def test_missing_relation_is_bad_request(self, router):
        with pytest.raises(BadRequestError):
            await router.create(None)

    @pytest.mark.asyncio
    async def test_provisioning_failure_is_internal(self, store, router):
        store.inject_failure(StoreError("timeout"))

        with pytest.raises(InternalError):
            await router.create(relation("events/1", "events/2", "x"))

    @pytest.mark.asyncio
    async def test_update_is_partial(self, router, pair):
        e1, e2 = pair
        created = await router.create(relation(e1.id, e2.id, "related to"))

        updated = await router.update(
            created.id, Relation.model_validate({"name": "related to", "confidence": 1})
        )

        assert updated.id == created.id
        assert updated.from_ == e1.id
        assert updated.to == e2.id
        assert updated.rev != created.rev

    @pytest.mark.asyncio
    async def test_update_cannot_move_endpoints(self, router, pair):
        e1, e2 = pair
        created = await router.create(relation(e1.id, e2.id, "related to"))

        updated = await router.update(
            created.id, relation("events/999", "events/998", "renamed")
        )

        assert updated.name == "renamed"
        assert updated.from_ == e1.id
        assert updated.to == e2.id

    @pytest.mark.asyncio
    async def test_update_bad_id_is_bad_request(self, router):
        with pytest.raises(BadRequestError):
            await router.update("not-a-qualified-id", Relation(name="x"))

    @pytest.mark.asyncio
    async def test_update_missing_payload_is_bad_request(self, router, pair):
        e1, e2 = pair
        created = await router.create(relation(e1.id, e2.id, "related to"))

        with pytest.raises(BadRequestError):
            await router.update(created.id, None)

    @pytest.mark.asyncio
    async def test_update_missing_edge_is_not_found(self, router, pair):
        e1, e2 = pair
        created = await router.create(relation(e1.id, e2.id, "related to"))
        collection = parse_id(created.id).collection

        with pytest.raises(NotFoundError):
            await router.update(f"{collection}/missing", Relation(name="x"))

    @pytest.mark.asyncio
    async def test_update_missing_collection_is_not_found(self, router):
        with pytest.raises(NotFoundError):
            await router.update("events_unknown_events/1", Relation(name="x"))

    @pytest.mark.asyncio
    async def test_delete_returns_old_and_removes(self, router, pair):
        e1, e2 = pair
        created = await router.create(relation(e1.id, e2.id, "related to"))

        deleted = await router.delete(created.id)

        assert deleted.id == created.id
        assert deleted.name == "related to"
        with pytest.raises(NotFoundError):
            await router.delete(created.id)

    @pytest.mark.asyncio
    async def test_delete_bad_id_is_bad_request(self, router):
        with pytest.raises(BadRequestError):
            await router.delete("")

    @pytest.mark.asyncio
    async def test_delete_missing_collection_is_not_found(self, router):
        with pytest.raises(NotFoundError):
            await router.delete("nowhere/1")
