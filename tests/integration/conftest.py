"""
Shared fixtures for integration tests.

Every fixture runs against a fresh, bootstrapped InMemoryStore.
"""

import pytest

from osint.geovision_server.api import GeovisionServicer
from osint.geovision_server.graph import (
    EntityRepository,
    EventNeighborhoodEngine,
    GraphBootstrap,
    RelationshipRouter,
)
from osint.geovision_server.models import Event, Organization
from osint.geovision_server.store import InMemoryStore

GRAPH = "osint_graph"


@pytest.fixture
async def store():
    """Connected store with the vertex collections, index and graph in place."""
    store = InMemoryStore()
    await store.connect()
    await GraphBootstrap(store, GRAPH).run()
    yield store
    await store.close()


@pytest.fixture
def events(store):
    return EntityRepository(store, Event)


@pytest.fixture
def organizations(store):
    return EntityRepository(store, Organization)


@pytest.fixture
def router(store):
    return RelationshipRouter(store, GRAPH)


@pytest.fixture
def engine(store):
    return EventNeighborhoodEngine(store, GRAPH)


@pytest.fixture
def servicer(store):
    return GeovisionServicer.from_store(store, GRAPH)
