"""
Store gateway abstraction for the Geovision server.

This module provides a pluggable multi-model store interface supporting:
- ArangoDB (production)
- In-memory (for testing)

The gateway is the only component that talks to the store. Repositories,
the relationship router and the event engine depend on the StoreGateway
protocol, never on a driver.

Invariants:
    - Collection, index and graph provisioning is idempotent and race-safe
    - Driver errors are translated into StoreError subclasses here
    - Query results stream through a single-use Cursor

How to change safely:
    - New backends must implement the StoreGateway protocol
    - Verify race behaviour of get_or_create_collection against a real server
"""

from .base import (
    CollectionExistsError,
    CollectionKind,
    CollectionNotFoundError,
    Cursor,
    DocumentNotFoundError,
    StoreConnectionError,
    StoreError,
    StoreGateway,
    create_store,
)
from .arango import ArangoStore
from .memory import InMemoryStore

__all__ = [
    # Protocol and types
    "StoreGateway",
    "Cursor",
    "CollectionKind",
    "StoreError",
    "StoreConnectionError",
    "DocumentNotFoundError",
    "CollectionNotFoundError",
    "CollectionExistsError",
    # Factory
    "create_store",
    # Implementations
    "ArangoStore",
    "InMemoryStore",
]
