"""
In-memory store gateway implementation for testing.

This module provides a simple in-memory store backend for:
- Unit tests
- Integration tests
- Local development without an ArangoDB instance

Invariants:
    - All data is lost on process exit
    - Provides the same idempotency and race semantics as ArangoStore
    - Understands exactly the AQL statements in graph.queries

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with the StoreGateway protocol
    - A new statement in graph.queries needs an evaluator here
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..graph import queries
from .base import (
    CollectionExistsError,
    CollectionKind,
    CollectionNotFoundError,
    Cursor,
    Document,
    DocumentMeta,
    DocumentNotFoundError,
    StoreConnectionError,
    StoreError,
    split_meta,
)

logger = logging.getLogger(__name__)


@dataclass
class InMemoryCollection:
    """In-memory collection storage."""
    name: str
    kind: CollectionKind
    documents: Dict[str, Document] = field(default_factory=dict)
    indexes: List[Tuple[str, ...]] = field(default_factory=list)


@dataclass
class InMemoryGraph:
    """Named graph: edge collection -> (from collections, to collections)."""
    name: str
    edge_definitions: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = field(
        default_factory=dict
    )
    orphans: List[str] = field(default_factory=list)


def _normalize(text: str) -> str:
    return " ".join(text.split())


class InMemoryStore:
    """In-memory implementation of StoreGateway for testing.

    Thread safety:
        Uses an asyncio lock around mutations. Existence checks run
        outside the lock so concurrent first writers genuinely race, and
        the loser observes CollectionExistsError exactly like ArangoStore.

    Example:
        >>> store = InMemoryStore()
        >>> await store.connect()
        >>> doc, meta = await store.create_document("events", {"happenedAt": 1})
        >>> meta["_id"]
        'events/1'
    """

    def __init__(self, database: str = "geovision") -> None:
        """Initialize in-memory store.

        Args:
            database: Name reported for the simulated database
        """
        self.database = database
        self._collections: Dict[str, InMemoryCollection] = {}
        self._graphs: Dict[str, InMemoryGraph] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self._keys = itertools.count(1)
        self._pending_failure: Optional[Exception] = None
        self.create_collection_calls = 0
        self._evaluators: Dict[str, Callable[[Dict[str, Any]], List[Any]]] = {
            _normalize(queries.UPDATE_RELATION): self._eval_update_relation,
            _normalize(queries.DELETE_RELATION): self._eval_delete_relation,
            _normalize(queries.EVENTS_IN_WINDOW): self._eval_events_in_window,
            _normalize(queries.RELATED_ENTITIES): self._eval_related_entities,
            _normalize(queries.RELATED_EVENTS): self._eval_related_events,
        }

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._collections.clear()
        self._graphs.clear()
        logger.debug("InMemoryStore closed")

    def _check(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")
        if self._pending_failure is not None:
            exc, self._pending_failure = self._pending_failure, None
            raise exc

    def _collection(self, name: str) -> InMemoryCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise CollectionNotFoundError(f"collection or view not found: {name}")

    # Collections, indexes, graphs

    async def collection_exists(self, name: str) -> bool:
        self._check()
        return name in self._collections

    async def _create_collection(self, name: str, kind: CollectionKind) -> None:
        async with self._lock:
            self.create_collection_calls += 1
            if name in self._collections:
                raise CollectionExistsError(f"duplicate name: {name}")
            self._collections[name] = InMemoryCollection(name=name, kind=kind)

    async def get_or_create_collection(self, name: str, kind: CollectionKind) -> str:
        if await self.collection_exists(name):
            return name

        # Yield between check and create so concurrent callers interleave.
        await asyncio.sleep(0)
        try:
            await self._create_collection(name, kind)
            logger.info("Created collection", extra={"collection": name, "kind": kind.value})
        except CollectionExistsError:
            logger.debug("Collection created concurrently", extra={"collection": name})
        return self._collection(name).name

    async def ensure_persistent_index(
        self,
        collection: str,
        fields: Sequence[str],
        in_background: bool = True,
    ) -> None:
        self._check()
        coll = self._collection(collection)
        index = tuple(fields)
        if index not in coll.indexes:
            coll.indexes.append(index)

    async def ensure_graph(self, name: str, orphans: Sequence[str] = ()) -> None:
        self._check()
        async with self._lock:
            if name not in self._graphs:
                self._graphs[name] = InMemoryGraph(name=name, orphans=list(orphans))

    async def ensure_edge_definition(
        self,
        graph: str,
        edge_collection: str,
        from_collections: Sequence[str],
        to_collections: Sequence[str],
    ) -> None:
        self._check()
        async with self._lock:
            definitions = self._graph(graph).edge_definitions
            if edge_collection not in definitions:
                definitions[edge_collection] = (tuple(from_collections), tuple(to_collections))

    def _graph(self, name: str) -> InMemoryGraph:
        try:
            return self._graphs[name]
        except KeyError:
            raise StoreError(f"graph '{name}' not found")

    # Documents

    def _stamp(self, collection: str, doc: Document, key: Optional[str] = None) -> Document:
        key = key or str(next(self._keys))
        doc["_key"] = key
        doc["_id"] = f"{collection}/{key}"
        doc["_rev"] = uuid.uuid4().hex[:12]
        return doc

    async def read_document(self, collection: str, key: str) -> Tuple[Document, DocumentMeta]:
        self._check()
        doc = self._collection(collection).documents.get(key)
        if doc is None:
            raise DocumentNotFoundError(f"document not found: {collection}/{key}")
        return split_meta(copy.deepcopy(doc))

    async def create_document(
        self, collection: str, payload: Document
    ) -> Tuple[Document, DocumentMeta]:
        self._check()
        coll = self._collection(collection)
        doc = {k: v for k, v in copy.deepcopy(payload).items() if k not in ("_id", "_rev")}
        if coll.kind == CollectionKind.EDGE and not (doc.get("_from") and doc.get("_to")):
            raise StoreError("edge attribute missing or invalid")
        async with self._lock:
            key = doc.pop("_key", None)
            if key is not None and key in coll.documents:
                raise StoreError(f"unique constraint violated: {collection}/{key}")
            coll.documents[self._stamp(collection, doc, key)["_key"]] = doc
        return split_meta(copy.deepcopy(doc))

    async def update_document(
        self, collection: str, key: str, patch: Document
    ) -> Tuple[Document, DocumentMeta]:
        self._check()
        coll = self._collection(collection)
        async with self._lock:
            doc = coll.documents.get(key)
            if doc is None:
                raise DocumentNotFoundError(f"document not found: {collection}/{key}")
            self._apply_patch(collection, doc, patch)
        return split_meta(copy.deepcopy(doc))

    async def remove_document(self, collection: str, key: str) -> None:
        self._check()
        coll = self._collection(collection)
        async with self._lock:
            if coll.documents.pop(key, None) is None:
                raise DocumentNotFoundError(f"document not found: {collection}/{key}")

    def _apply_patch(self, collection: str, doc: Document, patch: Document) -> None:
        for name, value in patch.items():
            if name in ("_id", "_key", "_rev"):
                continue
            doc[name] = copy.deepcopy(value)
        self._stamp(collection, doc, doc["_key"])

    # Queries

    async def query(self, text: str, bind_vars: Optional[Dict[str, Any]] = None) -> Cursor:
        self._check()
        evaluator = self._evaluators.get(_normalize(text))
        if evaluator is None:
            raise StoreError("unsupported query for in-memory store")
        async with self._lock:
            rows = evaluator(dict(bind_vars or {}))
        return Cursor(iter(copy.deepcopy(rows)))

    def _outbound(self, graph: str, start_id: str) -> List[Tuple[Document, Document]]:
        """One-hop outbound (vertex, edge) pairs from start_id."""
        pairs = []
        for edge_collection in self._graph(graph).edge_definitions:
            coll = self._collections.get(edge_collection)
            if coll is None:
                continue
            for edge in coll.documents.values():
                if edge["_from"] != start_id:
                    continue
                to_collection, _, to_key = edge["_to"].partition("/")
                vertex = self._collections.get(to_collection)
                target = vertex.documents.get(to_key) if vertex else None
                if target is not None:
                    pairs.append((target, edge))
        return pairs

    def _eval_update_relation(self, bind_vars: Dict[str, Any]) -> List[Any]:
        collection = bind_vars["@collection"]
        coll = self._collection(collection)
        doc = coll.documents.get(bind_vars["key"])
        if doc is None:
            return []
        patch = {
            k: v for k, v in bind_vars["patch"].items()
            if k not in ("_id", "_key", "_rev", "_from", "_to")
        }
        self._apply_patch(collection, doc, patch)
        return [doc]

    def _eval_delete_relation(self, bind_vars: Dict[str, Any]) -> List[Any]:
        coll = self._collection(bind_vars["@collection"])
        doc = coll.documents.pop(bind_vars["key"], None)
        return [] if doc is None else [doc]

    def _eval_events_in_window(self, bind_vars: Dict[str, Any]) -> List[Any]:
        events = self._collection(bind_vars["@events"])
        start, end = bind_vars["startTime"], bind_vars["endTime"]
        docs = sorted(
            (
                doc for doc in events.documents.values()
                if isinstance(doc.get("happenedAt"), (int, float))
                and start <= doc["happenedAt"] <= end
            ),
            key=lambda doc: doc["happenedAt"],
        )
        members = {doc["_id"] for doc in docs}
        relations = [
            edge
            for doc in docs
            for vertex, edge in self._outbound(bind_vars["graph"], doc["_id"])
            if vertex["_id"] in members
        ]
        return [{"events": docs, "relations": relations}]

    def _eval_related_entities(self, bind_vars: Dict[str, Any]) -> List[Any]:
        rows: List[Any] = []
        for vertex, edge in self._outbound(bind_vars["graph"], bind_vars["start"]):
            type_ = vertex["_id"].partition("/")[0]
            if type_ == bind_vars["eventCollection"]:
                continue
            row = {"type": type_, "entity": vertex, "edge": edge}
            if row not in rows:
                rows.append(row)
        return rows

    def _eval_related_events(self, bind_vars: Dict[str, Any]) -> List[Any]:
        return [
            {"event": vertex, "edge": edge}
            for vertex, edge in self._outbound(bind_vars["graph"], bind_vars["start"])
            if vertex["_id"].partition("/")[0] == bind_vars["eventCollection"]
        ]

    async def health(self) -> bool:
        return self._connected

    # Testing helpers

    def inject_failure(self, exception: Exception) -> None:
        """Make the next store operation raise ``exception``."""
        self._pending_failure = exception

    def collection_names(self, kind: Optional[CollectionKind] = None) -> List[str]:
        return sorted(
            name for name, coll in self._collections.items()
            if kind is None or coll.kind == kind
        )

    def edge_definitions(self, graph: str) -> Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]]:
        return dict(self._graph(graph).edge_definitions)

    def indexes(self, collection: str) -> List[Tuple[str, ...]]:
        return list(self._collection(collection).indexes)

    def put_raw(self, collection: str, doc: Document) -> Document:
        """Insert a document verbatim, bypassing validation (testing helper)."""
        coll = self._collection(collection)
        stored = self._stamp(collection, copy.deepcopy(doc), doc.get("_key"))
        coll.documents[stored["_key"]] = stored
        return copy.deepcopy(stored)
