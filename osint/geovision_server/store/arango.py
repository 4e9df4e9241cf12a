"""
ArangoDB implementation of the store gateway.

Uses python-arango. The driver is synchronous, so every call that talks
to the server runs on the default executor and never blocks the event
loop; cursor batches are fetched the same way while iterating.

Invariants:
    - "Already exists" from the server is success for every ensure_* and
      get_or_create_* operation
    - Driver exceptions never escape; they become StoreError subclasses
    - Credentials are never logged

How to change safely:
    - Map new server error numbers here, not in the repositories
    - Test races against a real server (tests/e2e)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from arango import ArangoClient
from arango.database import StandardDatabase
from arango.exceptions import (
    AQLQueryExecuteError,
    ArangoError,
    ArangoServerError,
    CollectionCreateError,
    DatabaseCreateError,
    DocumentDeleteError,
    DocumentGetError,
    DocumentInsertError,
    DocumentUpdateError,
    EdgeDefinitionCreateError,
    GraphCreateError,
    IndexCreateError,
)

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
    run_blocking,
    split_meta,
)

logger = logging.getLogger(__name__)

# ArangoDB server error numbers
ERROR_DOCUMENT_NOT_FOUND = 1202
ERROR_DATA_SOURCE_NOT_FOUND = 1203
ERROR_DUPLICATE_NAME = 1207
ERROR_GRAPH_COLLECTION_MULTI_USE = 1920
ERROR_GRAPH_DUPLICATE = 1925


def _error_code(exc: Exception) -> Optional[int]:
    return exc.error_code if isinstance(exc, ArangoServerError) else None


class ArangoStore:
    """StoreGateway backed by an ArangoDB database.

    Attributes:
        config: ArangoConfig with url, database and credentials

    Example:
        >>> store = ArangoStore(ArangoConfig(url="http://localhost:8529", ...))
        >>> await store.connect()
        >>> doc, meta = await store.create_document("events", {"happenedAt": 1000})
    """

    def __init__(self, config: Any) -> None:
        """Initialize the store.

        Args:
            config: ArangoConfig instance
        """
        self.config = config
        self._client: Optional[ArangoClient] = None
        self._db: Optional[StandardDatabase] = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> StandardDatabase:
        if self._db is None:
            raise StoreConnectionError("Not connected")
        return self._db

    async def _call(self, func: Callable[[], Any]) -> Any:
        try:
            return await run_blocking(func)
        except StoreError:
            raise
        except ArangoError as e:
            raise StoreError(str(e)) from e
        except OSError as e:
            raise StoreConnectionError(str(e)) from e

    async def connect(self) -> None:
        """Connect and open the database, creating it if absent."""
        if self._db is not None:
            return

        cfg = self.config
        client = ArangoClient(hosts=cfg.url, request_timeout=cfg.request_timeout)

        def open_database() -> StandardDatabase:
            sys_db = client.db("_system", username=cfg.username, password=cfg.password)
            if not sys_db.has_database(cfg.database):
                try:
                    sys_db.create_database(cfg.database)
                    logger.info("Created database", extra={"database": cfg.database})
                except DatabaseCreateError as e:
                    if e.error_code != ERROR_DUPLICATE_NAME:
                        raise
            return client.db(cfg.database, username=cfg.username, password=cfg.password)

        try:
            self._db = await self._call(open_database)
        except StoreError as e:
            client.close()
            raise StoreConnectionError(f"Failed to connect to ArangoDB: {e}") from e

        self._client = client
        logger.info(
            "Connected to ArangoDB",
            extra={"url": cfg.url, "database": cfg.database},
        )

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("Disconnected from ArangoDB")
        self._client = None
        self._db = None

    # Collections, indexes, graphs

    async def collection_exists(self, name: str) -> bool:
        db = self.db
        return await self._call(lambda: db.has_collection(name))

    async def get_or_create_collection(self, name: str, kind: CollectionKind) -> str:
        db = self.db

        def get_or_create() -> str:
            if db.has_collection(name):
                return name
            try:
                db.create_collection(name, edge=kind == CollectionKind.EDGE)
                logger.info("Created collection", extra={"collection": name, "kind": kind.value})
            except CollectionCreateError as e:
                if e.error_code != ERROR_DUPLICATE_NAME:
                    raise
                # Lost the race; the winner's collection is the one we want.
                logger.debug("Collection created concurrently", extra={"collection": name})
            return db.collection(name).name

        return await self._call(get_or_create)

    async def ensure_persistent_index(
        self,
        collection: str,
        fields: Sequence[str],
        in_background: bool = True,
    ) -> None:
        coll = self.db.collection(collection)

        def add_index() -> None:
            try:
                coll.add_index(
                    {"type": "persistent", "fields": list(fields), "inBackground": in_background}
                )
            except IndexCreateError as e:
                if e.error_code != ERROR_DUPLICATE_NAME:
                    raise

        await self._call(add_index)

    async def ensure_graph(self, name: str, orphans: Sequence[str] = ()) -> None:
        db = self.db

        def ensure() -> None:
            if db.has_graph(name):
                return
            try:
                db.create_graph(name, orphan_collections=list(orphans))
                logger.info("Created graph", extra={"graph": name})
            except GraphCreateError as e:
                if e.error_code not in (ERROR_GRAPH_DUPLICATE, ERROR_DUPLICATE_NAME):
                    raise

        await self._call(ensure)

    async def ensure_edge_definition(
        self,
        graph: str,
        edge_collection: str,
        from_collections: Sequence[str],
        to_collections: Sequence[str],
    ) -> None:
        graph_handle = self.db.graph(graph)

        def ensure() -> None:
            if graph_handle.has_edge_definition(edge_collection):
                return
            try:
                graph_handle.create_edge_definition(
                    edge_collection=edge_collection,
                    from_vertex_collections=list(from_collections),
                    to_vertex_collections=list(to_collections),
                )
                logger.info(
                    "Bound edge collection to graph",
                    extra={"graph": graph, "collection": edge_collection},
                )
            except EdgeDefinitionCreateError:
                if not graph_handle.has_edge_definition(edge_collection):
                    raise

        await self._call(ensure)

    # Documents

    async def read_document(self, collection: str, key: str) -> Tuple[Document, DocumentMeta]:
        coll = self.db.collection(collection)

        def read() -> Document:
            try:
                doc = coll.get(key)
            except DocumentGetError as e:
                if _error_code(e) == ERROR_DATA_SOURCE_NOT_FOUND:
                    raise CollectionNotFoundError(str(e)) from e
                raise
            if doc is None:
                raise DocumentNotFoundError(f"document not found: {collection}/{key}")
            return doc

        return split_meta(await self._call(read))

    async def create_document(
        self, collection: str, payload: Document
    ) -> Tuple[Document, DocumentMeta]:
        coll = self.db.collection(collection)

        def insert() -> Document:
            try:
                result = coll.insert(payload, return_new=True)
            except DocumentInsertError as e:
                if _error_code(e) == ERROR_DATA_SOURCE_NOT_FOUND:
                    raise CollectionNotFoundError(str(e)) from e
                raise
            new = dict(result.get("new") or payload)
            for name in ("_id", "_key", "_rev"):
                new[name] = result[name]
            return new

        return split_meta(await self._call(insert))

    async def update_document(
        self, collection: str, key: str, patch: Document
    ) -> Tuple[Document, DocumentMeta]:
        coll = self.db.collection(collection)
        body = {k: v for k, v in patch.items() if k not in ("_id", "_rev")}
        body["_key"] = key

        def update() -> Document:
            try:
                result = coll.update(body, check_rev=False, merge=True, return_new=True)
            except DocumentUpdateError as e:
                if _error_code(e) == ERROR_DOCUMENT_NOT_FOUND:
                    raise DocumentNotFoundError(f"document not found: {collection}/{key}") from e
                raise
            new = dict(result.get("new") or {})
            for name in ("_id", "_key", "_rev"):
                new[name] = result[name]
            return new

        return split_meta(await self._call(update))

    async def remove_document(self, collection: str, key: str) -> None:
        coll = self.db.collection(collection)

        def remove() -> None:
            try:
                coll.delete(key)
            except DocumentDeleteError as e:
                if _error_code(e) == ERROR_DOCUMENT_NOT_FOUND:
                    raise DocumentNotFoundError(f"document not found: {collection}/{key}") from e
                raise

        await self._call(remove)

    # Queries

    async def query(self, text: str, bind_vars: Optional[Dict[str, Any]] = None) -> Cursor:
        db = self.db

        def execute() -> Any:
            try:
                return db.aql.execute(text, bind_vars=bind_vars or {})
            except AQLQueryExecuteError as e:
                if e.error_code == ERROR_DATA_SOURCE_NOT_FOUND:
                    raise CollectionNotFoundError(str(e)) from e
                raise

        rows = iter(await self._call(execute))
        return Cursor(rows, fetch=self._call)

    async def health(self) -> bool:
        if self._db is None:
            return False
        db = self._db
        try:
            await run_blocking(db.version)
            return True
        except (ArangoError, OSError) as e:
            logger.warning("ArangoDB health check failed", extra={"error": str(e)})
            return False
