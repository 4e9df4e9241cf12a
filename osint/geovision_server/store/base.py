"""
Base protocol and types for the store gateway.

This module defines the StoreGateway protocol that all backends must
implement, along with the cursor type returned by queries and the
error hierarchy backends translate driver failures into.

Invariants:
    - get_or_create_collection converges under concurrent callers
    - ensure_* operations are idempotent and tolerate "already exists"
    - Document reads and writes return the stored form plus metadata
    - A Cursor is consumed at most once; exhaustion is StopAsyncIteration

How to change safely:
    - Protocol changes require updating all implementations
    - Keep error translation inside the backends, never in callers
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import AsyncIterator, Callable, Iterator
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)
import asyncio
import logging

if TYPE_CHECKING:
    from ..config import ServerConfig

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
DocumentMeta = Dict[str, str]


class StoreError(Exception):
    """Base exception for store operations."""
    pass


class StoreConnectionError(StoreError):
    """Connection to the store failed."""
    pass


class DocumentNotFoundError(StoreError):
    """Target document does not exist."""
    pass


class CollectionNotFoundError(StoreError):
    """Target collection does not exist."""
    pass


class CollectionExistsError(StoreError):
    """A collection with that name already exists."""
    pass


class CollectionKind(Enum):
    """Collection types supported by the store."""

    VERTEX = "vertex"
    EDGE = "edge"


def split_meta(doc: Document) -> Tuple[Document, DocumentMeta]:
    """Split a stored document into its payload and identity metadata."""
    meta = {name: doc[name] for name in ("_id", "_key", "_rev") if name in doc}
    return dict(doc), meta


class Cursor:
    """Lazy result sequence of a query.

    Wraps a synchronous row source and hands rows out asynchronously,
    pulling each one through ``fetch``. Iteration ends with
    StopAsyncIteration; iterating again after exhaustion yields nothing.

    Example:
        >>> cursor = await store.query(text, bind_vars)
        >>> async for row in cursor:
        ...     handle(row)
    """

    def __init__(
        self,
        rows: Iterator[Any],
        fetch: Optional[Callable[[Callable[[], Any]], Any]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> None:
        self._rows = rows
        self._fetch = fetch
        self._on_close = on_close
        self._done = False

    def __aiter__(self) -> AsyncIterator[Any]:
        return self

    async def __anext__(self) -> Any:
        if self._done:
            raise StopAsyncIteration

        sentinel = object()
        if self._fetch is None:
            row = next(self._rows, sentinel)
        else:
            row = await self._fetch(lambda: next(self._rows, sentinel))

        if row is sentinel:
            self.close()
            raise StopAsyncIteration
        return row

    async def to_list(self) -> List[Any]:
        return [row async for row in self]

    def close(self) -> None:
        if self._done:
            return
        self._done = True
        if self._on_close is not None:
            self._on_close()

    @property
    def exhausted(self) -> bool:
        return self._done


@runtime_checkable
class StoreGateway(Protocol):
    """Protocol for multi-model document/graph store backends.

    Concurrency contract:
        - Safe to call from many coroutines at once
        - get_or_create_collection, ensure_graph and ensure_edge_definition
          treat "already exists" from the store as success

    Example:
        >>> store = ArangoStore(config.arango)
        >>> await store.connect()
        >>> coll = await store.get_or_create_collection("events_cites_events", CollectionKind.EDGE)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the store and open (creating if absent) the database.

        Raises:
            StoreConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connection resources."""
        ...

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        ...

    @abstractmethod
    async def get_or_create_collection(self, name: str, kind: CollectionKind) -> str:
        """Return the named collection, creating it if absent.

        A losing racer observes "already exists" and re-fetches.

        Returns:
            The collection name
        """
        ...

    @abstractmethod
    async def ensure_persistent_index(
        self,
        collection: str,
        fields: Sequence[str],
        in_background: bool = True,
    ) -> None:
        ...

    @abstractmethod
    async def ensure_graph(self, name: str, orphans: Sequence[str] = ()) -> None:
        """Create the named graph if absent."""
        ...

    @abstractmethod
    async def ensure_edge_definition(
        self,
        graph: str,
        edge_collection: str,
        from_collections: Sequence[str],
        to_collections: Sequence[str],
    ) -> None:
        """Bind an edge collection into the named graph if not yet bound."""
        ...

    @abstractmethod
    async def read_document(self, collection: str, key: str) -> Tuple[Document, DocumentMeta]:
        """Raises DocumentNotFoundError when absent."""
        ...

    @abstractmethod
    async def create_document(
        self, collection: str, payload: Document
    ) -> Tuple[Document, DocumentMeta]:
        """Insert a document and return its stored form ("return new")."""
        ...

    @abstractmethod
    async def update_document(
        self, collection: str, key: str, patch: Document
    ) -> Tuple[Document, DocumentMeta]:
        """Partially update a document and return its stored form.

        Raises:
            DocumentNotFoundError: If the key is absent
        """
        ...

    @abstractmethod
    async def remove_document(self, collection: str, key: str) -> None:
        """Raises DocumentNotFoundError when absent."""
        ...

    @abstractmethod
    async def query(self, text: str, bind_vars: Optional[Dict[str, Any]] = None) -> Cursor:
        """Execute a named-parameter query.

        Raises:
            CollectionNotFoundError: If a bound collection does not exist
            StoreError: For other query failures
        """
        ...

    @abstractmethod
    async def health(self) -> bool:
        """Whether the store is reachable."""
        ...


def run_blocking(func: Callable[[], Any]) -> "asyncio.Future[Any]":
    """Run a blocking driver call on the default executor."""
    return asyncio.get_running_loop().run_in_executor(None, func)


def create_store(config: "ServerConfig") -> StoreGateway:
    """Factory function to create the store gateway from configuration.

    Args:
        config: Server configuration

    Returns:
        ArangoStore bound to the configured database
    """
    from .arango import ArangoStore

    return ArangoStore(config.arango)
