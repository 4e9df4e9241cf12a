"""
Entity repository: per-kind CRUD on the vertex collections.

One EntityRepository instance serves one entity kind and its collection.
Store errors are translated into the canonical categories here; callers
above this layer re-raise them unchanged.

Invariants:
    - Every returned entity has id, key and rev copied from store metadata
    - id == "<collection>/<key>" for every returned entity
    - Caller-supplied identity fields are never written
"""

from __future__ import annotations

from typing import Any, Dict, Generic, Type, TypeVar

from ..errors import BadRequestError, InternalError, NotFoundError
from ..ids import require_key
from ..logctx import get_logger
from ..models import Entity
from ..store.base import DocumentNotFoundError, StoreError, StoreGateway

logger = get_logger(__name__)

E = TypeVar("E", bound=Entity)


class EntityRepository(Generic[E]):
    """CRUD for one entity kind.

    Attributes:
        store: Shared store gateway
        model: Entity model class; its ``kind`` names the collection

    Example:
        >>> sources = EntityRepository(store, Source)
        >>> created = await sources.create(Source(name="Reuters"))
        >>> (await sources.get(created.key)).name
        'Reuters'
    """

    def __init__(self, store: StoreGateway, model: Type[E]) -> None:
        self.store = store
        self.model = model
        self.collection = model.kind.value
        self.label = model.__name__

    def _require_key(self, key: str) -> None:
        require_key(key, self.label.lower())

    def _decode(self, doc: Dict[str, Any], meta: Dict[str, Any]) -> E:
        try:
            return self.model.from_document(doc, meta)
        except ValueError as e:
            logger.error(
                f"failed to decode {self.label.lower()} document",
                extra={"error": str(e), "key": meta.get("_key")},
            )
            raise InternalError() from e

    async def get(self, key: str) -> E:
        self._require_key(key)
        try:
            doc, meta = await self.store.read_document(self.collection, key)
        except DocumentNotFoundError as e:
            logger.info(f"{self.label.lower()} not found", extra={"key": key})
            raise NotFoundError(f"{self.label} not found", self.collection, key) from e
        except StoreError as e:
            logger.error(
                f"failed to read {self.label.lower()} document",
                extra={"error": str(e), "key": key},
            )
            raise InternalError() from e
        return self._decode(doc, meta)

    async def create(self, entity: E | None) -> E:
        if entity is None:
            raise BadRequestError(f"{self.label.lower()} is required")
        try:
            doc, meta = await self.store.create_document(self.collection, entity.to_document())
        except StoreError as e:
            logger.error(
                f"failed to create {self.label.lower()} document",
                extra={"error": str(e)},
            )
            raise InternalError() from e
        return self._decode(doc, meta)

    async def update(self, key: str, patch: E | None) -> E:
        self._require_key(key)
        if patch is None:
            raise BadRequestError(f"{self.label.lower()} is required")
        try:
            doc, meta = await self.store.update_document(
                self.collection, key, patch.to_document(partial=True)
            )
        except DocumentNotFoundError as e:
            logger.info(f"{self.label.lower()} not found for update", extra={"key": key})
            raise NotFoundError(f"{self.label} not found", self.collection, key) from e
        except StoreError as e:
            logger.error(
                f"failed to update {self.label.lower()} document",
                extra={"error": str(e), "key": key},
            )
            raise InternalError() from e
        return self._decode(doc, meta)

    async def delete(self, key: str) -> None:
        self._require_key(key)
        try:
            await self.store.remove_document(self.collection, key)
        except DocumentNotFoundError as e:
            logger.info(f"{self.label.lower()} not found for deletion", extra={"key": key})
            raise NotFoundError(f"{self.label} not found", self.collection, key) from e
        except StoreError as e:
            logger.error(
                f"failed to delete {self.label.lower()} document",
                extra={"error": str(e), "key": key},
            )
            raise InternalError() from e
