"""
Relationship router: typed edge collections and edge CRUD.

Each relation lives in an edge collection named after its endpoint types
and its normalized name, ``{fromCollection}_{normName}_{toCollection}``.
The same logical name between different endpoint-type pairs therefore
lands in different physical collections. Collections are provisioned on
the first create of a novel triple and bound into the named graph so
traversals pick them up without naming them.

Invariants:
    - A relation's collection name is derived from its endpoints and name
      at creation time and never changes
    - Concurrent first creates of one triple yield exactly one collection
    - Every edge collection in use is bound into the named graph
    - A provisioned collection is kept even if the following insert fails
    - Both endpoints name existing collections before anything is provisioned

How to change safely:
    - Changing normalize_relation_name re-homes future edges only; existing
      collections keep their names
"""

from __future__ import annotations

import re
from typing import Any, Dict

from ..errors import BadRequestError, InternalError, NotFoundError
from ..ids import parse_id
from ..logctx import get_logger
from ..models import Relation
from ..store.base import CollectionKind, CollectionNotFoundError, StoreError, StoreGateway
from . import queries

logger = get_logger(__name__)

# ArangoDB collection naming rules
COLLECTION_NAME_MAX_LENGTH = 256
_NAME_CHARS = re.compile(r"[A-Za-z0-9_-]+")


def normalize_relation_name(name: str | None) -> str:
    """Lowercase with spaces replaced by underscores."""
    return (name or "").replace(" ", "_").lower()


def edge_collection_name(from_collection: str, relation_name: str, to_collection: str) -> str:
    """Physical edge collection for a (fromType, name, toType) triple.

    Raises:
        BadRequestError: If the relation name normalizes to empty, contains
            characters a collection name cannot hold, or makes the name too long
    """
    norm = normalize_relation_name(relation_name)
    if not norm:
        raise BadRequestError("relationship name is required")
    if not _NAME_CHARS.fullmatch(norm):
        raise BadRequestError(
            f"invalid relationship name {relation_name!r}: only letters, digits, "
            "spaces, '_' and '-' are allowed"
        )
    collection = f"{from_collection}_{norm}_{to_collection}"
    if len(collection) > COLLECTION_NAME_MAX_LENGTH:
        raise BadRequestError(
            f"relationship name too long: edge collection names are limited to "
            f"{COLLECTION_NAME_MAX_LENGTH} characters"
        )
    return collection


class RelationshipRouter:
    """Edge CRUD over dynamically provisioned edge collections.

    Attributes:
        store: Shared store gateway
        graph: Name of the named graph every edge collection joins

    Example:
        >>> router = RelationshipRouter(store, "osint_graph")
        >>> rel = await router.create(Relation(**{"from": "events/1", "to": "events/2", "name": "related to"}))
        >>> rel.id.split("/")[0]
        'events_related_to_events'
    """

    def __init__(self, store: StoreGateway, graph: str) -> None:
        self.store = store
        self.graph = graph

    async def ensure_edge_collection(self, from_collection: str, name: str, to_collection: str) -> str:
        """Get-or-create the edge collection and bind it into the graph."""
        collection = edge_collection_name(from_collection, name, to_collection)
        await self.store.get_or_create_collection(collection, CollectionKind.EDGE)
        await self.store.ensure_edge_definition(
            self.graph, collection, [from_collection], [to_collection]
        )
        return collection

    async def create(self, relation: Relation | None) -> Relation:
        if relation is None:
            raise BadRequestError("relationship is required")

        source = parse_id(relation.from_)
        target = parse_id(relation.to)
        collection = edge_collection_name(source.collection, relation.name, target.collection)

        try:
            for endpoint in (source, target):
                if not await self.store.collection_exists(endpoint.collection):
                    raise BadRequestError(
                        f"invalid id {str(endpoint)!r}: unknown collection {endpoint.collection!r}"
                    )
            await self.ensure_edge_collection(source.collection, relation.name, target.collection)
        except StoreError as e:
            logger.error(
                "failed to provision edge collection",
                extra={"error": str(e), "collection": collection},
            )
            raise InternalError() from e

        payload = relation.model_copy(update={"id": "", "key": "", "rev": ""})
        try:
            doc, meta = await self.store.create_document(collection, payload.to_document())
        except StoreError as e:
            logger.error(
                "failed to create relationship document",
                extra={"error": str(e), "collection": collection},
            )
            raise InternalError() from e

        return self._decode(doc, meta)

    async def update(self, relation_id: str, patch: Relation | None) -> Relation:
        """Partially update the relation addressed by its qualified id.

        Identity and endpoint attributes in the patch are ignored.
        """
        qid = parse_id(relation_id)
        if patch is None:
            raise BadRequestError("relationship is required")

        bind_vars: Dict[str, Any] = {
            "@collection": qid.collection,
            "key": qid.key,
            "patch": patch.to_document(partial=True),
        }
        return await self._run_single(queries.UPDATE_RELATION, bind_vars, relation_id, "update")

    async def delete(self, relation_id: str) -> Relation:
        """Remove the relation and return its last stored form."""
        qid = parse_id(relation_id)
        bind_vars = {"@collection": qid.collection, "key": qid.key}
        return await self._run_single(queries.DELETE_RELATION, bind_vars, relation_id, "delete")

    async def _run_single(
        self,
        text: str,
        bind_vars: Dict[str, Any],
        relation_id: str,
        action: str,
    ) -> Relation:
        try:
            cursor = await self.store.query(text, bind_vars)
            rows = await cursor.to_list()
        except CollectionNotFoundError as e:
            logger.info(f"relationship collection not found for {action}", extra={"id": relation_id})
            raise NotFoundError("Relationship not found", "relationships", relation_id) from e
        except StoreError as e:
            logger.error(
                f"failed to {action} relationship",
                extra={"error": str(e), "id": relation_id},
            )
            raise InternalError() from e

        if not rows:
            logger.info(f"relationship not found for {action}", extra={"id": relation_id})
            raise NotFoundError("Relationship not found", "relationships", relation_id)
        return self._decode(rows[0], rows[0])

    def _decode(self, doc: Dict[str, Any], meta: Dict[str, Any]) -> Relation:
        try:
            return Relation.from_document(doc, meta)
        except ValueError as e:
            logger.error(
                "failed to decode relationship document",
                extra={"error": str(e), "id": meta.get("_id")},
            )
            raise InternalError() from e
