"""
Service façade shared by the gRPC and HTTP transports.

Each RPC takes a JSON-shaped request dict and returns a JSON-shaped
response dict. The façade validates arguments, makes exactly one call to
a repository, the relationship router or the event engine, and lets the
canonical errors from errors.py propagate. It performs no business logic
of its own.

Invariants:
    - Every failure leaves as a GeovisionError subclass
    - Malformed payloads (pydantic validation) are BadRequest
    - Transports bind the request context before calling in

How to change safely:
    - A new RPC needs an entry in methods() so both transports expose it
    - Keep request/response shapes identical across transports
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, Dict, Mapping, Optional, Type

from pydantic import ValidationError

from ..errors import BadRequestError, UnimplementedError
from ..graph import EntityRepository, EventNeighborhoodEngine, RelationshipRouter
from ..logctx import get_logger
from ..models import ENTITY_MODELS, Entity, EntityKind, Relation
from ..store.base import StoreGateway

logger = get_logger(__name__)

Request = Dict[str, Any]
Response = Dict[str, Any]
Handler = Callable[[Request], Awaitable[Response]]

# Service name, singular payload field, RPC name suffix
ENTITY_SERVICES: Dict[EntityKind, tuple[str, str, str]] = {
    EntityKind.EVENT: ("EventService", "event", "Event"),
    EntityKind.PERSON: ("PersonService", "person", "Person"),
    EntityKind.ORGANIZATION: ("OrganizationService", "organization", "Organization"),
    EntityKind.SOURCE: ("SourceService", "source", "Source"),
    EntityKind.WEBSITE: ("WebsiteService", "website", "Website"),
}

SERVICE_PACKAGE = "geovision"


def int_arg(request: Mapping[str, Any], name: str) -> Optional[int]:
    """Read an integer argument that may arrive as int, whole float or string."""
    value = request.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise BadRequestError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise BadRequestError(f"{name} must be an integer")


def str_arg(request: Mapping[str, Any], name: str) -> str:
    value = request.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BadRequestError(f"{name} must be a string")
    return value


def _payload(request: Mapping[str, Any], field: str) -> Optional[Dict[str, Any]]:
    value = request.get(field)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise BadRequestError(f"{field} must be an object")
    return value


def _parse(model: Type[Any], payload: Optional[Dict[str, Any]]) -> Any:
    if payload is None:
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise BadRequestError(f"invalid {model.__name__.lower()}: {e.errors()[0]['msg']}") from e


class GeovisionServicer:
    """RPC implementations for every Geovision service.

    Attributes:
        repositories: One EntityRepository per entity kind
        relationships: Relationship router
        events: Event neighborhood engine
        store: Store gateway, used by the health check only

    Example:
        >>> servicer = GeovisionServicer.from_store(store, "osint_graph")
        >>> created = await servicer.create_entity(EntityKind.SOURCE, {"source": {"name": "Reuters"}})
        >>> created["source"]["id"]
        'sources/1'
    """

    def __init__(
        self,
        repositories: Mapping[EntityKind, EntityRepository],
        relationships: RelationshipRouter,
        events: EventNeighborhoodEngine,
        store: StoreGateway,
    ) -> None:
        self.repositories = dict(repositories)
        self.relationships = relationships
        self.events = events
        self.store = store

    @classmethod
    def from_store(
        cls,
        store: StoreGateway,
        graph: str,
        allow_zero_bounds: bool = False,
    ) -> GeovisionServicer:
        """Wire repositories, router and engine around one store."""
        return cls(
            repositories={kind: EntityRepository(store, model) for kind, model in ENTITY_MODELS.items()},
            relationships=RelationshipRouter(store, graph),
            events=EventNeighborhoodEngine(store, graph, allow_zero_bounds=allow_zero_bounds),
            store=store,
        )

    # Entity CRUD

    async def create_entity(self, kind: EntityKind, request: Request) -> Response:
        repo = self.repositories[kind]
        _, field, _ = ENTITY_SERVICES[kind]
        entity: Optional[Entity] = _parse(repo.model, _payload(request, field))
        created = await repo.create(entity)
        logger.info(f"{field} created", extra={"key": created.key})
        return {field: created.to_wire()}

    async def get_entity(self, kind: EntityKind, request: Request) -> Response:
        repo = self.repositories[kind]
        _, field, _ = ENTITY_SERVICES[kind]
        entity = await repo.get(str_arg(request, "key"))
        return {field: entity.to_wire()}

    async def update_entity(self, kind: EntityKind, request: Request) -> Response:
        repo = self.repositories[kind]
        _, field, _ = ENTITY_SERVICES[kind]
        key = str_arg(request, "key")
        patch: Optional[Entity] = _parse(repo.model, _payload(request, field))
        updated = await repo.update(key, patch)
        logger.info(f"{field} updated", extra={"key": key})
        return {field: updated.to_wire()}

    async def delete_entity(self, kind: EntityKind, request: Request) -> Response:
        repo = self.repositories[kind]
        _, field, _ = ENTITY_SERVICES[kind]
        key = str_arg(request, "key")
        await repo.delete(key)
        logger.info(f"{field} deleted", extra={"key": key})
        return {}

    # Events

    async def get_events(self, request: Request) -> Response:
        window = await self.events.get_events(
            int_arg(request, "startTime"), int_arg(request, "endTime")
        )
        return window.to_wire()

    async def get_event_related_entities(self, request: Request) -> Response:
        entities = await self.events.get_related_entities(str_arg(request, "key"))
        return {"entities": [entity.to_wire() for entity in entities]}

    async def get_related_events(self, request: Request) -> Response:
        window = await self.events.get_related_events(str_arg(request, "key"))
        return window.to_wire()

    async def get_persons(self, request: Request) -> Response:
        raise UnimplementedError("GetPersons is not implemented")

    # Relationships

    async def create_relationship(self, request: Request) -> Response:
        relation: Optional[Relation] = _parse(Relation, _payload(request, "relationship"))
        created = await self.relationships.create(relation)
        logger.info("relationship created", extra={"id": created.id})
        return {"relationship": created.to_wire()}

    async def update_relationship(self, request: Request) -> Response:
        relation_id = str_arg(request, "id")
        patch: Optional[Relation] = _parse(Relation, _payload(request, "relationship"))
        updated = await self.relationships.update(relation_id, patch)
        logger.info("relationship updated", extra={"id": relation_id})
        return {"relationship": updated.to_wire()}

    async def delete_relationship(self, request: Request) -> Response:
        relation_id = str_arg(request, "id")
        deleted = await self.relationships.delete(relation_id)
        logger.info("relationship deleted", extra={"id": relation_id})
        return {"relationship": deleted.to_wire()}

    # Health

    async def health(self, request: Optional[Request] = None) -> Response:
        healthy = await self.store.health()
        return {"status": "ok" if healthy else "unavailable", "store": healthy}

    def methods(self) -> Dict[str, Dict[str, Handler]]:
        """RPC table: fully qualified service name -> method name -> handler."""
        table: Dict[str, Dict[str, Handler]] = {}

        for kind, (service, _, suffix) in ENTITY_SERVICES.items():
            table[f"{SERVICE_PACKAGE}.{service}"] = {
                f"Create{suffix}": self._bind(self.create_entity, kind),
                f"Get{suffix}": self._bind(self.get_entity, kind),
                f"Update{suffix}": self._bind(self.update_entity, kind),
                f"Delete{suffix}": self._bind(self.delete_entity, kind),
            }

        table[f"{SERVICE_PACKAGE}.EventService"].update(
            {
                "GetEvents": self.get_events,
                "GetEventRelatedEntities": self.get_event_related_entities,
                "GetRelatedEvents": self.get_related_events,
            }
        )
        table[f"{SERVICE_PACKAGE}.PersonService"]["GetPersons"] = self.get_persons
        table[f"{SERVICE_PACKAGE}.RelationshipService"] = {
            "CreateRelationship": self.create_relationship,
            "UpdateRelationship": self.update_relationship,
            "DeleteRelationship": self.delete_relationship,
        }
        table[f"{SERVICE_PACKAGE}.HealthService"] = {"Check": self.health}
        return table

    @staticmethod
    def _bind(
        func: Callable[[EntityKind, Request], Awaitable[Response]],
        kind: EntityKind,
    ) -> Handler:
        async def handler(request: Request) -> Response:
            return await func(kind, request)

        return handler
