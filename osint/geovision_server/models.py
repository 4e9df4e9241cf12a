"""
Domain models for Geovision entities and relations.

Entities are vertex documents (events, persons, organizations, sources,
websites); relations are directed edge documents. Every model carries the
store-assigned identity triple ``id``/``key``/``rev``.

Wire form uses camelCase attribute names (``happenedAt``) and plain
``id``/``key``/``rev``/``from``/``to``; store form uses the reserved
``_id``/``_key``/``_rev``/``_from``/``_to`` attributes.

Invariants:
    - Identity fields are never written to the store from a payload
    - Documents read from the store always populate id/key/rev
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

IDENTITY_FIELDS = ("id", "key", "rev")
RESERVED_ATTRIBUTES = ("_id", "_key", "_rev")


class EntityKind(str, Enum):
    """Vertex kinds, valued by their collection name."""

    EVENT = "events"
    PERSON = "persons"
    ORGANIZATION = "organizations"
    SOURCE = "sources"
    WEBSITE = "websites"


VERTEX_COLLECTIONS = tuple(kind.value for kind in EntityKind)


def document_to_wire(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Rename reserved store attributes to their wire names.

    Used for opaque documents whose kind is not known up front.
    """
    wire: Dict[str, Any] = {}
    for name, value in doc.items():
        if name.startswith("_"):
            if name in ("_id", "_key", "_rev", "_from", "_to"):
                wire[name[1:]] = value
            continue
        wire[name] = value
    return wire


class Document(BaseModel):
    """Base model for anything stored as a document."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    key: str = ""
    rev: str = ""

    def to_document(self, partial: bool = False) -> Dict[str, Any]:
        """Store form of the caller-set attributes, identity excluded."""
        return self.model_dump(
            by_alias=True,
            exclude=set(IDENTITY_FIELDS),
            exclude_unset=partial,
        )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def with_meta(self, meta: Optional[Dict[str, Any]]) -> "Document":
        """Copy identity from store metadata, overriding decoded values."""
        if meta:
            self.id = meta.get("_id") or self.id
            self.key = meta.get("_key") or self.key
            self.rev = meta.get("_rev") or self.rev
        return self

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        meta: Optional[Dict[str, Any]] = None,
    ) -> "Document":
        return cls.model_validate(document_to_wire(doc)).with_meta(meta or doc)


class Entity(Document):
    """A vertex document."""

    kind: ClassVar[EntityKind]


class Event(Entity):
    kind: ClassVar[EntityKind] = EntityKind.EVENT

    happened_at: int = Field(default=0, alias="happenedAt")


class Person(Entity):
    kind: ClassVar[EntityKind] = EntityKind.PERSON

    name: str = ""


class Organization(Entity):
    kind: ClassVar[EntityKind] = EntityKind.ORGANIZATION

    name: str = ""


class Source(Entity):
    kind: ClassVar[EntityKind] = EntityKind.SOURCE

    name: str = ""


class Website(Entity):
    kind: ClassVar[EntityKind] = EntityKind.WEBSITE

    url: str = ""


ENTITY_MODELS: Dict[EntityKind, Type[Entity]] = {
    EntityKind.EVENT: Event,
    EntityKind.PERSON: Person,
    EntityKind.ORGANIZATION: Organization,
    EntityKind.SOURCE: Source,
    EntityKind.WEBSITE: Website,
}


class Relation(Document):
    """A directed edge between two qualified ids."""

    from_: str = Field(default="", alias="from")
    to: str = ""
    name: str = ""

    def to_document(self, partial: bool = False) -> Dict[str, Any]:
        doc = super().to_document(partial=partial)
        if "from" in doc:
            doc["_from"] = doc.pop("from")
        if "to" in doc:
            doc["_to"] = doc.pop("to")
        return doc


class EventWindow(BaseModel):
    """Result of a time-windowed event fetch."""

    events: List[Event] = Field(default_factory=list)
    relations: List[Relation] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return {
            "events": [e.to_wire() for e in self.events],
            "relations": [r.to_wire() for r in self.relations],
        }


class RelatedEntity(BaseModel):
    """A non-event neighbor of an event, tagged with its collection."""

    type: str
    entity: Dict[str, Any]
    edge: Relation

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "entity": document_to_wire(self.entity),
            "edge": self.edge.to_wire(),
        }
