"""
Event neighborhood engine: windowed event fetches and one-hop traversals.

Every traversal goes through the named graph, so edge collections
provisioned at runtime by the relationship router are covered without
listing them.

Invariants:
    - get_events returns exactly the events with start <= happenedAt <= end
      and exactly the edges whose endpoints are both in that set
    - get_related_entities never returns a vertex from the events collection
    - Traversals are one hop, outbound only
    - A malformed related-entity row is skipped, never fatal

How to change safely:
    - Query text lives in graph.queries; InMemoryStore evaluates it by text,
      so both must change together
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..errors import BadRequestError, InternalError
from ..ids import format_id, require_key
from ..logctx import get_logger
from ..models import EntityKind, Event, EventWindow, RelatedEntity, Relation
from ..store.base import StoreError, StoreGateway
from . import queries

logger = get_logger(__name__)

EVENT_COLLECTION = EntityKind.EVENT.value


def validate_window(
    start_time: Optional[int],
    end_time: Optional[int],
    allow_zero_bounds: bool = False,
) -> None:
    """Reject missing, zero (unless allowed) or inverted bounds."""
    if start_time is None or end_time is None:
        raise BadRequestError("startTime and endTime are required")
    if not allow_zero_bounds and (start_time == 0 or end_time == 0):
        raise BadRequestError("startTime and endTime must be non-zero")
    if start_time > end_time:
        raise BadRequestError("startTime must not be after endTime")


class EventNeighborhoodEngine:
    """Parametrized graph queries centred on events.

    Attributes:
        store: Shared store gateway
        graph: Named graph to traverse
        allow_zero_bounds: Accept 0 as a window bound

    Example:
        >>> engine = EventNeighborhoodEngine(store, "osint_graph")
        >>> window = await engine.get_events(1, 9999999999)
        >>> [e.happened_at for e in window.events]
        [1000, 2000]
    """

    def __init__(self, store: StoreGateway, graph: str, allow_zero_bounds: bool = False) -> None:
        self.store = store
        self.graph = graph
        self.allow_zero_bounds = allow_zero_bounds

    async def _rows(self, text: str, bind_vars: Dict[str, Any], action: str) -> List[Any]:
        try:
            cursor = await self.store.query(text, bind_vars)
            return await cursor.to_list()
        except StoreError as e:
            logger.error(f"failed to {action}", extra={"error": str(e)})
            raise InternalError() from e

    async def get_events(self, start_time: Optional[int], end_time: Optional[int]) -> EventWindow:
        validate_window(start_time, end_time, self.allow_zero_bounds)

        rows = await self._rows(
            queries.EVENTS_IN_WINDOW,
            {
                "@events": EVENT_COLLECTION,
                "startTime": start_time,
                "endTime": end_time,
                "graph": self.graph,
            },
            "query events in window",
        )

        window = EventWindow()
        for row in rows:
            try:
                window.events.extend(Event.from_document(doc) for doc in row.get("events") or [])
                window.relations.extend(
                    Relation.from_document(doc) for doc in row.get("relations") or []
                )
            except (AttributeError, ValueError) as e:
                logger.error("failed to decode events window", extra={"error": str(e)})
                raise InternalError() from e
        return window

    async def get_related_entities(self, key: str) -> List[RelatedEntity]:
        """Non-event one-hop outbound neighbors of ``events/<key>``.

        An unknown key yields an empty list.
        """
        require_key(key, "event")

        rows = await self._rows(
            queries.RELATED_ENTITIES,
            {
                "start": format_id(EVENT_COLLECTION, key),
                "graph": self.graph,
                "eventCollection": EVENT_COLLECTION,
            },
            "query related entities",
        )

        entities: List[RelatedEntity] = []
        for row in rows:
            try:
                entity = RelatedEntity(
                    type=row["type"],
                    entity=row["entity"],
                    edge=Relation.from_document(row["edge"]),
                )
            except (AttributeError, KeyError, TypeError, ValidationError) as e:
                logger.warning(
                    "skipping malformed related entity row",
                    extra={"error": str(e), "key": key},
                )
                continue
            entities.append(entity)
        return entities

    async def get_related_events(self, key: str) -> EventWindow:
        """Event neighbors of ``events/<key>`` with the connecting edges."""
        require_key(key, "event")

        rows = await self._rows(
            queries.RELATED_EVENTS,
            {
                "start": format_id(EVENT_COLLECTION, key),
                "graph": self.graph,
                "eventCollection": EVENT_COLLECTION,
            },
            "query related events",
        )

        window = EventWindow()
        seen = set()
        for row in rows:
            try:
                event = Event.from_document(row["event"])
                edge = Relation.from_document(row["edge"])
            except (AttributeError, KeyError, TypeError, ValidationError) as e:
                logger.warning(
                    "skipping malformed related event row",
                    extra={"error": str(e), "key": key},
                )
                continue
            if event.id not in seen:
                seen.add(event.id)
                window.events.append(event)
            window.relations.append(edge)
        return window
