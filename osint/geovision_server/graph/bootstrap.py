"""
Start-up provisioning of the persisted graph layout.

Ensures the five vertex collections, the background persistent index on
``events.happenedAt`` and the named graph exist. Every step tolerates
"already exists", so running it against a provisioned database is a
no-op and several replicas may run it at once.
"""

from __future__ import annotations

import logging

from ..models import VERTEX_COLLECTIONS, EntityKind
from ..store.base import CollectionKind, StoreGateway

logger = logging.getLogger(__name__)

HAPPENED_AT_FIELDS = ("happenedAt",)


class GraphBootstrap:
    """Idempotent provisioning run once per process start."""

    def __init__(self, store: StoreGateway, graph: str) -> None:
        self.store = store
        self.graph = graph

    async def run(self) -> None:
        """Provision collections, index and graph.

        Raises:
            StoreError: If any provisioning step fails
        """
        for name in VERTEX_COLLECTIONS:
            await self.store.get_or_create_collection(name, CollectionKind.VERTEX)

        await self.store.ensure_persistent_index(
            EntityKind.EVENT.value, HAPPENED_AT_FIELDS, in_background=True
        )
        await self.store.ensure_graph(self.graph, orphans=VERTEX_COLLECTIONS)

        logger.info(
            "Graph bootstrap complete",
            extra={"graph": self.graph, "collections": list(VERTEX_COLLECTIONS)},
        )
