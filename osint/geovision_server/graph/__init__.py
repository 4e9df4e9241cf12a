"""
Graph layer: entity repositories, relationship router and event engine.

Components:
    - EntityRepository: per-kind vertex CRUD
    - RelationshipRouter: edge CRUD over typed, on-demand edge collections
    - EventNeighborhoodEngine: windowed event fetch and one-hop traversals
    - GraphBootstrap: start-up provisioning

The submodules import the store protocol from ``store.base`` so that
``store.memory`` can import ``graph.queries`` without a cycle.
"""

from .bootstrap import GraphBootstrap
from .entities import EntityRepository
from .events import EventNeighborhoodEngine, validate_window
from .relationships import RelationshipRouter, edge_collection_name, normalize_relation_name

__all__ = [
    "GraphBootstrap",
    "EntityRepository",
    "EventNeighborhoodEngine",
    "RelationshipRouter",
    "edge_collection_name",
    "normalize_relation_name",
    "validate_window",
]
