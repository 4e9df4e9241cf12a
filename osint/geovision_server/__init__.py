"""
Geovision Server - graph entity service for OSINT event analysis.

This package stores events, persons, organizations, sources and websites
as vertices in a multi-model store (ArangoDB) and connects them with
typed, directed relations. It serves CRUD for every kind plus two graph
queries centred on events:
- a time-windowed fetch returning events with the edges internal to them
- the one-hop non-event neighborhood of a single event

Architecture:
    ┌─────────────┐     ┌───────────────┐     ┌───────────────────────┐
    │   Client    │────▶│  gRPC / HTTP  │────▶│  GeovisionServicer    │
    └─────────────┘     └───────────────┘     └───────────┬───────────┘
                                                          │
                     ┌────────────────────┬───────────────┴────┐
                     ▼                    ▼                    ▼
             ┌──────────────┐   ┌──────────────────┐  ┌─────────────────┐
             │  Entity      │   │  Relationship    │  │ Event           │
             │  Repository  │   │  Router          │  │ Neighborhood    │
             └──────┬───────┘   └────────┬─────────┘  └────────┬────────┘
                    └────────────────────┼─────────────────────┘
                                         ▼
                              ┌─────────────────────┐
                              │ StoreGateway        │
                              │ (ArangoDB / memory) │
                              └─────────────────────┘

Invariants:
    - Every returned document carries id, key and rev from the store
    - Relations live in edge collections named {from}_{name}_{to}
    - Every edge collection is part of the one named graph
    - Clients only ever see the canonical error categories

How to change safely:
    - Edge collection naming is persisted state; never change it in place
    - Query text and the in-memory evaluator change together
"""

from ._version import __version__

__all__ = ["__version__"]
