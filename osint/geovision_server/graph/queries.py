"""
AQL statements issued by the relationship router and the event engine.

All statements address edges through the named graph (``GRAPH @graph``)
rather than enumerated collections, so edge collections created at
runtime are traversed without changing the query text.
"""

UPDATE_RELATION = """
LET patch = UNSET(@patch, "_id", "_key", "_rev", "_from", "_to")
FOR doc IN @@collection
    FILTER doc._key == @key
    UPDATE doc WITH patch IN @@collection
    RETURN NEW
"""

DELETE_RELATION = """
FOR doc IN @@collection
    FILTER doc._key == @key
    REMOVE doc IN @@collection
    RETURN OLD
"""

# Edges are admitted when the outbound neighbor is itself in the window;
# ``members`` is an object keyed by _id so the test is a hash lookup.
EVENTS_IN_WINDOW = """
LET docs = (
    FOR event IN @@events
        FILTER event.happenedAt >= @startTime AND event.happenedAt <= @endTime
        SORT event.happenedAt
        RETURN event
)
LET members = ZIP(docs[*]._id, docs[*]._id)
LET relations = (
    FOR doc IN docs
        FOR v, e IN 1..1 OUTBOUND doc GRAPH @graph
            FILTER HAS(members, v._id)
            RETURN e
)
RETURN { events: docs, relations: relations }
"""

RELATED_ENTITIES = """
FOR v, e IN 1..1 OUTBOUND @start GRAPH @graph
    LET type = PARSE_IDENTIFIER(v._id).collection
    FILTER type != @eventCollection
    RETURN DISTINCT { type: type, entity: v, edge: e }
"""

RELATED_EVENTS = """
FOR v, e IN 1..1 OUTBOUND @start GRAPH @graph
    FILTER PARSE_IDENTIFIER(v._id).collection == @eventCollection
    RETURN { event: v, edge: e }
"""
