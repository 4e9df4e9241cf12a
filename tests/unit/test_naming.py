"""
Unit tests for relation name normalization and edge collection naming.
"""

import pytest

from osint.geovision_server.errors import BadRequestError
from osint.geovision_server.graph.relationships import (
    edge_collection_name,
    normalize_relation_name,
)


class TestNormalizeRelationName:
    """Tests for normalize_relation_name."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("related to", "related_to"),
            ("Hosted By", "hosted_by"),
            ("CITES", "cites"),
            ("already_normal", "already_normal"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, name, expected):
        assert normalize_relation_name(name) == expected


class TestEdgeCollectionName:
    """Tests for edge_collection_name."""

    def test_joins_types_and_name(self):
        assert edge_collection_name("events", "related to", "events") == "events_related_to_events"

    def test_endpoint_types_distinguish_collections(self):
        """The same logical name between different types maps to different collections."""
        a = edge_collection_name("events", "hosted by", "organizations")
        b = edge_collection_name("events", "hosted by", "websites")

        assert a == "events_hosted_by_organizations"
        assert b == "events_hosted_by_websites"

    def test_empty_name_is_bad_request(self):
        with pytest.raises(BadRequestError):
            edge_collection_name("events", "", "events")

    @pytest.mark.parametrize("name", ["a/b", "cited.by", "tab\there", "trailing\n", "réf"])
    def test_illegal_characters_are_bad_request(self, name):
        with pytest.raises(BadRequestError):
            edge_collection_name("events", name, "events")

    def test_hyphen_and_digits_allowed(self):
        assert edge_collection_name("events", "Step-2 of", "events") == "events_step-2_of_events"

    def test_overlong_name_is_bad_request(self):
        with pytest.raises(BadRequestError):
            edge_collection_name("events", "x" * 250, "organizations")
