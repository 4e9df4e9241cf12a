"""
Unit tests for the qualified id codec.

Tests cover:
- Parsing well-formed ids
- Rejection of malformed ids
- Formatting
"""

import pytest

from osint.geovision_server.errors import BadRequestError
from osint.geovision_server.ids import QualifiedId, format_id, parse_id, require_key


class TestParseId:
    """Tests for parse_id."""

    def test_parses_collection_and_key(self):
        """A well-formed id splits into both halves."""
        qid = parse_id("events/123")

        assert qid == QualifiedId("events", "123")
        assert qid.collection == "events"
        assert qid.key == "123"

    def test_parses_edge_collection_ids(self):
        """Edge collection names with underscores are kept intact."""
        qid = parse_id("events_related_to_events/42")

        assert qid.collection == "events_related_to_events"
        assert qid.key == "42"

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "not-a-qualified-id",
            "events/1/extra",
            "/123",
            "events/",
            "/",
        ],
    )
    def test_rejects_malformed_ids(self, value):
        """Empty input, wrong separator count or empty halves are BadRequest."""
        with pytest.raises(BadRequestError):
            parse_id(value)


class TestFormatId:
    """Tests for format_id and QualifiedId.__str__."""

    def test_format(self):
        assert format_id("sources", "7") == "sources/7"

    def test_str_matches_format(self):
        assert str(QualifiedId("websites", "abc")) == "websites/abc"

    def test_parse_inverts_format(self):
        assert parse_id(format_id("persons", "9")) == ("persons", "9")


class TestRequireKey:
    """Tests for require_key."""

    def test_returns_plain_key(self):
        assert require_key("12345", "source") == "12345"

    @pytest.mark.parametrize("value", ["", None, "a/b", "sources/1", "/"])
    def test_rejects_empty_or_qualified(self, value):
        with pytest.raises(BadRequestError, match="source"):
            require_key(value, "source")
