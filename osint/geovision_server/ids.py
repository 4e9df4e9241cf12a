"""
Qualified document identifier codec.

A qualified id has the form ``<collection>/<key>`` and is unique within a
database. This codec is pure: it never talks to the store.
"""

from __future__ import annotations

from typing import NamedTuple

from .errors import BadRequestError


class QualifiedId(NamedTuple):
    """A parsed ``<collection>/<key>`` identifier."""

    collection: str
    key: str

    def __str__(self) -> str:
        return format_id(self.collection, self.key)


def parse_id(qualified_id: str | None) -> QualifiedId:
    """Split a qualified id into its collection and key.

    Args:
        qualified_id: Identifier of the form ``<collection>/<key>``

    Returns:
        QualifiedId with both halves

    Raises:
        BadRequestError: If the input is empty, has no ``/``, has more than
            one ``/``, or either half is empty
    """
    if not qualified_id:
        raise BadRequestError("id is required")

    parts = qualified_id.split("/")
    if len(parts) != 2:
        raise BadRequestError(
            f"invalid id {qualified_id!r}: expected <collection>/<key>"
        )

    collection, key = parts
    if not collection:
        raise BadRequestError(f"invalid id {qualified_id!r}: empty collection")
    if not key:
        raise BadRequestError(f"invalid id {qualified_id!r}: empty key")

    return QualifiedId(collection, key)


def format_id(collection: str, key: str) -> str:
    """Inverse of parse_id."""
    return f"{collection}/{key}"


def require_key(key: str | None, label: str) -> str:
    """Check a bare document key before it reaches the store.

    Raises:
        BadRequestError: If the key is empty or contains ``/``
    """
    if not key:
        raise BadRequestError(f"{label} key is required")
    if "/" in key:
        raise BadRequestError(f"invalid {label} key {key!r}: must not contain '/'")
    return key
