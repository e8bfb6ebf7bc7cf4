"""Materialized hierarchy paths and containment checks.

A path is the ordered list of node segments from the root down to a node,
e.g. ``district_1.school_A.class_X``. Containment is decided per segment, so
``district_1`` is never an ancestor of ``district_10``.

The same predicates are available as SQL clauses over the stored text form.
"""

import re
from typing import Any

from pydantic_core import core_schema
from sqlalchemy import ColumnElement, func, or_

from app.core.exceptions import InvalidPathError

PATH_SEPARATOR = "."

# Restricting segments keeps the separator out of them
SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class OrgPath:
    """Immutable sequence of path segments."""

    __slots__ = ("_segments",)

    def __init__(self, segments: tuple[str, ...] | list[str]) -> None:
        segments = tuple(segments)
        if not segments:
            raise InvalidPathError("Path must have at least one segment")
        for segment in segments:
            if not isinstance(segment, str) or not SEGMENT_PATTERN.match(segment):
                raise InvalidPathError(f"Invalid path segment: {segment!r}")
        object.__setattr__(self, "_segments", segments)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("OrgPath is immutable")

    @classmethod
    def parse(cls, value: "str | OrgPath") -> "OrgPath":
        """Parse the dotted text form (an OrgPath is returned as is)."""
        if isinstance(value, OrgPath):
            return value
        if not isinstance(value, str) or not value:
            raise InvalidPathError(f"Invalid path: {value!r}")
        return cls(value.split(PATH_SEPARATOR))

    @property
    def segments(self) -> tuple[str, ...]:
        return self._segments

    @property
    def depth(self) -> int:
        return len(self._segments)

    @property
    def leaf(self) -> str:
        return self._segments[-1]

    @property
    def parent(self) -> "OrgPath | None":
        if len(self._segments) == 1:
            return None
        return OrgPath(self._segments[:-1])

    def child(self, segment: str) -> "OrgPath":
        """Return the path of a child node with the given segment."""
        return OrgPath(self._segments + (segment,))

    def is_descendant_or_equal(self, ancestor: "OrgPath") -> bool:
        n = len(ancestor._segments)
        return len(self._segments) >= n and self._segments[:n] == ancestor._segments

    def is_ancestor_or_equal(self, descendant: "OrgPath") -> bool:
        return descendant.is_descendant_or_equal(self)

    def __str__(self) -> str:
        return PATH_SEPARATOR.join(self._segments)

    def __repr__(self) -> str:
        return f"<OrgPath({self})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrgPath):
            return NotImplemented
        return self._segments == other._segments

    def __hash__(self) -> int:
        return hash(self._segments)

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate(value: Any) -> "OrgPath":
            try:
                return cls.parse(value)
            except InvalidPathError as exc:
                raise ValueError(exc.message) from exc

        return core_schema.no_info_plain_validator_function(
            validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def __get_pydantic_json_schema__(cls, schema: Any, handler: Any) -> dict[str, Any]:
        return {"type": "string", "examples": ["district_1.school_A.class_X"]}


def is_descendant_or_equal(path: OrgPath | str, ancestor_path: OrgPath | str) -> bool:
    """Check if *path* lies in the subtree rooted at *ancestor_path*."""
    return OrgPath.parse(path).is_descendant_or_equal(OrgPath.parse(ancestor_path))


def is_ancestor_or_equal(path: OrgPath | str, descendant_path: OrgPath | str) -> bool:
    """Check if *path* is on the way from the root to *descendant_path*."""
    return OrgPath.parse(path).is_ancestor_or_equal(OrgPath.parse(descendant_path))


def descendant_or_equal_clause(child_path: Any, ancestor_path: Any) -> ColumnElement[bool]:
    """SQL condition: *child_path* is a descendant of (or equal to) *ancestor_path*.

    Compares the leading ``len(ancestor) + 1`` characters against
    ``ancestor || '.'`` so that a match always ends on a segment boundary.
    """
    return or_(
        child_path == ancestor_path,
        func.substr(child_path, 1, func.length(ancestor_path) + 1)
        == ancestor_path + PATH_SEPARATOR,
    )


def ancestor_or_equal_clause(ancestor_path: Any, child_path: Any) -> ColumnElement[bool]:
    """SQL condition: *ancestor_path* is an ancestor of (or equal to) *child_path*."""
    return descendant_or_equal_clause(child_path, ancestor_path)
