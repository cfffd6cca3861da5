"""Locate the maximal run of inline siblings carrying a mark type around an offset."""

from __future__ import annotations

import logging
from typing import Optional

from textblock.model.node import Node, find_mark
from textblock.model.position import resolve
from textblock.model.selection import Range
from textblock.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)


class MarkRangeResolver:
    """
    Example:
        >>> resolver = MarkRangeResolver(schema)
        >>> resolver.locate(doc, 3, "bold")
        Range(from_=1, to=6)
    """

    def __init__(self, schema: SchemaRegistry) -> None:
        self.schema = schema

    def locate(self, doc: Node, offset: int, mark_type: str) -> Optional[Range]:
        """
        Return the contiguous range around ``offset`` whose inline nodes carry
        ``mark_type``, or None when the node at the offset does not carry it.

        At a boundary between two siblings the following sibling is examined; past
        the last child of a block the last child is examined.

        Raises:
            UnknownTypeError: ``mark_type`` is not registered.
        """
        self.schema.mark_type(mark_type)
        try:
            position = resolve(doc, offset)
        except ValueError as e:
            logger.debug("Cannot locate %s run: %s", mark_type, e)
            return None

        parent = position.parent
        if parent.child_count == 0:
            return None

        index, child_start = parent.find_index(position.parent_offset)
        if index == parent.child_count:
            index -= 1
            child_start -= parent.child(index).node_size

        child = parent.child(index)
        if find_mark(child.marks, mark_type) is None:
            return None

        start_index, start = index, child_start
        while start_index > 0 and find_mark(parent.child(start_index - 1).marks, mark_type) is not None:
            start_index -= 1
            start -= parent.child(start_index).node_size

        end_index, end = index + 1, child_start + child.node_size
        while end_index < parent.child_count and find_mark(parent.child(end_index).marks, mark_type) is not None:
            end += parent.child(end_index).node_size
            end_index += 1

        base = position.start()
        return Range(base + start, base + end)
