"""
Offset resolution over document trees.

Offsets count positions inside the ``doc`` node's content. ``resolve`` turns an
offset into a ResolvedPosition that knows the chain of ancestors, the child index
at every depth and the offset inside the innermost parent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from textblock.model.node import Mark, Node, find_mark

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PathEntry:
    node: Node
    index: int
    offset: int  # absolute offset of the child at ``index``


@dataclass(frozen=True, slots=True)
class ResolvedPosition:
    """
    Immutable view of an offset inside a document.

    Attributes:
        pos: The absolute offset.
        path: One entry per depth, from the doc (depth 0) to the innermost parent.
        parent_offset: Offset relative to the innermost parent's content.
    """

    pos: int
    path: Tuple[PathEntry, ...]
    parent_offset: int

    @property
    def depth(self) -> int:
        return len(self.path) - 1

    def _depth(self, depth: Optional[int]) -> int:
        if depth is None:
            return self.depth
        if depth < 0:
            return self.depth + depth
        return depth

    def node(self, depth: Optional[int] = None) -> Node:
        return self.path[self._depth(depth)].node

    @property
    def parent(self) -> Node:
        return self.node(self.depth)

    @property
    def doc(self) -> Node:
        return self.node(0)

    def index(self, depth: Optional[int] = None) -> int:
        return self.path[self._depth(depth)].index

    def start(self, depth: Optional[int] = None) -> int:
        """Absolute offset of the start of the content of the node at ``depth``."""
        depth = self._depth(depth)
        if depth == 0:
            return 0
        return self.path[depth - 1].offset + 1

    def end(self, depth: Optional[int] = None) -> int:
        depth = self._depth(depth)
        return self.start(depth) + self.node(depth).content_size

    @property
    def text_offset(self) -> int:
        """Offset into the text node the position points into, 0 at boundaries."""
        return self.pos - self.path[-1].offset

    def ancestors(self) -> Iterator[Node]:
        """Yield the ancestors from the innermost parent up to the doc."""
        for entry in reversed(self.path):
            yield entry.node

    def marks(self, inclusive_of: Optional[dict] = None) -> Tuple[Mark, ...]:
        """
        Marks that apply at this position.

        Inside a text node these are the node's marks. At a boundary the marks of
        the node before are used; marks declared non-inclusive (``inclusive_of``
        maps mark type name to False) are kept only when the node after carries
        them as well.
        """
        parent = self.parent
        index = self.index()
        if parent.child_count == 0:
            return ()
        if self.text_offset:
            return parent.child(index).marks

        main = parent.maybe_child(index - 1)
        other = parent.maybe_child(index)
        if main is None:
            main, other = other, main
        if main is None:
            return ()

        marks = main.marks
        inclusive_of = inclusive_of or {}
        kept = []
        for mark in marks:
            if inclusive_of.get(mark.type_name, True) is False and (
                other is None or not mark.is_in_set(other.marks)
            ):
                continue
            kept.append(mark)
        return tuple(kept)

    def __repr__(self) -> str:
        chain = "/".join(f"{e.node.type_name}_{e.index}" for e in self.path)
        return f"ResolvedPosition({self.pos}, {chain}:{self.parent_offset})"


def resolve(doc: Node, pos: int) -> ResolvedPosition:
    """
    Resolve an absolute offset inside ``doc``.

    Raises:
        ValueError: If ``pos`` is outside ``[0, doc.content_size]``.
    """
    if not (0 <= pos <= doc.content_size):
        raise ValueError(f"Position {pos} out of range (document size {doc.content_size})")

    path: List[PathEntry] = []
    start = 0
    parent_offset = pos
    node = doc
    while True:
        index, offset = node.find_index(parent_offset)
        remainder = parent_offset - offset
        path.append(PathEntry(node=node, index=index, offset=start + offset))
        if remainder == 0:
            break
        child = node.child(index)
        if child.is_inline:
            break
        node = child
        parent_offset = remainder - 1
        start += offset + 1

    return ResolvedPosition(pos=pos, path=tuple(path), parent_offset=parent_offset)


def nodes_between(
    node: Node, start: int, end: int, base: int = 0
) -> Iterator[Tuple[Node, int, Node, int]]:
    """
    Yield (child, absolute_offset, parent, index) for every descendant of ``node``
    that overlaps ``[start, end)``, parents before children.

    ``start`` and ``end`` are relative to ``node``'s content; ``base`` is the
    absolute offset of that content.
    """
    position = 0
    for index, child in enumerate(node.children):
        if position >= end:
            break
        child_end = position + child.node_size
        if child_end > start:
            yield child, base + position, node, index
            if not child.is_inline and child.children:
                inner = position + 1
                yield from nodes_between(
                    child,
                    max(0, start - inner),
                    min(child.content_size, end - inner),
                    base + inner,
                )
        position = child_end


def _inline_nodes_in_range(doc: Node, start: int, end: int) -> Iterator[Node]:
    for child, _offset, _parent, _index in nodes_between(doc, start, end):
        if child.is_inline:
            yield child


def range_fully_has_mark(doc: Node, start: int, end: int, type_name: str) -> bool:
    """
    True if every inline node overlapping ``[start, end)`` carries ``type_name`` and
    there is at least one such node. Inline leaves count.
    """
    found = False
    for child in _inline_nodes_in_range(doc, start, end):
        if find_mark(child.marks, type_name) is None:
            return False
        found = True
    return found


def textblock_starts(doc: Node) -> List[Tuple[int, Node]]:
    """Content start offsets of every textblock in document order."""
    result: List[Tuple[int, Node]] = []

    def _walk(node: Node, base: int) -> None:
        for offset, child in node.child_offsets():
            if child.is_textblock:
                result.append((base + offset + 1, child))
            elif not child.is_inline:
                _walk(child, base + offset + 1)

    _walk(doc, 0)
    return result
