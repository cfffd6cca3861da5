"""
Document tree model: immutable nodes and marks.

A document is a tree of Node snapshots. Text leaves carry a mark set; every other
node carries typed attributes and an ordered tuple of children. Nodes are never
patched in place: edits build new nodes (see textblock.editor.transform).

Node sizes follow the offset model used for selections:
    - text node: len(text)
    - inline leaf (break, property): 1
    - any other node: content size + 2 (opening and closing token)

Module: textblock/model/node.py
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterator, Mapping, Optional, Sequence, Tuple

from textblock.model.enums import NodeKind


@dataclass(frozen=True, slots=True)
class Mark:
    """Typed annotation attached to a run of inline content."""

    type_name: str
    attrs: Mapping[str, Any] = field(default_factory=dict)
    given_attrs: FrozenSet[str] = field(default=frozenset(), compare=False)

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def is_in_set(self, marks: Sequence[Mark]) -> bool:
        """True if an equal mark (same type and attributes) is in ``marks``."""
        return any(m == self for m in marks)

    def __repr__(self) -> str:
        if self.attrs:
            return f"Mark({self.type_name}, {dict(self.attrs)!r})"
        return f"Mark({self.type_name})"


def find_mark(marks: Sequence[Mark], type_name: str) -> Optional[Mark]:
    """Return the mark of ``type_name`` in ``marks``, if any."""
    for mark in marks:
        if mark.type_name == type_name:
            return mark
    return None


def remove_from_set(marks: Sequence[Mark], type_name: str) -> Tuple[Mark, ...]:
    return tuple(m for m in marks if m.type_name != type_name)


@dataclass(frozen=True, slots=True)
class Node:
    """
    Immutable document tree element.

    Attributes:
        type_name: Registered node type name (``paragraph``, ``list_item``, ...).
        kind: Structural role taken from the type descriptor.
        attrs: Attribute values, defaults applied and undeclared keys kept as given.
        children: Child nodes, empty for text and inline leaves.
        text: Payload of text nodes, None otherwise.
        marks: Mark set of inline nodes, unique per mark type.
        given_attrs: Attribute names supplied by the caller; these are serialized
            even when equal to their default.

    Nodes are created through SchemaRegistry.instantiate / SchemaRegistry.text so
    that content models and attribute defaults are enforced.
    """

    type_name: str
    kind: NodeKind
    attrs: Mapping[str, Any] = field(default_factory=dict)
    children: Tuple[Node, ...] = ()
    text: Optional[str] = None
    marks: Tuple[Mark, ...] = ()
    given_attrs: FrozenSet[str] = field(default=frozenset(), compare=False)

    # --- structure -----------------------------------------------------------

    @property
    def is_text(self) -> bool:
        return self.kind is NodeKind.TEXT

    @property
    def is_inline(self) -> bool:
        return self.kind.is_inline

    @property
    def is_textblock(self) -> bool:
        return self.kind is NodeKind.TEXTBLOCK

    @property
    def child_count(self) -> int:
        return len(self.children)

    def child(self, index: int) -> Node:
        return self.children[index]

    def maybe_child(self, index: int) -> Optional[Node]:
        if 0 <= index < len(self.children):
            return self.children[index]
        return None

    def attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    # --- sizes and offsets ---------------------------------------------------

    @property
    def content_size(self) -> int:
        if self.kind is NodeKind.TEXT:
            return len(self.text or "")
        return sum(child.node_size for child in self.children)

    @property
    def node_size(self) -> int:
        if self.kind is NodeKind.TEXT:
            return len(self.text or "")
        if self.kind is NodeKind.INLINE_LEAF:
            return 1
        return self.content_size + 2

    def find_index(self, offset: int) -> Tuple[int, int]:
        """
        Locate ``offset`` (relative to this node's content) among the children.

        Returns:
            (index, child_start). At a boundary between two children the index of
            the following child is returned; at the end of the content the index is
            ``child_count``.

        Raises:
            ValueError: If the offset is outside the content.
        """
        size = self.content_size
        if offset < 0 or offset > size:
            raise ValueError(f"Offset {offset} outside of {self.type_name} content (size {size})")
        if offset == 0:
            return 0, 0
        if offset == size:
            return len(self.children), size
        position = 0
        for index, child in enumerate(self.children):
            end = position + child.node_size
            if end > offset:
                return index, position
            if end == offset:
                return index + 1, end
            position = end
        return len(self.children), size

    def child_after(self, offset: int) -> Tuple[Optional[Node], int, int]:
        """Return (child, index, child_start) for the child at or after ``offset``."""
        index, start = self.find_index(offset)
        return self.maybe_child(index), index, start

    def child_offsets(self) -> Iterator[Tuple[int, Node]]:
        """Yield (offset, child) pairs relative to this node's content."""
        position = 0
        for child in self.children:
            yield position, child
            position += child.node_size

    # --- content -------------------------------------------------------------

    @property
    def text_content(self) -> str:
        if self.kind is NodeKind.TEXT:
            return self.text or ""
        return "".join(child.text_content for child in self.children)

    def with_marks(self, marks: Sequence[Mark]) -> Node:
        return dataclasses.replace(self, marks=tuple(marks))

    def cut(self, start: int, end: Optional[int] = None) -> Node:
        """Return a text node holding ``text[start:end]``."""
        if self.kind is not NodeKind.TEXT:
            raise TypeError(f"Only text nodes can be cut, got {self.type_name}")
        return dataclasses.replace(self, text=(self.text or "")[start:end])

    def __repr__(self) -> str:
        if self.kind is NodeKind.TEXT:
            preview = (self.text or "")[:20]
            marks = f", marks={[m.type_name for m in self.marks]}" if self.marks else ""
            return f"Node(text={preview!r}{marks})"
        return f"Node({self.type_name}, children={len(self.children)}, size={self.node_size})"
