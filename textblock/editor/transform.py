"""
Pure tree transforms used by the editing commands.

Each function takes a document snapshot and returns a new one; untouched subtrees
are shared with the input. A transform that does not apply returns the input
document itself, so callers can detect no-ops with ``is``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from textblock.model.enums import NodeTypeName
from textblock.model.node import Mark, Node, remove_from_set
from textblock.model.position import ResolvedPosition, resolve, textblock_starts
from textblock.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

LIST_ITEM = NodeTypeName.LIST_ITEM.value
PARAGRAPH = NodeTypeName.PARAGRAPH.value
LIST_TYPES = (NodeTypeName.ORDERED_LIST.value, NodeTypeName.BULLETED_LIST.value)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _rebuild(schema: SchemaRegistry, position: ResolvedPosition, depth: int, replacement: Node) -> Node:
    """Put ``replacement`` in place of the node at ``depth`` and rebuild its ancestors."""
    node = replacement
    for d in range(depth - 1, -1, -1):
        parent = position.node(d)
        children = list(parent.children)
        children[position.index(d)] = node
        node = schema.replace_children(parent, children)
    return node


def _splice(
    schema: SchemaRegistry,
    position: ResolvedPosition,
    depth: int,
    start: int,
    end: int,
    nodes: Sequence[Node],
) -> Node:
    """Replace children ``[start:end]`` of the node at ``depth`` with ``nodes``."""
    parent = position.node(depth)
    children = list(parent.children)
    children[start:end] = nodes
    return _rebuild(schema, position, depth, schema.replace_children(parent, children))


def _map_inline(
    schema: SchemaRegistry,
    node: Node,
    content_start: int,
    start: int,
    end: int,
    fn: Callable[[Node], Node],
) -> Node:
    new_children: List[Node] = []
    changed = False
    for offset, child in node.child_offsets():
        child_start = content_start + offset
        child_end = child_start + child.node_size
        if child_end <= start or child_start >= end:
            new_children.append(child)
            continue

        if child.is_text:
            cut_from = max(start, child_start) - child_start
            cut_to = min(end, child_end) - child_start
            if cut_from > 0:
                new_children.append(child.cut(0, cut_from))
            new_children.append(fn(child.cut(cut_from, cut_to)))
            if cut_to < child.node_size:
                new_children.append(child.cut(cut_to))
        elif child.is_inline:
            new_children.append(fn(child))
        else:
            new_children.append(_map_inline(schema, child, child_start + 1, start, end, fn))
        changed = True

    if not changed:
        return node
    result = schema.replace_children(node, new_children)
    return node if result == node else result


def _map_textblocks(
    schema: SchemaRegistry,
    node: Node,
    content_start: int,
    start: int,
    end: int,
    fn: Callable[[Node], Node],
) -> Node:
    content = schema.node_type(node.type_name).content
    type_names = [child.type_name for child in node.children]
    new_children: List[Node] = []
    changed = False

    for index, (offset, child) in enumerate(node.child_offsets()):
        child_pos = content_start + offset
        replacement = child
        if child.is_textblock:
            inner_start = child_pos + 1
            if inner_start <= end and inner_start + child.content_size >= start:
                candidate = fn(child)
                candidate_types = list(type_names)
                candidate_types[index] = candidate.type_name
                if content.matches(candidate_types, schema.is_a):
                    replacement = candidate
                    type_names = candidate_types
                else:
                    logger.debug("%s not allowed at child %d of %s", candidate.type_name, index, node.type_name)
        elif not child.is_inline and child_pos <= end and child_pos + child.node_size >= start:
            replacement = _map_textblocks(schema, child, child_pos + 1, start, end, fn)
        changed = changed or replacement is not child
        new_children.append(replacement)

    return schema.replace_children(node, new_children) if changed else node


def _carried_attrs(
    schema: SchemaRegistry, node: Node, type_name: str, attrs: Optional[Mapping[str, Any]]
) -> Dict[str, Any]:
    """``attrs`` plus the attributes of ``node`` that ``type_name`` does not declare."""
    declared = schema.node_type(type_name).attrs
    carried = {name: value for name, value in node.attrs.items() if name not in declared}
    carried.update(attrs or {})
    return carried


def _depth_of(position: ResolvedPosition, type_names: Sequence[str]) -> Optional[int]:
    for depth in range(position.depth, -1, -1):
        if position.node(depth).type_name in type_names:
            return depth
    return None


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------


def add_mark(schema: SchemaRegistry, doc: Node, start: int, end: int, mark: Mark) -> Node:
    """Add ``mark`` to all inline content in ``[start, end)``, replacing same-type marks."""
    if start >= end:
        return doc
    return _map_inline(
        schema, doc, 0, start, end, lambda n: n.with_marks(schema.add_to_mark_set(n.marks, mark))
    )


def remove_mark(schema: SchemaRegistry, doc: Node, start: int, end: int, type_name: str) -> Node:
    """Remove marks of ``type_name`` from all inline content in ``[start, end)``."""
    if start >= end:
        return doc
    return _map_inline(schema, doc, 0, start, end, lambda n: n.with_marks(remove_from_set(n.marks, type_name)))


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


def set_block_type(
    schema: SchemaRegistry,
    doc: Node,
    start: int,
    end: int,
    type_name: str,
    attrs: Optional[Mapping[str, Any]] = None,
) -> Node:
    """
    Retype every textblock touching ``[start, end]`` as ``type_name`` with ``attrs``.

    Blocks whose parent does not allow the new type at their place are left alone.
    Generated heading ids do not repeat ids already used in ``doc``.
    Raises UnknownTypeError for an unregistered ``type_name``.
    """
    descriptor = schema.node_type(type_name)
    if not descriptor.is_textblock:
        logger.debug("%s is not a textblock type", type_name)
        return doc

    taken = {block.attr("id") for _start, block in textblock_starts(doc) if block.attr("id")}

    def _retype(block: Node) -> Node:
        own = block.attr("id")
        carried = _carried_attrs(schema, block, type_name, attrs)
        candidate = schema.instantiate(type_name, carried, block.children, taken_ids=taken - {own})
        if candidate.type_name == block.type_name and dict(candidate.attrs) == dict(block.attrs):
            return block
        taken.discard(own)
        if candidate.attr("id"):
            taken.add(candidate.attr("id"))
        return candidate

    return _map_textblocks(schema, doc, 0, start, end, _retype)


def wrap_in_list(
    schema: SchemaRegistry,
    doc: Node,
    start: int,
    end: int,
    list_type: str,
    attrs: Optional[Mapping[str, Any]] = None,
) -> Node:
    """
    Put the blocks of ``[start, end]`` into a list of ``list_type``.

    Inside a list of the same type the list's attributes are replaced; inside a list
    of the other type the list is converted. Otherwise the sibling paragraphs from
    ``start`` to ``end`` become items of a new list.
    """
    if list_type not in LIST_TYPES:
        raise ValueError(f"Not a list type: {list_type!r}")
    schema.node_type(list_type)

    from_pos = resolve(doc, start)
    if not from_pos.parent.is_textblock:
        return doc

    list_depth = _depth_of(from_pos, LIST_TYPES)
    if list_depth is not None:
        current = from_pos.node(list_depth)
        replacement = schema.instantiate(
            list_type, _carried_attrs(schema, current, list_type, attrs), current.children
        )
        if replacement == current:
            return doc
        return _rebuild(schema, from_pos, list_depth, replacement)

    block_depth = from_pos.depth
    parent_depth = block_depth - 1
    parent = from_pos.node(parent_depth)
    first = from_pos.index(parent_depth)
    last = first

    to_pos = resolve(doc, end)
    if to_pos.depth == block_depth and to_pos.node(parent_depth) is parent and to_pos.parent.is_textblock:
        last = to_pos.index(parent_depth)

    blocks = parent.children[first:last + 1]
    if any(block.type_name != PARAGRAPH for block in blocks):
        logger.debug("Only paragraphs can be wrapped in a list")
        return doc

    items = [schema.instantiate(LIST_ITEM, children=[block]) for block in blocks]
    new_list = schema.instantiate(list_type, attrs, items)

    candidate_types = [c.type_name for c in parent.children]
    candidate_types[first:last + 1] = [list_type]
    if not schema.node_type(parent.type_name).content.matches(candidate_types, schema.is_a):
        return doc
    return _splice(schema, from_pos, parent_depth, first, last + 1, [new_list])


def lift_list_item(schema: SchemaRegistry, doc: Node, start: int, end: int) -> Node:
    """
    Move the list item holding ``start`` one level out.

    A nested item becomes a sibling of its parent item, taking the items after it
    as its own nested list, followed by the blocks that came after the nested list
    in the parent item. A top-level item leaves the list, splitting it.
    """
    from_pos = resolve(doc, start)
    item_depth = _depth_of(from_pos, (LIST_ITEM,))
    if item_depth is None or item_depth < 2:
        return doc

    list_depth = item_depth - 1
    current_list = from_pos.node(list_depth)
    index = from_pos.index(list_depth)
    item = current_list.child(index)
    before = current_list.children[:index]
    after = current_list.children[index + 1:]

    outer_depth = list_depth - 1
    outer = from_pos.node(outer_depth)
    outer_index = from_pos.index(outer_depth)

    if outer.type_name == LIST_ITEM:
        nested_tail: List[Node] = []
        if after:
            tail_attrs = schema.explicit_attrs(current_list)
            nested_tail.append(schema.instantiate(current_list.type_name, tail_attrs, after))
        trailing = list(outer.children[outer_index + 1:])
        lifted = schema.replace_children(item, list(item.children) + nested_tail + trailing)
        outer_children = list(outer.children[:outer_index])
        if before:
            outer_children.append(schema.replace_children(current_list, before))
        new_outer = schema.replace_children(outer, outer_children)
        outer_list_depth = outer_depth - 1
        return _splice(
            schema,
            from_pos,
            outer_list_depth,
            from_pos.index(outer_list_depth),
            from_pos.index(outer_list_depth) + 1,
            [new_outer, lifted],
        )

    replacement: List[Node] = []
    if before:
        replacement.append(schema.replace_children(current_list, before))
    replacement.extend(item.children)
    if after:
        tail_attrs = schema.explicit_attrs(current_list)
        replacement.append(schema.instantiate(current_list.type_name, tail_attrs, after))

    candidate_types = [c.type_name for c in outer.children]
    candidate_types[outer_index:outer_index + 1] = [n.type_name for n in replacement]
    if not schema.node_type(outer.type_name).content.matches(candidate_types, schema.is_a):
        return doc
    return _splice(schema, from_pos, outer_depth, outer_index, outer_index + 1, replacement)


def sink_list_item(schema: SchemaRegistry, doc: Node, start: int, end: int) -> Node:
    """Nest the list item holding ``start`` under its previous sibling."""
    from_pos = resolve(doc, start)
    item_depth = _depth_of(from_pos, (LIST_ITEM,))
    if item_depth is None:
        return doc

    list_depth = item_depth - 1
    current_list = from_pos.node(list_depth)
    index = from_pos.index(list_depth)
    if index == 0:
        logger.debug("First list item has no sibling to sink into")
        return doc

    item = current_list.child(index)
    previous = current_list.child(index - 1)
    last = previous.children[-1]
    if last.type_name == current_list.type_name:
        nested = schema.replace_children(last, list(last.children) + [item])
        new_previous = schema.replace_children(previous, list(previous.children[:-1]) + [nested])
    else:
        nested = schema.instantiate(current_list.type_name, schema.explicit_attrs(current_list), [item])
        new_previous = schema.replace_children(previous, list(previous.children) + [nested])

    return _splice(schema, from_pos, list_depth, index - 1, index + 1, [new_previous])


def insert_inline(schema: SchemaRegistry, doc: Node, start: int, end: int, node: Node) -> Node:
    """
    Replace ``[start, end]`` with the inline ``node``, inheriting the marks at ``start``.

    Applies only when both ends lie in the same textblock and that block accepts the
    node's type.
    """
    from_pos = resolve(doc, start)
    to_pos = resolve(doc, end)
    block = from_pos.parent
    if not block.is_textblock or to_pos.parent is not block or from_pos.start() != to_pos.start():
        return doc
    if not schema.node_type(block.type_name).content.accepts(node.type_name, schema.is_a):
        logger.debug("%s does not accept %s", block.type_name, node.type_name)
        return doc

    node = node.with_marks(schema.mark_set(from_pos.marks(schema.inclusive_map())))
    rel_from, rel_to = from_pos.parent_offset, to_pos.parent_offset
    children: List[Node] = []
    inserted = False
    for offset, child in block.child_offsets():
        child_end = offset + child.node_size
        if child_end <= rel_from:
            children.append(child)
            continue
        if offset >= rel_to:
            if not inserted:
                children.append(node)
                inserted = True
            children.append(child)
            continue
        if child.is_text and offset < rel_from:
            children.append(child.cut(0, rel_from - offset))
        if not inserted:
            children.append(node)
            inserted = True
        if child.is_text and child_end > rel_to:
            children.append(child.cut(rel_to - offset))
    if not inserted:
        children.append(node)

    return _rebuild(schema, from_pos, from_pos.depth, schema.replace_children(block, children))


# ---------------------------------------------------------------------------
# Selection mapping
# ---------------------------------------------------------------------------


def textblock_coordinates(doc: Node, pos: int) -> Optional[Tuple[int, int]]:
    """(textblock ordinal, offset inside it) for ``pos``, or None between blocks."""
    for ordinal, (start, block) in enumerate(textblock_starts(doc)):
        if start <= pos <= start + block.content_size:
            return ordinal, pos - start
    return None


def position_from_coordinates(doc: Node, coordinates: Tuple[int, int]) -> int:
    """Inverse of textblock_coordinates, clamped to the document."""
    starts = textblock_starts(doc)
    if not starts:
        return 0
    ordinal, offset = coordinates
    start, block = starts[min(max(ordinal, 0), len(starts) - 1)]
    return start + min(max(offset, 0), block.content_size)
