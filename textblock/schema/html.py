"""
HTML projection of document trees.

HtmlSerializer renders the descriptors' output specs; HtmlParser rebuilds a ``doc``
from markup through the descriptors' parse rules. Output specs are sequences of the
form ``[tag]``, ``[tag, attrs]``, ``[tag, 0]`` or ``[tag, attrs, 0]`` where ``0``
marks the hole that receives the node's content; child specs may be nested in place
of the hole.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from textblock.model.enums import NodeKind
from textblock.model.node import Mark, Node
from textblock.schema.registry import AttributeSpec, DomSpec, SchemaError, SchemaRegistry

logger = logging.getLogger(__name__)

VOID_TAGS = frozenset({"br", "hr", "img", "input", "meta", "link", "wbr"})

_HOLE = "\x00"


def _render_attrs(attrs: Mapping[str, Any]) -> str:
    parts = []
    for name, value in attrs.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(str(value), quote=True)}"')
    return "".join(parts)


def _render(spec: Union[DomSpec, str], content: str) -> Tuple[str, bool]:
    if isinstance(spec, str):
        return html.escape(spec, quote=False), False

    tag = spec[0]
    rest = list(spec[1:])
    attrs: Mapping[str, Any] = {}
    if rest and isinstance(rest[0], Mapping):
        attrs = rest.pop(0)

    opening = f"<{tag}{_render_attrs(attrs)}>"
    if tag in VOID_TAGS and not rest and not content:
        return opening, False

    inner: List[str] = []
    used_hole = False
    for item in rest:
        if item == 0:
            inner.append(content)
            used_hole = True
        else:
            rendered, hole = _render(item, content)
            inner.append(rendered)
            used_hole = used_hole or hole
    return f"{opening}{''.join(inner)}</{tag}>", used_hole


def render_dom_spec(spec: DomSpec, content: str = "") -> str:
    """
    Render an output spec to HTML, placing ``content`` at the hole.

    Specs without a hole (mark specs) wrap ``content`` in their outermost element.
    """
    rendered, used_hole = _render(spec, content)
    if content and not used_hole:
        tag = spec[0]
        closing = f"</{tag}>"
        if rendered.endswith(closing):
            rendered = rendered[: -len(closing)] + content + closing
        else:
            rendered = rendered + content + closing
    return rendered


def _without_defaults(specs: Mapping[str, AttributeSpec], attrs: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop parsed values that only restate a declared default."""
    return {
        name: value
        for name, value in attrs.items()
        if name not in specs or not specs[name].has_default or value != specs[name].default
    }


class HtmlSerializer:
    """Render nodes to HTML using the registry's output rules."""

    def __init__(self, schema: SchemaRegistry) -> None:
        self.schema = schema

    def serialize_fragment(self, nodes: Sequence[Node]) -> str:
        if nodes and all(node.is_inline for node in nodes):
            return self._serialize_inline(nodes)
        return "".join(self.serialize_node(node) for node in nodes)

    def serialize_node(self, node: Node) -> str:
        if node.is_inline:
            return self._serialize_inline([node])
        descriptor = self.schema.node_type(node.type_name)
        if descriptor.to_dom is None:
            raise SchemaError(f"Node type {node.type_name!r} has no serialization rule")
        if node.is_textblock:
            content = self._serialize_inline(node.children)
        else:
            content = "".join(self.serialize_node(child) for child in node.children)
        return render_dom_spec(descriptor.to_dom(node), content)

    def _mark_tags(self, mark: Mark) -> Tuple[str, str]:
        descriptor = self.schema.mark_type(mark.type_name)
        if descriptor.to_dom is None:
            raise SchemaError(f"Mark type {mark.type_name!r} has no serialization rule")
        opening, _, closing = render_dom_spec(descriptor.to_dom(mark, True), _HOLE).partition(_HOLE)
        return opening, closing

    def _serialize_leaf(self, node: Node) -> str:
        if node.is_text:
            return html.escape(node.text or "", quote=False)
        descriptor = self.schema.node_type(node.type_name)
        if descriptor.to_dom is None:
            raise SchemaError(f"Node type {node.type_name!r} has no serialization rule")
        return render_dom_spec(descriptor.to_dom(node))

    def _serialize_inline(self, nodes: Sequence[Node]) -> str:
        # Marks stay open across siblings sharing a prefix of the (rank-ordered) mark set.
        parts: List[str] = []
        active: List[Tuple[Mark, str]] = []
        for node in nodes:
            keep = 0
            while keep < len(active) and keep < len(node.marks) and active[keep][0] == node.marks[keep]:
                keep += 1
            while len(active) > keep:
                parts.append(active.pop()[1])
            for mark in node.marks[keep:]:
                opening, closing = self._mark_tags(mark)
                parts.append(opening)
                active.append((mark, closing))
            parts.append(self._serialize_leaf(node))
        while active:
            parts.append(active.pop()[1])
        return "".join(parts)


@dataclass
class _Element:
    tag: str
    attrs: Dict[str, Optional[str]] = field(default_factory=dict)
    children: List[Union["_Element", str]] = field(default_factory=list)


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = _Element("#root")
        self._stack: List[_Element] = [self.root]

    def handle_starttag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        element = _Element(tag, dict(attrs))
        self._stack[-1].children.append(element)
        if tag not in VOID_TAGS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: List[Tuple[str, Optional[str]]]) -> None:
        self._stack[-1].children.append(_Element(tag, dict(attrs)))

    def handle_endtag(self, tag: str) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].tag == tag:
                del self._stack[depth:]
                return
        logger.debug("Ignoring unmatched closing tag </%s>", tag)

    def handle_data(self, data: str) -> None:
        if data:
            self._stack[-1].children.append(data)


class HtmlParser:
    """
    Build a ``doc`` node from HTML using the registry's parse rules.

    Elements without a matching rule are transparent (their content is kept).
    Inline content met where blocks are expected is wrapped in a paragraph.
    """

    def __init__(self, schema: SchemaRegistry, default_block: str = "paragraph") -> None:
        self.schema = schema
        self.default_block = default_block
        self._taken_ids: Set[str] = set()

    def parse(self, markup: str) -> Node:
        """Parse ``markup``; generated heading ids are unique within the result."""
        self._taken_ids = set()
        builder = _TreeBuilder()
        builder.feed(markup or "")
        builder.close()
        children = self._fit("doc", self._collect(builder.root.children, ()))
        if not children:
            children = [self.schema.instantiate(self.default_block)]
        return self.schema.instantiate("doc", children=children)

    def _match_node(self, element: _Element) -> Optional[Tuple[str, Dict[str, Any]]]:
        for descriptor in self.schema.node_types():
            for rule in descriptor.parse_dom:
                attrs = rule.match(element.tag, element.attrs)
                if attrs is not None:
                    return descriptor.name, _without_defaults(descriptor.attrs, attrs)
        return None

    def _match_mark(self, element: _Element) -> Optional[Mark]:
        for descriptor in self.schema.mark_types():
            for rule in descriptor.parse_dom:
                attrs = rule.match(element.tag, element.attrs)
                if attrs is not None:
                    return self.schema.mark(descriptor.name, _without_defaults(descriptor.attrs, attrs))
        return None

    def _collect(self, items: Sequence[Union[_Element, str]], marks: Tuple[Mark, ...]) -> List[Node]:
        result: List[Node] = []
        for item in items:
            if isinstance(item, str):
                result.append(self.schema.text(item, marks))
                continue

            matched = self._match_node(item)
            if matched is not None:
                name, attrs = matched
                descriptor = self.schema.node_type(name)
                if descriptor.kind is NodeKind.INLINE_LEAF:
                    result.append(self.schema.instantiate(name, attrs, marks=marks))
                elif descriptor.kind is NodeKind.TEXTBLOCK:
                    inline = [n for n in self._collect(item.children, ()) if n.is_inline]
                    block = self.schema.instantiate(name, attrs, inline, taken_ids=self._taken_ids)
                    if block.attr("id"):
                        self._taken_ids.add(block.attr("id"))
                    result.append(block)
                else:
                    children = self._fit(name, self._collect(item.children, ()))
                    result.append(self.schema.instantiate(name, attrs, children))
                continue

            mark = self._match_mark(item)
            if mark is not None:
                result.extend(self._collect(item.children, self.schema.add_to_mark_set(marks, mark)))
                continue

            logger.debug("No parse rule for <%s>, keeping its content", item.tag)
            result.extend(self._collect(item.children, marks))
        return result

    def _fit(self, container: str, nodes: Sequence[Node]) -> List[Node]:
        """Shape parsed nodes to what ``container`` accepts."""
        descriptor = self.schema.node_type(container)
        blocks: List[Node] = []
        pending: List[Node] = []

        def _flush() -> None:
            if any(not (n.is_text and not (n.text or "").strip()) for n in pending):
                blocks.append(self.schema.instantiate(self.default_block, children=pending))
            pending.clear()

        for node in nodes:
            if node.is_inline:
                pending.append(node)
            else:
                _flush()
                blocks.append(node)
        _flush()

        if descriptor.content.accepts("list_item", self.schema.is_a):
            blocks = [
                block if block.type_name == "list_item" else self._list_item(block)
                for block in blocks
            ]
        elif container == "list_item" and (not blocks or blocks[0].type_name != self.default_block):
            blocks.insert(0, self.schema.instantiate(self.default_block))
        return blocks

    def _list_item(self, block: Node) -> Node:
        children = [block] if block.type_name == self.default_block else [
            self.schema.instantiate(self.default_block),
            block,
        ]
        return self.schema.instantiate("list_item", children=children)
