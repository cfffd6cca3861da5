"""
Default text block schema.

Registers the fixed node table (text, paragraph, formatted, ordered_list,
bulleted_list, list_item, heading1..heading6, quote, break, property, doc) and the
mark table (bold, italic, underlined, highlighted, striked, code, color, hyperlink)
together with their output (to_dom) and input (parse_dom) rules.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from textblock.model.enums import HEADING_TYPES, HyperlinkTarget, MarkTypeName, NodeTypeName
from textblock.model.node import Mark, Node
from textblock.schema.registry import REQUIRED, AttributeSpec, DomSpec, ParseRule, SchemaRegistry

logger = logging.getLogger(__name__)

HEADING_ID_STRATEGIES = ("slug", "random")

POPUP_TRIGGER = "popup"
URL_TARGET_PREFIX = "urls/"
POPUP_TARGET_PREFIX = "popups/"
EXTERNAL_LINK_REL = "noopener noreferrer"

_SLUG_SEPARATOR_RE = re.compile(r"[\W_]+", re.UNICODE)

_STR = (str,)


def slugify(text: str) -> str:
    """Lowercase ``text`` and collapse runs of non-alphanumerics into ``-``."""
    return _SLUG_SEPARATOR_RE.sub("-", text.lower()).strip("-")


def random_identifier(prefix: str = "heading") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def heading_identifier_rule(strategy: str = "slug") -> Callable[[Sequence[Node]], str]:
    """Build the id generator used for headings created without an ``id``."""
    if strategy not in HEADING_ID_STRATEGIES:
        raise ValueError(f"Unknown heading id strategy {strategy!r}, expected one of {HEADING_ID_STRATEGIES}")

    def _rule(children: Sequence[Node]) -> str:
        if strategy == "slug":
            slug = slugify("".join(child.text_content for child in children))
            if slug:
                return slug
        return random_identifier()

    return _rule


# ---------------------------------------------------------------------------
# Block nodes
# ---------------------------------------------------------------------------


def _block_attrs() -> Dict[str, AttributeSpec]:
    return {
        "id": AttributeSpec(None, _STR),
        "className": AttributeSpec(None, _STR),
        "styles": AttributeSpec(None, (dict,)),
    }


def _block_to_dom(tag: str) -> Callable[[Node], DomSpec]:
    def _to_dom(node: Node) -> DomSpec:
        properties: Dict[str, Any] = {}
        if node.attr("id"):
            properties["id"] = node.attr("id")
        if node.attr("className"):
            properties["class"] = node.attr("className")
        return [tag, properties, 0]

    return _to_dom


def _heading_attrs(element: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    return {"id": element.get("id") or None}


def _ordered_list_attrs(element: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    start = element.get("start")
    try:
        return {"order": int(start) if start is not None else 1}
    except ValueError:
        logger.debug("Ignoring non-numeric ordered list start %r", start)
        return {"order": 1}


def _ordered_list_to_dom(node: Node) -> DomSpec:
    order = node.attr("order", 1)
    return ["ol", 0] if order == 1 else ["ol", {"start": order}, 0]


def _bulleted_list_to_dom(node: Node) -> DomSpec:
    properties: Dict[str, Any] = {}
    if node.attr("className"):
        properties["class"] = node.attr("className")
    return ["ul", properties, 0]


def _property_to_dom(node: Node) -> DomSpec:
    return ["property", {"name": node.attr("name"), "placeholder": node.attr("placeholder")}]


def _property_attrs(element: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    return {"name": element.get("name"), "placeholder": element.get("placeholder")}


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------


def _simple_mark(tag: str) -> Callable[[Mark, bool], DomSpec]:
    def _to_dom(mark: Mark, inline: bool) -> DomSpec:
        return [tag]

    return _to_dom


def _color_to_dom(mark: Mark, inline: bool) -> DomSpec:
    return ["span", {"class": mark.attr("colorClass")}]


def hyperlink_to_dom(mark: Mark, inline: bool = True) -> DomSpec:
    """Output attributes of a hyperlink, branching on its ``target``."""
    target = mark.attr("target")
    target_key = mark.attr("targetKey") or ""

    if target == HyperlinkTarget.POPUP.value:
        properties = {
            "data-toggle": POPUP_TRIGGER,
            "data-target": "#" + target_key.replace(POPUP_TARGET_PREFIX, "popups"),
            "data-trigger-event": mark.attr("triggerEvent"),
            "href": "javascript:void(0)",
        }
    elif target == HyperlinkTarget.DOWNLOAD.value:
        # Empty unless a file name gets specified.
        properties = {"href": mark.attr("href"), "download": ""}
    else:
        anchor = mark.attr("anchor")
        properties = {
            "href": f"{mark.attr('href') or ''}{'#' + anchor if anchor else ''}",
            "target": target,
            "rel": EXTERNAL_LINK_REL if target_key.startswith(URL_TARGET_PREFIX) else None,
        }
    return ["a", properties]


def hyperlink_attrs(element: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    """Inverse of hyperlink_to_dom for an ``<a>`` element."""
    if element.get("data-toggle") == POPUP_TRIGGER:
        key = (element.get("data-target") or "").lstrip("#")
        if key.startswith("popups") and not key.startswith(POPUP_TARGET_PREFIX):
            key = POPUP_TARGET_PREFIX + key[len("popups"):]
        return {
            "target": HyperlinkTarget.POPUP.value,
            "targetKey": key or None,
            "triggerEvent": element.get("data-trigger-event"),
        }

    if "download" in element:
        return {"href": element.get("href"), "target": HyperlinkTarget.DOWNLOAD.value}

    href = element.get("href") or ""
    anchor = None
    if "#" in href:
        href, anchor = href.split("#", 1)
    return {
        "href": href or None,
        "anchor": anchor or None,
        "target": element.get("target"),
    }


HYPERLINK_ATTRS = (
    "href",
    "anchor",
    "anchorName",
    "targetKey",
    "target",
    "triggerEvent",
    "download",
    "rel",
)


def build_schema(config: Optional[Mapping[str, Any]] = None) -> SchemaRegistry:
    """
    Build a fresh registry with the default node and mark types.

    Args:
        config: Mapping as returned by ``textblock.load_config``; only
            ``heading_id_strategy`` is read here.
    """
    strategy = (config or {}).get("heading_id_strategy", "slug")
    schema = SchemaRegistry()
    N = NodeTypeName

    schema.register_node_type(N.TEXT.value, group="inline")

    for name, tag in ((N.PARAGRAPH, "p"), (N.FORMATTED, "pre")):
        schema.register_node_type(
            name.value, "inline*", _block_attrs(), _block_to_dom(tag), [ParseRule(tag)], group="block"
        )

    schema.register_node_type(
        N.ORDERED_LIST.value,
        "list_item+",
        {"order": AttributeSpec(1, (int,))},
        _ordered_list_to_dom,
        [ParseRule("ol", _ordered_list_attrs)],
        group="block",
    )
    schema.register_node_type(
        N.BULLETED_LIST.value,
        "list_item+",
        {"className": AttributeSpec(None, _STR), "styles": AttributeSpec(None, (dict,))},
        _bulleted_list_to_dom,
        [ParseRule("ul")],
        group="block",
    )
    schema.register_node_type(
        N.LIST_ITEM.value,
        "paragraph block*",
        to_dom=lambda node: ["li", 0],
        parse_dom=[ParseRule("li")],
        defining=True,
    )

    identifier_rule = heading_identifier_rule(strategy)
    for heading in HEADING_TYPES:
        tag = f"h{heading.value[-1]}"
        schema.register_node_type(
            heading.value,
            "inline*",
            _block_attrs(),
            _block_to_dom(tag),
            [ParseRule(tag, _heading_attrs)],
            group="block",
            identifier_rule=identifier_rule,
        )

    schema.register_node_type(
        N.QUOTE.value, "inline*", _block_attrs(), _block_to_dom("blockquote"),
        [ParseRule("blockquote")], group="block",
    )
    schema.register_node_type(
        N.BREAK.value,
        to_dom=lambda node: ["br"],
        parse_dom=[ParseRule("br")],
        group="inline",
        inline=True,
        selectable=False,
    )
    schema.register_node_type(
        N.PROPERTY.value,
        attrs={"name": AttributeSpec(None, _STR), "placeholder": AttributeSpec(None, _STR)},
        to_dom=_property_to_dom,
        parse_dom=[ParseRule("property", _property_attrs)],
        group="inline",
        inline=True,
        selectable=False,
    )
    schema.register_node_type(N.DOC.value, "block+")

    M = MarkTypeName
    for name, tag in (
        (M.BOLD, "b"),
        (M.ITALIC, "i"),
        (M.UNDERLINED, "u"),
        (M.HIGHLIGHTED, "mark"),
        (M.STRIKED, "strike"),
        (M.CODE, "code"),
    ):
        schema.register_mark_type(name.value, to_dom=_simple_mark(tag), parse_dom=[ParseRule(tag)])

    schema.register_mark_type(
        M.COLOR.value,
        {
            "colorKey": AttributeSpec(REQUIRED, _STR),
            "colorClass": AttributeSpec(REQUIRED, (str, type(None))),
        },
        _color_to_dom,
    )
    schema.register_mark_type(
        M.HYPERLINK.value,
        {name: AttributeSpec(None, _STR) for name in HYPERLINK_ATTRS},
        hyperlink_to_dom,
        [ParseRule("a", hyperlink_attrs)],
        inclusive=False,
    )

    logger.info(
        "Default schema built: %d node types, %d mark types (heading ids: %s)",
        len(schema.list_node_types()),
        len(schema.list_mark_types()),
        strategy,
    )
    return schema
