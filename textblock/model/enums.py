"""
model/enums.py

(Кратко RU: перечисления типов узлов, меток и ключей стилей текстового блока.)

EN: Domain enums for the text block document model: node and mark type names,
node kinds, hyperlink targets, alignment style keys and viewports.
No tree logic here.
"""

from __future__ import annotations

from enum import Enum
from typing import Final, Tuple


class NodeKind(str, Enum):
    """Structural role of a node type, derived from its descriptor."""

    TEXT = "text"
    INLINE_LEAF = "inline_leaf"  # break, property: one position, no content
    TEXTBLOCK = "textblock"  # content model accepts inline content
    CONTAINER = "container"  # holds blocks (doc, lists, list items)

    @property
    def is_inline(self) -> bool:
        return self in {NodeKind.TEXT, NodeKind.INLINE_LEAF}


class NodeTypeName(str, Enum):
    TEXT = "text"
    PARAGRAPH = "paragraph"
    FORMATTED = "formatted"
    ORDERED_LIST = "ordered_list"
    BULLETED_LIST = "bulleted_list"
    LIST_ITEM = "list_item"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    HEADING4 = "heading4"
    HEADING5 = "heading5"
    HEADING6 = "heading6"
    QUOTE = "quote"
    BREAK = "break"
    PROPERTY = "property"
    DOC = "doc"

    @property
    def is_heading(self) -> bool:
        return self.value.startswith("heading")


HEADING_TYPES: Final[Tuple[NodeTypeName, ...]] = tuple(
    t for t in NodeTypeName if t.is_heading
)


class MarkTypeName(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINED = "underlined"
    HIGHLIGHTED = "highlighted"
    STRIKED = "striked"
    CODE = "code"
    COLOR = "color"
    HYPERLINK = "hyperlink"


class HyperlinkTarget(str, Enum):
    """Hyperlink ``target`` discriminator used by the hyperlink mark serializer."""

    BLANK = "_blank"
    SELF = "_self"
    POPUP = "_popup"
    DOWNLOAD = "_download"


class AlignmentStyleKey(str, Enum):
    LEFT = "utils/text/alignLeft"
    CENTER = "utils/text/alignCenter"
    RIGHT = "utils/text/alignRight"
    JUSTIFY = "utils/text/justify"


class Viewport(str, Enum):
    XS = "xs"
    SM = "sm"
    MD = "md"
    LG = "lg"
    XL = "xl"
