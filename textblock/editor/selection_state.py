"""
Selection state: what applies at the current selection.

A pure read over (doc, selection); nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from textblock.model.enums import MarkTypeName, NodeTypeName
from textblock.model.node import Node, find_mark
from textblock.model.position import ResolvedPosition, range_fully_has_mark, resolve
from textblock.model.selection import Selection, SelectionState, selection_bounds
from textblock.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

_BUILTIN_MARKS = frozenset(m.value for m in MarkTypeName)
_LIST_TYPES = (NodeTypeName.ORDERED_LIST.value, NodeTypeName.BULLETED_LIST.value)


class SelectionStateComputer:
    def __init__(self, schema: SchemaRegistry) -> None:
        self.schema = schema

    def compute(self, doc: Node, selection: Optional[Selection]) -> SelectionState:
        """
        Derive the SelectionState for ``selection``.

        Mark flags are true only when the mark covers every text node of the range.
        A collapsed selection looks one offset back so a cursor right after marked
        text reports the mark. Missing or out-of-range selections yield an empty state.
        """
        if selection is None:
            return SelectionState()

        start, end = selection_bounds(selection)
        if start < 0 or end > doc.content_size:
            logger.debug("Selection %r outside document of size %d", selection, doc.content_size)
            return SelectionState()

        anchor = resolve(doc, selection.anchor)
        block = anchor.parent

        check_from = max(0, start - 1) if start == end else start
        flags: Dict[str, bool] = {
            name: range_fully_has_mark(doc, check_from, end, name)
            for name in self.schema.list_mark_types()
        }

        styles = block.attr("styles") or {}
        alignment = styles.get("alignment")
        appearance = styles.get("appearance")
        nearest_list = self._nearest_list(anchor)

        return SelectionState(
            block=self._block_name(anchor),
            ordered_list=nearest_list == NodeTypeName.ORDERED_LIST.value,
            bulleted_list=nearest_list == NodeTypeName.BULLETED_LIST.value,
            bold=flags.get("bold", False),
            italic=flags.get("italic", False),
            underlined=flags.get("underlined", False),
            highlighted=flags.get("highlighted", False),
            striked=flags.get("striked", False),
            code=flags.get("code", False),
            color=flags.get("color", False),
            hyperlink=flags.get("hyperlink", False),
            color_key=self.color_key(doc, start),
            alignment=dict(alignment) if isinstance(alignment, dict) else None,
            appearance=appearance if isinstance(appearance, str) else None,
            extra_marks={k: v for k, v in flags.items() if k not in _BUILTIN_MARKS},
        )

    @staticmethod
    def _block_name(anchor: ResolvedPosition) -> str:
        # The leading paragraph of a list item reports the item itself.
        block = anchor.parent
        if (
            anchor.depth >= 1
            and block.type_name == NodeTypeName.PARAGRAPH.value
            and anchor.node(anchor.depth - 1).type_name == NodeTypeName.LIST_ITEM.value
            and anchor.index(anchor.depth - 1) == 0
        ):
            return NodeTypeName.LIST_ITEM.value
        return block.type_name

    @staticmethod
    def _nearest_list(anchor: ResolvedPosition) -> Optional[str]:
        for node in anchor.ancestors():
            if node.type_name in _LIST_TYPES:
                return node.type_name
        return None

    def color_key(self, doc: Node, offset: int) -> Optional[str]:
        """Color key of the color mark applying at ``offset``, if any."""
        try:
            position = resolve(doc, offset)
        except ValueError:
            return None
        mark = find_mark(position.marks(self.schema.inclusive_map()), MarkTypeName.COLOR.value)
        return mark.attr("colorKey") if mark is not None else None
