"""
Editing commands.

Module-level functions are pure: ``(schema, doc, selection, ...) -> new doc`` or None
when the command does not apply. CommandDispatcher owns the single current document
snapshot and selection, runs commands against them and notifies the host.

Commands never raise for a missing or unusable selection; they return None (pure
functions) or False (dispatcher) and leave the document untouched.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from textblock.editor import transform
from textblock.editor.converter import ModelConverter, blocks_to_document, document_to_blocks
from textblock.editor.mark_range import MarkRangeResolver
from textblock.editor.selection_state import SelectionStateComputer
from textblock.editor.styles import StyleResolver
from textblock.model.enums import AlignmentStyleKey, MarkTypeName, NodeTypeName, Viewport
from textblock.model.node import Node, find_mark
from textblock.model.position import range_fully_has_mark, resolve
from textblock.model.selection import Cursor, Range, Selection, SelectionState, selection_bounds
from textblock.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_VIEWPORT = Viewport.XS.value
DEFAULT_BULLETED_LIST_STYLE_KEY = "globals/ul/default"

StateListener = Callable[[List[Dict[str, Any]]], None]


def valid_bounds(doc: Node, selection: Optional[Selection]) -> Optional[Tuple[int, int]]:
    """Selection bounds, or None when there is no selection or it lies outside ``doc``."""
    if selection is None:
        return None
    start, end = selection_bounds(selection)
    if start < 0 or end > doc.content_size:
        logger.debug("Selection %r outside document of size %d", selection, doc.content_size)
        return None
    return start, end


def mark_target(
    schema: SchemaRegistry, doc: Node, selection: Optional[Selection], mark_type: str
) -> Optional[Range]:
    """The range a mark command acts on: the selection, or the mark's run at a cursor."""
    bounds = valid_bounds(doc, selection)
    if bounds is None:
        return None
    start, end = bounds
    if start != end:
        return Range(start, end)
    return MarkRangeResolver(schema).locate(doc, start, mark_type)


def _changed(doc: Node, new_doc: Node) -> Optional[Node]:
    return None if new_doc is doc or new_doc == doc else new_doc


def toggle_mark(
    schema: SchemaRegistry,
    doc: Node,
    selection: Optional[Selection],
    mark_type: str,
    attrs: Optional[Mapping[str, Any]] = None,
) -> Optional[Node]:
    """
    Remove ``mark_type`` when the whole target range carries it, otherwise add it
    with ``attrs`` across the range. A cursor acts on the run located around it.
    """
    target = mark_target(schema, doc, selection, mark_type)
    if target is None or target.empty:
        return None
    if range_fully_has_mark(doc, target.from_, target.to, mark_type):
        return _changed(doc, transform.remove_mark(schema, doc, target.from_, target.to, mark_type))
    mark = schema.mark(mark_type, attrs)
    return _changed(doc, transform.add_mark(schema, doc, target.from_, target.to, mark))


def update_mark(
    schema: SchemaRegistry,
    doc: Node,
    selection: Optional[Selection],
    mark_type: str,
    attrs: Mapping[str, Any],
) -> Optional[Node]:
    """Set ``mark_type`` with ``attrs`` on the target range, replacing earlier attributes."""
    target = mark_target(schema, doc, selection, mark_type)
    if target is None or target.empty:
        return None
    mark = schema.mark(mark_type, attrs)
    return _changed(doc, transform.add_mark(schema, doc, target.from_, target.to, mark))


def clear_mark(
    schema: SchemaRegistry, doc: Node, selection: Optional[Selection], mark_type: str
) -> Optional[Node]:
    target = mark_target(schema, doc, selection, mark_type)
    if target is None or target.empty:
        return None
    return _changed(doc, transform.remove_mark(schema, doc, target.from_, target.to, mark_type))


def set_block_type_command(
    schema: SchemaRegistry,
    doc: Node,
    selection: Optional[Selection],
    type_name: str,
    attrs: Optional[Mapping[str, Any]] = None,
) -> Optional[Node]:
    bounds = valid_bounds(doc, selection)
    if bounds is None:
        return None
    return _changed(doc, transform.set_block_type(schema, doc, bounds[0], bounds[1], type_name, attrs))


def wrap_in_list_command(
    schema: SchemaRegistry,
    doc: Node,
    selection: Optional[Selection],
    list_type: str,
    attrs: Optional[Mapping[str, Any]] = None,
) -> Optional[Node]:
    bounds = valid_bounds(doc, selection)
    if bounds is None:
        return None
    return _changed(doc, transform.wrap_in_list(schema, doc, bounds[0], bounds[1], list_type, attrs))


class CommandDispatcher:
    """
    Runs editing commands against the current document snapshot.

    Args:
        schema: Registry the document was built with.
        styles: Style-resolution collaborator.
        doc: Initial ``doc`` node.
        selection: Initial selection, if any.
        config: Mapping as returned by ``textblock.load_config``.
        on_state_change: Called with the external blocks after every change.

    Style commands (alignment, text style, bulleted list style) await the style
    collaborator. Each takes a ticket; when a newer style command was issued in the
    meantime its result is dropped, otherwise it re-reads the current document and
    selection before applying.
    """

    COMMANDS = (
        "toggle_mark",
        "toggle_bold",
        "toggle_italic",
        "toggle_underlined",
        "toggle_highlighted",
        "toggle_striked",
        "toggle_code",
        "set_color",
        "remove_color",
        "set_hyperlink",
        "remove_hyperlink",
        "set_block_type",
        "toggle_paragraph",
        "toggle_heading",
        "toggle_quote",
        "toggle_formatted",
        "wrap_in_list",
        "toggle_ordered_list",
        "toggle_bulleted_list",
        "increase_indent",
        "decrease_indent",
        "insert_property",
        "set_alignment",
        "align_left",
        "align_center",
        "align_right",
        "justify",
        "set_text_style",
    )

    def __init__(
        self,
        schema: SchemaRegistry,
        styles: StyleResolver,
        doc: Node,
        selection: Optional[Selection] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        on_state_change: Optional[StateListener] = None,
    ) -> None:
        self.schema = schema
        self.styles = styles
        self.config: Dict[str, Any] = dict(config or {})
        self.on_state_change = on_state_change
        self.converter = ModelConverter.from_config(self.config)
        self.mark_ranges = MarkRangeResolver(schema)
        self.selection_states = SelectionStateComputer(schema)
        self._doc = doc
        self._selection = selection
        self._style_ticket = 0

    @classmethod
    def from_blocks(
        cls,
        schema: SchemaRegistry,
        styles: StyleResolver,
        blocks: Sequence[Mapping[str, Any]],
        selection: Optional[Selection] = None,
        **kwargs: Any,
    ) -> CommandDispatcher:
        converter = ModelConverter.from_config(kwargs.get("config"))
        return cls(schema, styles, blocks_to_document(schema, blocks, converter), selection, **kwargs)

    # ------------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------------

    @property
    def doc(self) -> Node:
        return self._doc

    @property
    def selection(self) -> Optional[Selection]:
        return self._selection

    def set_selection(self, selection: Optional[Selection]) -> None:
        self._selection = selection

    def get_state(self) -> List[Dict[str, Any]]:
        """The current document as external blocks."""
        return document_to_blocks(self.schema, self._doc, self.converter)

    def set_state(self, blocks: Sequence[Mapping[str, Any]]) -> None:
        """Replace the document; a selection that no longer fits is dropped."""
        self._doc = blocks_to_document(self.schema, blocks, self.converter)
        if valid_bounds(self._doc, self._selection) is None:
            self._selection = None

    def get_selection_state(self) -> SelectionState:
        return self.selection_states.compute(self._doc, self._selection)

    def execute(self, command: str, *args: Any, **kwargs: Any) -> Any:
        """Run a command by name; async commands return their coroutine."""
        if command not in self.COMMANDS:
            raise ValueError(f"Unknown command: {command!r}")
        return getattr(self, command)(*args, **kwargs)

    def _apply(self, command: str, new_doc: Optional[Node], selection: Optional[Selection] = None) -> bool:
        if new_doc is None:
            logger.debug("%s: nothing to do", command)
            return False

        if selection is None:
            selection = self._map_selection(self._doc, new_doc, self._selection)
        self._doc = new_doc
        self._selection = selection
        logger.info("Applied %s", command)

        if self.on_state_change is not None:
            self.on_state_change(self.get_state())
        return True

    @staticmethod
    def _map_selection(old: Node, new: Node, selection: Optional[Selection]) -> Optional[Selection]:
        if selection is None:
            return None

        def _map(pos: int) -> int:
            coordinates = transform.textblock_coordinates(old, pos)
            if coordinates is None:
                return min(pos, new.content_size)
            return transform.position_from_coordinates(new, coordinates)

        if isinstance(selection, Cursor):
            return Cursor(_map(selection.at))
        start, end = _map(selection.from_), _map(selection.to)
        return Range(min(start, end), max(start, end))

    # ------------------------------------------------------------------------
    # Marks
    # ------------------------------------------------------------------------

    def toggle_mark(self, mark_type: str, attrs: Optional[Mapping[str, Any]] = None) -> bool:
        return self._apply(
            f"toggle_mark({mark_type})",
            toggle_mark(self.schema, self._doc, self._selection, mark_type, attrs),
        )

    def toggle_bold(self) -> bool:
        return self.toggle_mark(MarkTypeName.BOLD.value)

    def toggle_italic(self) -> bool:
        return self.toggle_mark(MarkTypeName.ITALIC.value)

    def toggle_underlined(self) -> bool:
        return self.toggle_mark(MarkTypeName.UNDERLINED.value)

    def toggle_highlighted(self) -> bool:
        return self.toggle_mark(MarkTypeName.HIGHLIGHTED.value)

    def toggle_striked(self) -> bool:
        return self.toggle_mark(MarkTypeName.STRIKED.value)

    def toggle_code(self) -> bool:
        return self.toggle_mark(MarkTypeName.CODE.value)

    def set_color(self, color_key: str) -> bool:
        if not color_key:
            return False
        class_name = self.styles.get_class_name_by_color_key(color_key)
        attrs = {"colorKey": color_key, "colorClass": class_name}
        return self._apply(
            "set_color",
            update_mark(self.schema, self._doc, self._selection, MarkTypeName.COLOR.value, attrs),
        )

    def get_color(self) -> Optional[str]:
        bounds = valid_bounds(self._doc, self._selection)
        if bounds is None:
            return None
        return self.selection_states.color_key(self._doc, bounds[0])

    def remove_color(self) -> bool:
        return self._apply(
            "remove_color",
            clear_mark(self.schema, self._doc, self._selection, MarkTypeName.COLOR.value),
        )

    def set_hyperlink(self, hyperlink: Optional[Mapping[str, Any]]) -> bool:
        if not hyperlink or not (hyperlink.get("href") or hyperlink.get("targetKey")):
            logger.debug("set_hyperlink: neither href nor targetKey given")
            return False
        return self._apply(
            "set_hyperlink",
            update_mark(self.schema, self._doc, self._selection, MarkTypeName.HYPERLINK.value, hyperlink),
        )

    def get_hyperlink(self) -> Optional[Dict[str, Any]]:
        """Attributes of the hyperlink at the selection anchor, if any."""
        bounds = valid_bounds(self._doc, self._selection)
        if bounds is None:
            return None
        position = resolve(self._doc, self._selection.anchor)  # type: ignore[union-attr]
        child, _index, _start = position.parent.child_after(position.parent_offset)
        if child is None:
            return None
        mark = find_mark(child.marks, MarkTypeName.HYPERLINK.value)
        return dict(mark.attrs) if mark is not None else None

    def remove_hyperlink(self) -> bool:
        return self._apply(
            "remove_hyperlink",
            clear_mark(self.schema, self._doc, self._selection, MarkTypeName.HYPERLINK.value),
        )

    # ------------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------------

    def set_block_type(self, type_name: str, attrs: Optional[Mapping[str, Any]] = None) -> bool:
        return self._apply(
            f"set_block_type({type_name})",
            set_block_type_command(self.schema, self._doc, self._selection, type_name, attrs),
        )

    def toggle_paragraph(self) -> bool:
        return self.set_block_type(NodeTypeName.PARAGRAPH.value)

    def toggle_heading(self, level: int) -> bool:
        if not 1 <= level <= 6:
            raise ValueError(f"Heading level must be 1..6, got {level}")
        return self.set_block_type(f"heading{level}")

    def toggle_quote(self) -> bool:
        return self.set_block_type(NodeTypeName.QUOTE.value)

    def toggle_formatted(self) -> bool:
        return self.set_block_type(NodeTypeName.FORMATTED.value)

    def wrap_in_list(self, list_type: str, attrs: Optional[Mapping[str, Any]] = None) -> bool:
        return self._apply(
            f"wrap_in_list({list_type})",
            wrap_in_list_command(self.schema, self._doc, self._selection, list_type, attrs),
        )

    def toggle_ordered_list(self) -> bool:
        return self.wrap_in_list(NodeTypeName.ORDERED_LIST.value)

    async def toggle_bulleted_list(self, style_key: Optional[str] = None) -> bool:
        """Wrap in a bulleted list styled by ``style_key`` (configured default if None)."""
        ticket = self._next_style_ticket()
        if style_key is None:
            style_key = self.config.get("bulleted_list_style_key", DEFAULT_BULLETED_LIST_STYLE_KEY)

        attrs: Optional[Dict[str, Any]] = None
        if style_key:
            class_name = await self.styles.get_class_name_by_style_key(style_key)
            if self._superseded(ticket, "toggle_bulleted_list"):
                return False
            if class_name:
                attrs = {"className": class_name, "styles": {"appearance": style_key}}
        return self.wrap_in_list(NodeTypeName.BULLETED_LIST.value, attrs)

    def increase_indent(self) -> bool:
        bounds = valid_bounds(self._doc, self._selection)
        if bounds is None:
            return False
        new_doc = transform.sink_list_item(self.schema, self._doc, *bounds)
        return self._apply("increase_indent", _changed(self._doc, new_doc))

    def decrease_indent(self) -> bool:
        bounds = valid_bounds(self._doc, self._selection)
        if bounds is None:
            return False
        new_doc = transform.lift_list_item(self.schema, self._doc, *bounds)
        return self._apply("decrease_indent", _changed(self._doc, new_doc))

    def insert_property(self, name: str, placeholder: Optional[str] = None) -> bool:
        bounds = valid_bounds(self._doc, self._selection)
        if bounds is None:
            return False
        start, end = bounds
        node = self.schema.instantiate(
            NodeTypeName.PROPERTY.value,
            {"name": name, "placeholder": placeholder} if placeholder is not None else {"name": name},
        )
        new_doc = _changed(self._doc, transform.insert_inline(self.schema, self._doc, start, end, node))
        return self._apply("insert_property", new_doc, Cursor(start + 1) if new_doc is not None else None)

    # ------------------------------------------------------------------------
    # Block styles
    # ------------------------------------------------------------------------

    def _next_style_ticket(self) -> int:
        self._style_ticket += 1
        return self._style_ticket

    def _superseded(self, ticket: int, command: str) -> bool:
        if ticket != self._style_ticket:
            logger.debug("%s superseded by a newer style request, result dropped", command)
            return True
        return False

    def _anchor_block(self) -> Optional[Tuple[int, Node]]:
        if valid_bounds(self._doc, self._selection) is None:
            return None
        anchor = self._selection.anchor  # type: ignore[union-attr]
        block = resolve(self._doc, anchor).parent
        return (anchor, block) if block.is_textblock else None

    async def _restyle(self, command: str, merge: Callable[[Dict[str, Any]], Dict[str, Any]]) -> bool:
        ticket = self._next_style_ticket()
        while True:
            current = self._anchor_block()
            if current is None:
                return False
            styles = merge(copy.deepcopy(dict(current[1].attr("styles") or {})))
            class_name = await self.styles.get_class_names_for_style_map(styles) if styles else None
            if self._superseded(ticket, command):
                return False

            current = self._anchor_block()
            if current is None:
                return False
            if merge(copy.deepcopy(dict(current[1].attr("styles") or {}))) == styles:
                break
            logger.debug("%s: block styles changed while resolving, recompiling", command)

        anchor, block = current
        attrs = {"id": block.attr("id"), "styles": styles or None, "className": class_name}
        attrs = {name: value for name, value in attrs.items() if value is not None}
        new_doc = transform.set_block_type(self.schema, self._doc, anchor, anchor, block.type_name, attrs)
        return self._apply(command, _changed(self._doc, new_doc))

    async def set_alignment(self, style_key: str, viewport: Optional[str] = None) -> bool:
        """Merge ``style_key`` into the block's alignment map under ``viewport``."""
        viewport = viewport or self.config.get("default_viewport", DEFAULT_VIEWPORT)

        def _merge(styles: Dict[str, Any]) -> Dict[str, Any]:
            alignment = dict(styles.get("alignment") or {})
            alignment[viewport] = style_key
            styles["alignment"] = alignment
            return styles

        return await self._restyle("set_alignment", _merge)

    async def align_left(self, viewport: Optional[str] = None) -> bool:
        return await self.set_alignment(AlignmentStyleKey.LEFT.value, viewport)

    async def align_center(self, viewport: Optional[str] = None) -> bool:
        return await self.set_alignment(AlignmentStyleKey.CENTER.value, viewport)

    async def align_right(self, viewport: Optional[str] = None) -> bool:
        return await self.set_alignment(AlignmentStyleKey.RIGHT.value, viewport)

    async def justify(self, viewport: Optional[str] = None) -> bool:
        return await self.set_alignment(AlignmentStyleKey.JUSTIFY.value, viewport)

    async def set_text_style(self, text_style_key: Optional[str], viewport: Optional[str] = None) -> bool:
        """Set (or with an empty key, clear) the block's appearance; not viewport specific."""

        def _merge(styles: Dict[str, Any]) -> Dict[str, Any]:
            if text_style_key:
                styles["appearance"] = text_style_key
            else:
                styles.pop("appearance", None)
            return styles

        return await self._restyle("set_text_style", _merge)
