"""
Conversion between the external block-model tree and the internal document tree.

The two forms differ only in naming: list type names are hyphenated externally
(``ordered-list``, ``bulleted-list``, ``list-item``) and underscored internally, and
children live under ``nodes`` externally and ``content`` internally. Renaming is
applied to ``typeName`` values and the children key only; text, marks and
attributes are copied as they are.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

from textblock.model.node import Node
from textblock.schema.html import HtmlSerializer
from textblock.schema.registry import SchemaError, SchemaRegistry

logger = logging.getLogger(__name__)

EXTERNAL_CHILDREN_KEY = "nodes"
INTERNAL_CHILDREN_KEY = "content"

DEFAULT_TYPE_NAMES: Dict[str, str] = {
    "ordered-list": "ordered_list",
    "bulleted-list": "bulleted_list",
    "list-item": "list_item",
}

DEFAULT_MAX_NESTING_DEPTH = 64

Tree = Union[Dict[str, Any], List[Dict[str, Any]]]


class ConversionError(Exception):
    """Malformed tree that cannot be converted losslessly."""

    def __init__(self, message: str, path: str = "$") -> None:
        super().__init__(f"{message} (at {path})")
        self.path = path


@dataclass(frozen=True, slots=True)
class _Direction:
    source_key: str
    target_key: str
    names: Mapping[str, str]
    target_names: FrozenSet[str]


class ModelConverter:
    """
    Stateless bidirectional converter.

    Args:
        type_names: External -> internal type name table.
        max_nesting_depth: Deepest node level accepted before ConversionError.
    """

    def __init__(
        self,
        type_names: Optional[Mapping[str, str]] = None,
        *,
        max_nesting_depth: int = DEFAULT_MAX_NESTING_DEPTH,
    ) -> None:
        names = dict(DEFAULT_TYPE_NAMES if type_names is None else type_names)
        reverse = {internal: external for external, internal in names.items()}
        if len(reverse) != len(names):
            raise ValueError("Type name table must be one-to-one")
        self.max_nesting_depth = max_nesting_depth
        self._inward = _Direction(
            EXTERNAL_CHILDREN_KEY, INTERNAL_CHILDREN_KEY, names, frozenset(reverse)
        )
        self._outward = _Direction(
            INTERNAL_CHILDREN_KEY, EXTERNAL_CHILDREN_KEY, reverse, frozenset(names)
        )

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None) -> ModelConverter:
        depth = (config or {}).get("max_nesting_depth", DEFAULT_MAX_NESTING_DEPTH)
        return cls(max_nesting_depth=int(depth))

    def to_internal(self, tree: Tree) -> Tree:
        """Convert an external tree (or list of blocks) to internal form."""
        return self._convert(tree, self._inward)

    def to_external(self, tree: Tree) -> Tree:
        """Convert an internal tree (or list of blocks) to external form."""
        return self._convert(tree, self._outward)

    def _convert(self, tree: Tree, direction: _Direction) -> Tree:
        if isinstance(tree, list):
            return [self._node(node, direction, f"$[{i}]", 1) for i, node in enumerate(tree)]
        if isinstance(tree, Mapping):
            return self._node(tree, direction, "$", 1)
        raise ConversionError(f"Tree must be an object or a list, got {type(tree).__name__}")

    def _node(self, node: Any, direction: _Direction, path: str, depth: int) -> Dict[str, Any]:
        if depth > self.max_nesting_depth:
            raise ConversionError(f"Tree deeper than {self.max_nesting_depth} levels", path)
        if not isinstance(node, Mapping):
            raise ConversionError(f"Node must be an object, got {type(node).__name__}", path)

        type_name = node.get("typeName")
        if not isinstance(type_name, str):
            raise ConversionError(f"Node needs a string 'typeName', got {type_name!r}", path)
        if type_name in direction.target_names:
            raise ConversionError(f"Type name {type_name!r} is already in the target form", path)
        if direction.target_key in node:
            if direction.source_key in node:
                raise ConversionError(
                    f"Node has both {direction.source_key!r} and {direction.target_key!r}", path
                )
            raise ConversionError(f"Children key {direction.target_key!r} is already in the target form", path)

        result: Dict[str, Any] = {}
        for key, value in node.items():
            if key == "typeName":
                result[key] = direction.names.get(value, value)
            elif key == direction.source_key:
                if not isinstance(value, list):
                    raise ConversionError(
                        f"{direction.source_key!r} must be a list, got {type(value).__name__}",
                        f"{path}.{key}",
                    )
                result[direction.target_key] = [
                    self._node(child, direction, f"{path}.{key}[{i}]", depth + 1)
                    for i, child in enumerate(value)
                ]
            else:
                result[key] = copy.deepcopy(value)
        return result


def blocks_to_document(
    schema: SchemaRegistry,
    blocks: Sequence[Mapping[str, Any]],
    converter: Optional[ModelConverter] = None,
) -> Node:
    """Build a ``doc`` node from a list of external blocks."""
    converter = converter or ModelConverter()
    content = converter.to_internal(list(blocks))
    return schema.node_from_json({"typeName": "doc", INTERNAL_CHILDREN_KEY: content})


def document_to_blocks(
    schema: SchemaRegistry, doc: Node, converter: Optional[ModelConverter] = None
) -> List[Dict[str, Any]]:
    """Inverse of blocks_to_document: the doc's children in external form."""
    converter = converter or ModelConverter()
    content = schema.node_to_json(doc).get(INTERNAL_CHILDREN_KEY, [])
    return converter.to_external(content)  # type: ignore[return-value]


def render_blocks(
    schema: SchemaRegistry,
    blocks: Sequence[Mapping[str, Any]],
    converter: Optional[ModelConverter] = None,
) -> str:
    """Render external blocks to HTML."""
    try:
        doc = blocks_to_document(schema, blocks, converter)
        return HtmlSerializer(schema).serialize_fragment(doc.children)
    except (ConversionError, SchemaError) as e:
        logger.error("Failed to render block content: %s", e)
        raise
