from typing import Any, Callable, Dict

import pytest

from textblock.model.node import Node
from textblock.schema.builder import build_schema
from textblock.schema.registry import SchemaRegistry


@pytest.fixture
def schema() -> SchemaRegistry:
    return build_schema()


@pytest.fixture
def make_doc(schema: SchemaRegistry) -> Callable[..., Node]:
    """Build a doc from internal-form block dicts."""

    def _make(*blocks: Dict[str, Any]) -> Node:
        return schema.node_from_json({"typeName": "doc", "content": list(blocks)})

    return _make
