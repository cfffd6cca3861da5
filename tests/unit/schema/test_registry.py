import logging

import pytest

from textblock.model.enums import NodeKind
from textblock.model.node import Mark
from textblock.schema.registry import (
    REQUIRED,
    AttributeSpec,
    AttributeValidationError,
    ContentModelViolation,
    MarkTypeDescriptor,
    NodeTypeDescriptor,
    SchemaError,
    SchemaRegistry,
    UnknownTypeError,
)


@pytest.fixture
def small_schema() -> SchemaRegistry:
    schema = SchemaRegistry()
    schema.register_node_type("text", group="inline")
    schema.register_node_type("paragraph", "inline*", {"id": AttributeSpec(None, (str,))}, group="block")
    schema.register_node_type("item", "paragraph block*")
    schema.register_node_type("items", "item+", {"order": AttributeSpec(1, (int,))}, group="block")
    schema.register_node_type("doc", "block+")
    schema.register_mark_type("strong")
    schema.register_mark_type("em")
    schema.register_mark_type("tint", {"key": AttributeSpec(REQUIRED, (str,))})
    return schema


class TestRegistration:
    def test_kinds_are_derived(self, small_schema: SchemaRegistry) -> None:
        assert small_schema.node_type("text").kind is NodeKind.TEXT
        assert small_schema.node_type("paragraph").kind is NodeKind.TEXTBLOCK
        assert small_schema.node_type("items").kind is NodeKind.CONTAINER
        assert small_schema.node_type("doc").kind is NodeKind.CONTAINER

    def test_inline_leaf(self) -> None:
        schema = SchemaRegistry()
        descriptor = schema.register_node_type("hr_inline", inline=True, group="inline")
        assert descriptor.kind is NodeKind.INLINE_LEAF

    def test_duplicate_registration(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(SchemaError):
            small_schema.register_node_type("paragraph", "inline*")
        with pytest.raises(SchemaError):
            small_schema.register_mark_type("paragraph")

    def test_registration_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        schema = SchemaRegistry()
        with caplog.at_level(logging.DEBUG, logger="textblock"):
            schema.register_mark_type("strong")
        assert "Registered mark type 'strong'" in caplog.text

    def test_resolve(self, small_schema: SchemaRegistry) -> None:
        assert isinstance(small_schema.resolve("paragraph"), NodeTypeDescriptor)
        assert isinstance(small_schema.resolve("strong"), MarkTypeDescriptor)
        with pytest.raises(UnknownTypeError) as exc:
            small_schema.resolve("table")
        assert exc.value.type_name == "table"

    def test_lookup_misses(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(UnknownTypeError):
            small_schema.node_type("strong")
        with pytest.raises(UnknownTypeError):
            small_schema.mark_type("paragraph")
        with pytest.raises(UnknownTypeError):
            small_schema.instantiate("blockquote")

    def test_type_listing(self, small_schema: SchemaRegistry) -> None:
        assert small_schema.list_node_types() == ["text", "paragraph", "item", "items", "doc"]
        assert small_schema.list_mark_types() == ["strong", "em", "tint"]


class TestInstantiate:
    def test_defaults_applied(self, small_schema: SchemaRegistry) -> None:
        items = small_schema.instantiate(
            "items", children=[small_schema.instantiate("item", children=[small_schema.instantiate("paragraph")])]
        )
        assert items.attrs == {"order": 1}

    def test_empty_item_rejected(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(ContentModelViolation) as exc:
            small_schema.instantiate("item")
        assert exc.value.type_name == "item"
        assert exc.value.child_types == []

    def test_empty_doc_rejected(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(ContentModelViolation):
            small_schema.instantiate("doc")

    def test_wrong_child_type(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(ContentModelViolation) as exc:
            small_schema.instantiate("doc", children=[small_schema.text("loose")])
        assert exc.value.child_types == ["text"]

    def test_attribute_type_checked(self, small_schema: SchemaRegistry) -> None:
        item = small_schema.instantiate("item", children=[small_schema.instantiate("paragraph")])
        with pytest.raises(AttributeValidationError) as exc:
            small_schema.instantiate("items", {"order": "two"}, [item])
        assert exc.value.field == "order"

    def test_required_mark_attribute(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(AttributeValidationError):
            small_schema.mark("tint")
        assert small_schema.mark("tint", {"key": "red"}).attrs == {"key": "red"}

    def test_undeclared_attributes_kept(
        self, small_schema: SchemaRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="textblock"):
            node = small_schema.instantiate("paragraph", {"id": "a", "anchorKey": "anchors/x"})
        assert node.attrs == {"id": "a", "anchorKey": "anchors/x"}
        assert node.given_attrs == {"id", "anchorKey"}
        assert "Keeping undeclared attribute 'anchorKey'" in caplog.text

    def test_given_attributes_do_not_affect_equality(self, small_schema: SchemaRegistry) -> None:
        assert small_schema.instantiate("paragraph", {"id": None}) == small_schema.instantiate("paragraph")

    def test_text_nodes(self, small_schema: SchemaRegistry) -> None:
        with pytest.raises(ContentModelViolation):
            small_schema.text("")
        with pytest.raises(ContentModelViolation):
            small_schema.instantiate("text")

    def test_adjacent_text_merged(self, small_schema: SchemaRegistry) -> None:
        strong = small_schema.mark("strong")
        para = small_schema.instantiate(
            "paragraph",
            children=[
                small_schema.text("a", [strong]),
                small_schema.text("b", [strong]),
                small_schema.text("c"),
            ],
        )
        assert [c.text for c in para.children] == ["ab", "c"]


class TestMarkSets:
    def test_rank_order(self, small_schema: SchemaRegistry) -> None:
        marks = small_schema.mark_set([Mark("em"), Mark("strong")])
        assert [m.type_name for m in marks] == ["strong", "em"]

    def test_same_type_replaced(self, small_schema: SchemaRegistry) -> None:
        marks = small_schema.add_to_mark_set([small_schema.mark("tint", {"key": "red"})], small_schema.mark("tint", {"key": "blue"}))
        assert marks == (Mark("tint", {"key": "blue"}),)


class TestJsonCodec:
    def test_round_trip_keeps_shape(self, small_schema: SchemaRegistry) -> None:
        data = {
            "typeName": "doc",
            "content": [
                {
                    "typeName": "items",
                    "attributes": {"order": 3},
                    "content": [
                        {
                            "typeName": "item",
                            "content": [
                                {
                                    "typeName": "paragraph",
                                    "content": [
                                        {"typeName": "text", "text": "x", "marks": [{"typeName": "strong"}]},
                                        {"typeName": "text", "text": "y", "marks": [{"typeName": "tint", "attrs": {"key": "k"}}]},
                                    ],
                                }
                            ],
                        }
                    ],
                },
                {"typeName": "paragraph"},
            ],
        }
        assert small_schema.node_to_json(small_schema.node_from_json(data)) == data

    def test_defaults_not_emitted_unless_given(self, small_schema: SchemaRegistry) -> None:
        item = small_schema.instantiate("item", children=[small_schema.instantiate("paragraph")])
        items = small_schema.instantiate("items", children=[item])
        assert items.attrs == {"order": 1}
        assert "attributes" not in small_schema.node_to_json(items)

    @pytest.mark.parametrize(
        "data",
        [
            {"typeName": "paragraph", "attributes": {"id": None}},
            {"typeName": "paragraph", "attributes": {"anchorKey": "anchors/x", "layout": {"wide": True}}},
            {"typeName": "text", "text": "t", "marks": [{"typeName": "strong", "attrs": {"weight": 700}}]},
            {
                "typeName": "items",
                "attributes": {"order": 1},
                "content": [{"typeName": "item", "content": [{"typeName": "paragraph"}]}],
            },
        ],
    )
    def test_supplied_attributes_round_trip(self, small_schema: SchemaRegistry, data) -> None:
        assert small_schema.node_to_json(small_schema.node_from_json(data)) == data

    def test_explicit_attrs(self, small_schema: SchemaRegistry) -> None:
        node = small_schema.node_from_json({"typeName": "paragraph", "attributes": {"colour": "red"}})
        assert small_schema.explicit_attrs(node) == {"colour": "red"}
        assert small_schema.explicit_attrs(small_schema.text("x")) == {}

    @pytest.mark.parametrize(
        "bad",
        [
            ["not", "a", "dict"],
            {"content": []},
            {"typeName": "doc", "content": {"typeName": "paragraph"}},
            {"typeName": "text"},
        ],
    )
    def test_malformed(self, small_schema: SchemaRegistry, bad) -> None:
        with pytest.raises(SchemaError):
            small_schema.node_from_json(bad)
