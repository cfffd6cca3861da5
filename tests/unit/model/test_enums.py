from textblock.model.enums import (
    HEADING_TYPES,
    AlignmentStyleKey,
    HyperlinkTarget,
    MarkTypeName,
    NodeKind,
    NodeTypeName,
    Viewport,
)


def test_node_kind_inline() -> None:
    assert NodeKind.TEXT.is_inline
    assert NodeKind.INLINE_LEAF.is_inline
    assert not NodeKind.TEXTBLOCK.is_inline
    assert not NodeKind.CONTAINER.is_inline


def test_node_type_table() -> None:
    assert len(NodeTypeName) == 16
    assert [h.value for h in HEADING_TYPES] == [f"heading{i}" for i in range(1, 7)]
    assert NodeTypeName.HEADING4.is_heading
    assert not NodeTypeName.PARAGRAPH.is_heading


def test_mark_table() -> None:
    assert [m.value for m in MarkTypeName] == [
        "bold",
        "italic",
        "underlined",
        "highlighted",
        "striked",
        "code",
        "color",
        "hyperlink",
    ]


def test_style_keys_and_targets() -> None:
    assert AlignmentStyleKey.CENTER.value == "utils/text/alignCenter"
    assert AlignmentStyleKey.JUSTIFY.value == "utils/text/justify"
    assert HyperlinkTarget("_popup") is HyperlinkTarget.POPUP
    assert [v.value for v in Viewport] == ["xs", "sm", "md", "lg", "xl"]
