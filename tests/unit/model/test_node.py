import pytest

from textblock.model.enums import NodeKind
from textblock.model.node import Mark, Node, find_mark, remove_from_set


def _text(value: str, *marks: str) -> Node:
    return Node("text", NodeKind.TEXT, text=value, marks=tuple(Mark(m) for m in marks))


def _para(*children: Node) -> Node:
    return Node("paragraph", NodeKind.TEXTBLOCK, children=tuple(children))


def _br() -> Node:
    return Node("break", NodeKind.INLINE_LEAF)


# ---------- MARKS ----------


def test_mark_equality_and_is_in_set() -> None:
    link = Mark("hyperlink", {"href": "/a"})
    assert link == Mark("hyperlink", {"href": "/a"})
    assert link.is_in_set([Mark("bold"), Mark("hyperlink", {"href": "/a"})])
    assert not link.is_in_set([Mark("hyperlink", {"href": "/b"})])
    assert link.attr("href") == "/a"
    assert link.attr("target", "_self") == "_self"


def test_find_and_remove_mark() -> None:
    marks = (Mark("bold"), Mark("italic"))
    assert find_mark(marks, "italic") == Mark("italic")
    assert find_mark(marks, "code") is None
    assert remove_from_set(marks, "bold") == (Mark("italic"),)


# ---------- SIZES ----------


def test_node_sizes() -> None:
    para = _para(_text("Hello"), _br(), _text("!"))
    assert _text("Hello").node_size == 5
    assert _br().node_size == 1
    assert para.content_size == 7
    assert para.node_size == 9
    assert Node("doc", NodeKind.CONTAINER, children=(para,)).content_size == 9


def test_kind_flags() -> None:
    assert _text("a").is_text and _text("a").is_inline
    assert _br().is_inline and not _br().is_text
    assert _para().is_textblock and not _para().is_inline


# ---------- find_index ----------


class TestFindIndex:
    def test_inside_and_at_boundaries(self) -> None:
        para = _para(_text("ab", "bold"), _text("cd"))
        assert para.find_index(0) == (0, 0)
        assert para.find_index(1) == (0, 0)
        assert para.find_index(2) == (1, 2)
        assert para.find_index(3) == (1, 2)
        assert para.find_index(4) == (2, 4)

    def test_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            _para(_text("ab")).find_index(3)
        with pytest.raises(ValueError):
            _para(_text("ab")).find_index(-1)

    def test_child_after(self) -> None:
        para = _para(_text("ab"), _br())
        child, index, start = para.child_after(2)
        assert child == _br()
        assert (index, start) == (1, 2)
        assert para.child_after(3) == (None, 2, 3)


# ---------- CONTENT ----------


def test_text_content() -> None:
    doc = Node("doc", NodeKind.CONTAINER, children=(_para(_text("Hi "), _text("there", "bold")),))
    assert doc.text_content == "Hi there"


def test_cut_and_copies_are_new_objects() -> None:
    original = _text("Hello", "bold")
    assert original.cut(1, 3).text == "el"
    assert original.cut(2).marks == original.marks
    assert original.with_marks(()).marks == ()
    assert original.marks == (Mark("bold"),)
    with pytest.raises(TypeError):
        _para().cut(0)
