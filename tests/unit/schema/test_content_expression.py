import pytest

from textblock.schema.content import ContentExpression, ContentExpressionError

GROUPS = {"paragraph": {"block"}, "heading1": {"block"}, "text": {"inline"}, "break": {"inline"}}


def _is_a(type_name: str, term: str) -> bool:
    return type_name == term or term in GROUPS.get(type_name, set())


def test_parse_terms() -> None:
    expr = ContentExpression.parse("paragraph block*")
    assert expr.names == ("paragraph", "block")
    assert [(t.min_count, t.max_count) for t in expr.terms] == [(1, 1), (0, None)]
    assert str(expr) == "paragraph block*"


def test_empty_expression() -> None:
    expr = ContentExpression.parse("")
    assert expr.is_empty
    assert expr.matches([], _is_a)
    assert expr.first_mismatch(["text"], _is_a) == "unexpected text at child 0"


@pytest.mark.parametrize("source", ["block+!", "1abc", "a**"])
def test_invalid_terms(source: str) -> None:
    with pytest.raises(ContentExpressionError):
        ContentExpression.parse(source)


class TestMatching:
    @pytest.mark.parametrize(
        "children, ok",
        [
            (["paragraph"], True),
            (["paragraph", "heading1", "paragraph"], True),
            ([], False),
            (["heading1"], False),
            (["paragraph", "text"], False),
        ],
    )
    def test_list_item_shape(self, children, ok: bool) -> None:
        assert ContentExpression.parse("paragraph block*").matches(children, _is_a) is ok

    def test_one_or_more(self) -> None:
        expr = ContentExpression.parse("block+")
        assert expr.first_mismatch([], _is_a) == "expected block+ at child 0, found end of content"
        assert expr.matches(["heading1"], _is_a)

    def test_optional(self) -> None:
        expr = ContentExpression.parse("heading1? paragraph")
        assert expr.matches(["paragraph"], _is_a)
        assert expr.matches(["heading1", "paragraph"], _is_a)
        assert not expr.matches(["heading1", "heading1", "paragraph"], _is_a)

    def test_accepts(self) -> None:
        expr = ContentExpression.parse("inline*")
        assert expr.accepts("break", _is_a)
        assert not expr.accepts("paragraph", _is_a)
