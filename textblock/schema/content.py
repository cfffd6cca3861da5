"""
Content expressions: the declared legal shape of a node type's children.

Grammar (whitespace separated terms, matched left to right):

    expression := term*
    term       := NAME [ "*" | "+" | "?" ]

NAME is a node type name or a group name (``block``, ``inline``). Examples used by
the default schema: ``"inline*"``, ``"block+"``, ``"list_item+"``,
``"paragraph block*"``. An empty expression means the type takes no children.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

_TERM_RE = re.compile(r"^([A-Za-z_][\w-]*)([*+?]?)$")

_QUANTIFIERS = {
    "": (1, 1),
    "?": (0, 1),
    "*": (0, None),
    "+": (1, None),
}


class ContentExpressionError(ValueError):
    """Malformed content expression."""


@dataclass(frozen=True, slots=True)
class ContentTerm:
    name: str
    min_count: int
    max_count: Optional[int]

    def __str__(self) -> str:
        for suffix, bounds in _QUANTIFIERS.items():
            if bounds == (self.min_count, self.max_count):
                return f"{self.name}{suffix}"
        return self.name


@dataclass(frozen=True, slots=True)
class ContentExpression:
    """Parsed content expression."""

    source: str
    terms: Tuple[ContentTerm, ...]

    @staticmethod
    def parse(source: str) -> ContentExpression:
        terms = []
        for token in source.split():
            match = _TERM_RE.match(token)
            if not match:
                raise ContentExpressionError(f"Invalid content term {token!r} in {source!r}")
            min_count, max_count = _QUANTIFIERS[match.group(2)]
            terms.append(ContentTerm(match.group(1), min_count, max_count))
        return ContentExpression(source=source, terms=tuple(terms))

    @property
    def is_empty(self) -> bool:
        return not self.terms

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(term.name for term in self.terms)

    def matches(self, type_names: Sequence[str], is_a: Callable[[str, str], bool]) -> bool:
        """
        Check a sequence of child type names against the expression.

        ``is_a(type_name, term_name)`` tells whether a child type satisfies a term
        (same name, or member of the group the term names). Terms consume greedily.
        """
        return self.first_mismatch(type_names, is_a) is None

    def first_mismatch(
        self, type_names: Sequence[str], is_a: Callable[[str, str], bool]
    ) -> Optional[str]:
        """Return a description of the first violation, or None when the sequence fits."""
        position = 0
        for term in self.terms:
            count = 0
            while (
                position < len(type_names)
                and (term.max_count is None or count < term.max_count)
                and is_a(type_names[position], term.name)
            ):
                position += 1
                count += 1
            if count < term.min_count:
                found = type_names[position] if position < len(type_names) else "end of content"
                return f"expected {term} at child {position}, found {found}"
        if position < len(type_names):
            return f"unexpected {type_names[position]} at child {position}"
        return None

    def accepts(self, type_name: str, is_a: Callable[[str, str], bool]) -> bool:
        """True if ``type_name`` can appear anywhere in this content."""
        return any(is_a(type_name, term.name) for term in self.terms)

    def __str__(self) -> str:
        return self.source
