"""
Selection value types and the selection-state snapshot exposed to hosts.

Selections are plain immutable values computed fresh per call; nothing here keeps a
reference to a document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union


@dataclass(frozen=True, slots=True)
class Range:
    """Inclusive-exclusive offset pair ``[from_, to)``."""

    from_: int
    to: int

    def __post_init__(self) -> None:
        if self.from_ > self.to:
            raise ValueError(f"Range start {self.from_} is after its end {self.to}")

    @property
    def empty(self) -> bool:
        return self.from_ == self.to

    @property
    def anchor(self) -> int:
        return self.from_

    def to_dict(self) -> Dict[str, int]:
        return {"from": self.from_, "to": self.to}

    @staticmethod
    def from_dict(data: Mapping[str, int]) -> Range:
        return Range(from_=int(data["from"]), to=int(data["to"]))


@dataclass(frozen=True, slots=True)
class Cursor:
    """Zero-width selection at a single offset."""

    at: int

    @property
    def empty(self) -> bool:
        return True

    @property
    def anchor(self) -> int:
        return self.at

    def to_dict(self) -> Dict[str, int]:
        return {"at": self.at}


Selection = Union[Range, Cursor]


def selection_bounds(selection: Selection) -> Tuple[int, int]:
    """Return (from, to) for either selection form."""
    if isinstance(selection, Cursor):
        return selection.at, selection.at
    return selection.from_, selection.to


@dataclass(frozen=True, slots=True)
class SelectionState:
    """
    Snapshot of what applies at the current selection.

    Attributes:
        block: Type name of the innermost block containing the selection anchor.
        ordered_list: The anchor sits inside an ordered list.
        bulleted_list: The anchor sits inside a bulleted list.
        bold .. hyperlink: The mark covers the whole selected range (for a cursor,
            the character just before it).
        color_key: Key of the color mark at the selection start, if any.
        alignment: Alignment style key per viewport, read off the block's styles.
        appearance: Named appearance/text-style key of the block.
        extra_marks: Flags for marks registered beyond the built-in table.
    """

    block: Optional[str] = None
    ordered_list: bool = False
    bulleted_list: bool = False
    bold: bool = False
    italic: bool = False
    underlined: bool = False
    highlighted: bool = False
    striked: bool = False
    code: bool = False
    color: bool = False
    hyperlink: bool = False
    color_key: Optional[str] = None
    alignment: Optional[Dict[str, str]] = None
    appearance: Optional[str] = None
    extra_marks: Dict[str, bool] = field(default_factory=dict)

    def is_active(self, mark_type: str) -> bool:
        if mark_type in self.extra_marks:
            return self.extra_marks[mark_type]
        value = getattr(self, mark_type, False)
        return value is True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "block": self.block,
            "orderedList": self.ordered_list,
            "bulletedList": self.bulleted_list,
            "bold": self.bold,
            "italic": self.italic,
            "underlined": self.underlined,
            "highlighted": self.highlighted,
            "striked": self.striked,
            "code": self.code,
            "color": self.color,
            "hyperlink": self.hyperlink,
            "colorKey": self.color_key,
            "alignment": dict(self.alignment) if self.alignment else None,
            "appearance": self.appearance,
            **self.extra_marks,
        }
