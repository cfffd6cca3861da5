"""
RU: Реестр типов узлов и меток текстового блока: модели содержимого, атрибуты, правила сериализации и разбора.

EN: Registry of node and mark types for the text block editor: content models, typed
attributes with defaults, serialization (to_dom) and parse (parse_dom) rules, and the
JSON codec for internal document trees.

Example usage:
    schema = SchemaRegistry()
    schema.register_node_type("doc", content="block+")
    schema.register_node_type("text", group="inline")
    schema.register_node_type("paragraph", content="inline*", group="block")
    doc = schema.node_from_json({"typeName": "doc", "content": [{"typeName": "paragraph"}]})
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from textblock.model.enums import NodeKind
from textblock.model.node import Mark, Node
from textblock.schema.content import ContentExpression

logger = logging.getLogger(__name__)

TEXT_TYPE = "text"

DomSpec = Sequence[Any]


class SchemaError(Exception):
    """Base error for schema lookups, registration and node construction."""


class UnknownTypeError(SchemaError):
    """A node or mark type name is not registered."""

    def __init__(self, type_name: str, kind: str = "type") -> None:
        super().__init__(f"Unknown {kind}: {type_name!r}")
        self.type_name = type_name


class ContentModelViolation(SchemaError):
    """Children do not satisfy a node type's content model."""

    def __init__(
        self,
        message: str,
        type_name: Optional[str] = None,
        child_types: Optional[Sequence[str]] = None,
    ) -> None:
        super().__init__(message)
        self.type_name = type_name
        self.child_types = list(child_types or [])


class AttributeValidationError(SchemaError):
    """A required attribute is missing or an attribute value has the wrong type."""

    def __init__(self, message: str, owner: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.owner = owner
        self.field = field


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Any = _Required()


def unique_identifier(identifier: str, taken: Set[str]) -> str:
    """``identifier``, or ``identifier-2``, ``identifier-3``... if it is taken."""
    candidate = identifier
    suffix = 2
    while candidate in taken:
        candidate = f"{identifier}-{suffix}"
        suffix += 1
    return candidate


@dataclass(frozen=True, slots=True)
class AttributeSpec:
    """Declared attribute: default value (or REQUIRED) and optional accepted types."""

    default: Any = None
    value_type: Optional[Tuple[type, ...]] = None

    @property
    def has_default(self) -> bool:
        return self.default is not REQUIRED

    def check(self, owner: str, name: str, value: Any) -> None:
        if value is None and self.has_default and self.default is None:
            return
        if self.value_type is not None and not isinstance(value, self.value_type):
            expected = ", ".join(t.__name__ for t in self.value_type)
            raise AttributeValidationError(
                f"Attribute {name!r} of {owner!r} must be {expected}, got {type(value).__name__}",
                owner=owner,
                field=name,
            )


AttrsArg = Optional[Mapping[str, Union[AttributeSpec, Any]]]


@dataclass(frozen=True, slots=True)
class ParseRule:
    """
    Recognizes an element of the output form.

    ``get_attrs`` receives the element's attributes and returns the node/mark
    attributes, or None when the element does not match after all.
    """

    tag: str
    get_attrs: Optional[Callable[[Mapping[str, Optional[str]]], Optional[Dict[str, Any]]]] = None

    def match(self, tag: str, element_attrs: Mapping[str, Optional[str]]) -> Optional[Dict[str, Any]]:
        if tag != self.tag:
            return None
        if self.get_attrs is None:
            return {}
        return self.get_attrs(element_attrs)


@dataclass(frozen=True)
class NodeTypeDescriptor:
    name: str
    content: ContentExpression
    kind: NodeKind
    attrs: Mapping[str, AttributeSpec] = field(default_factory=dict)
    to_dom: Optional[Callable[[Node], DomSpec]] = None
    parse_dom: Tuple[ParseRule, ...] = ()
    group: Optional[str] = None
    inline: bool = False
    defining: bool = False
    selectable: bool = True
    identifier_rule: Optional[Callable[[Sequence[Node]], str]] = None

    @property
    def groups(self) -> Tuple[str, ...]:
        return tuple(self.group.split()) if self.group else ()

    @property
    def is_textblock(self) -> bool:
        return self.kind is NodeKind.TEXTBLOCK


@dataclass(frozen=True)
class MarkTypeDescriptor:
    name: str
    rank: int
    attrs: Mapping[str, AttributeSpec] = field(default_factory=dict)
    to_dom: Optional[Callable[[Mark, bool], DomSpec]] = None
    parse_dom: Tuple[ParseRule, ...] = ()
    inclusive: bool = True


def _attribute_specs(attrs: AttrsArg) -> Dict[str, AttributeSpec]:
    specs: Dict[str, AttributeSpec] = {}
    for name, value in (attrs or {}).items():
        specs[name] = value if isinstance(value, AttributeSpec) else AttributeSpec(default=value)
    return specs


class SchemaRegistry:
    """
    Plain registry mapping type names to immutable descriptors.

    Every use site resolves types by name; there is no global schema instance, so a
    fresh registry can be built per editor or per test.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, NodeTypeDescriptor] = {}
        self._marks: Dict[str, MarkTypeDescriptor] = {}

    # ------------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------------

    def register_node_type(
        self,
        name: str,
        content: str = "",
        attrs: AttrsArg = None,
        to_dom: Optional[Callable[[Node], DomSpec]] = None,
        parse_dom: Sequence[ParseRule] = (),
        *,
        group: Optional[str] = None,
        inline: bool = False,
        defining: bool = False,
        selectable: bool = True,
        identifier_rule: Optional[Callable[[Sequence[Node]], str]] = None,
    ) -> NodeTypeDescriptor:
        if name in self._nodes or name in self._marks:
            raise SchemaError(f"Type {name!r} is already registered")

        expression = ContentExpression.parse(content)
        descriptor = NodeTypeDescriptor(
            name=name,
            content=expression,
            kind=self._classify(name, expression, inline),
            attrs=_attribute_specs(attrs),
            to_dom=to_dom,
            parse_dom=tuple(parse_dom),
            group=group,
            inline=inline or name == TEXT_TYPE,
            defining=defining,
            selectable=selectable,
            identifier_rule=identifier_rule,
        )
        self._nodes[name] = descriptor
        logger.debug("Registered node type %r (%s, content=%r)", name, descriptor.kind.value, content)
        return descriptor

    def register_mark_type(
        self,
        name: str,
        attrs: AttrsArg = None,
        to_dom: Optional[Callable[[Mark, bool], DomSpec]] = None,
        parse_dom: Sequence[ParseRule] = (),
        *,
        inclusive: bool = True,
    ) -> MarkTypeDescriptor:
        if name in self._marks or name in self._nodes:
            raise SchemaError(f"Type {name!r} is already registered")

        descriptor = MarkTypeDescriptor(
            name=name,
            rank=len(self._marks),
            attrs=_attribute_specs(attrs),
            to_dom=to_dom,
            parse_dom=tuple(parse_dom),
            inclusive=inclusive,
        )
        self._marks[name] = descriptor
        logger.debug("Registered mark type %r (inclusive=%s)", name, inclusive)
        return descriptor

    def _classify(self, name: str, content: ContentExpression, inline: bool) -> NodeKind:
        if name == TEXT_TYPE:
            return NodeKind.TEXT
        if content.is_empty:
            return NodeKind.INLINE_LEAF if inline else NodeKind.CONTAINER
        for term in content.names:
            if term in (TEXT_TYPE, "inline"):
                return NodeKind.TEXTBLOCK
            known = self._nodes.get(term)
            if known is not None and known.inline:
                return NodeKind.TEXTBLOCK
        return NodeKind.CONTAINER

    # ------------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------------

    def resolve(self, name: str) -> Union[NodeTypeDescriptor, MarkTypeDescriptor]:
        if name in self._nodes:
            return self._nodes[name]
        if name in self._marks:
            return self._marks[name]
        raise UnknownTypeError(name)

    def node_type(self, name: str) -> NodeTypeDescriptor:
        try:
            return self._nodes[name]
        except KeyError:
            raise UnknownTypeError(name, "node type") from None

    def mark_type(self, name: str) -> MarkTypeDescriptor:
        try:
            return self._marks[name]
        except KeyError:
            raise UnknownTypeError(name, "mark type") from None

    def list_node_types(self) -> List[str]:
        return list(self._nodes)

    def list_mark_types(self) -> List[str]:
        return list(self._marks)

    def node_types(self) -> List[NodeTypeDescriptor]:
        return list(self._nodes.values())

    def mark_types(self) -> List[MarkTypeDescriptor]:
        return list(self._marks.values())

    def inclusive_map(self) -> Dict[str, bool]:
        return {name: desc.inclusive for name, desc in self._marks.items()}

    def is_a(self, type_name: str, term: str) -> bool:
        """True if ``type_name`` is ``term`` or belongs to the group ``term``."""
        if type_name == term:
            return True
        descriptor = self._nodes.get(type_name)
        return descriptor is not None and term in descriptor.groups

    # ------------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------------

    def _compute_attrs(
        self, owner: str, specs: Mapping[str, AttributeSpec], given: Optional[Mapping[str, Any]]
    ) -> Dict[str, Any]:
        given = dict(given or {})
        result: Dict[str, Any] = {}
        for name, spec in specs.items():
            if name in given:
                value = given[name]
                spec.check(owner, name, value)
                result[name] = copy.deepcopy(value)
            elif spec.has_default:
                result[name] = copy.deepcopy(spec.default)
            else:
                raise AttributeValidationError(
                    f"No value supplied for attribute {name!r} of {owner!r}",
                    owner=owner,
                    field=name,
                )
        for name in [key for key in given if key not in specs]:
            logger.debug("Keeping undeclared attribute %r of %r as given", name, owner)
            result[name] = copy.deepcopy(given[name])
        return result

    def check_content(self, type_name: str, children: Sequence[Node]) -> None:
        """Raise ContentModelViolation if ``children`` do not fit ``type_name``."""
        descriptor = self.node_type(type_name)
        for child in children:
            if not isinstance(child, Node):
                raise ContentModelViolation(
                    f"Children of {type_name!r} must be Node, got {type(child).__name__}",
                    type_name=type_name,
                )
        child_types = [child.type_name for child in children]
        problem = descriptor.content.first_mismatch(child_types, self.is_a)
        if problem is not None:
            raise ContentModelViolation(
                f"Invalid content for {type_name!r} ({descriptor.content or 'empty'}): {problem}",
                type_name=type_name,
                child_types=child_types,
            )

    def _normalize_inline(self, children: Sequence[Node]) -> Tuple[Node, ...]:
        """Merge adjacent text nodes that share the same mark set."""
        result: List[Node] = []
        for child in children:
            if (
                result
                and child.is_text
                and result[-1].is_text
                and result[-1].marks == child.marks
            ):
                result[-1] = dataclasses.replace(
                    result[-1], text=(result[-1].text or "") + (child.text or "")
                )
            else:
                result.append(child)
        return tuple(result)

    def instantiate(
        self,
        name: str,
        attrs: Optional[Mapping[str, Any]] = None,
        children: Sequence[Node] = (),
        marks: Sequence[Mark] = (),
        *,
        assign_identifier: bool = True,
        taken_ids: Optional[Set[str]] = None,
    ) -> Node:
        """
        Create a node of type ``name``.

        When the type declares an identifier rule and no ``id`` is given, one is
        generated unless ``assign_identifier`` is False (stored trees keep theirs).
        A generated id already in ``taken_ids`` gets a numeric suffix and is added
        to the set.

        Raises:
            UnknownTypeError: ``name`` is not a registered node type.
            ContentModelViolation: ``children`` do not satisfy the content model.
            AttributeValidationError: a required attribute is missing or mistyped.
        """
        descriptor = self.node_type(name)
        if descriptor.kind is NodeKind.TEXT:
            raise ContentModelViolation("Text nodes are created with text()", type_name=name)

        computed = self._compute_attrs(name, descriptor.attrs, attrs)
        children = self._normalize_inline(children)
        self.check_content(name, children)

        if (
            assign_identifier
            and descriptor.identifier_rule is not None
            and "id" in descriptor.attrs
            and not computed.get("id")
        ):
            identifier = descriptor.identifier_rule(children)
            if taken_ids is not None:
                identifier = unique_identifier(identifier, taken_ids)
                taken_ids.add(identifier)
            computed["id"] = identifier

        return Node(
            type_name=name,
            kind=descriptor.kind,
            attrs=computed,
            children=children,
            marks=self.mark_set(marks),
            given_attrs=frozenset(attrs or ()),
        )

    def text(self, text: str, marks: Sequence[Mark] = ()) -> Node:
        descriptor = self.node_type(TEXT_TYPE)
        if not isinstance(text, str):
            raise ContentModelViolation(
                f"Text payload must be str, got {type(text).__name__}", type_name=TEXT_TYPE
            )
        if not text:
            raise ContentModelViolation("Empty text nodes are not allowed", type_name=TEXT_TYPE)
        return Node(type_name=TEXT_TYPE, kind=descriptor.kind, text=text, marks=self.mark_set(marks))

    def mark(self, name: str, attrs: Optional[Mapping[str, Any]] = None) -> Mark:
        descriptor = self.mark_type(name)
        return Mark(
            type_name=name,
            attrs=self._compute_attrs(name, descriptor.attrs, attrs),
            given_attrs=frozenset(attrs or ()),
        )

    def mark_set(self, marks: Sequence[Mark]) -> Tuple[Mark, ...]:
        """Order marks by rank, keeping the last mark given for each type."""
        result: Tuple[Mark, ...] = ()
        for mark in marks:
            result = self.add_to_mark_set(result, mark)
        return result

    def add_to_mark_set(self, marks: Sequence[Mark], mark: Mark) -> Tuple[Mark, ...]:
        """Add ``mark`` replacing any mark of the same type; keeps rank order."""
        rank = self.mark_type(mark.type_name).rank
        others = [m for m in marks if m.type_name != mark.type_name]
        position = 0
        while position < len(others) and self.mark_type(others[position].type_name).rank < rank:
            position += 1
        others.insert(position, mark)
        return tuple(others)

    def replace_children(self, node: Node, children: Sequence[Node]) -> Node:
        """Return ``node`` with new children, validated against its content model."""
        children = self._normalize_inline(children)
        self.check_content(node.type_name, children)
        return dataclasses.replace(node, children=children)

    def explicit_attrs(self, node: Node) -> Dict[str, Any]:
        """The attributes of ``node`` that its JSON form carries."""
        if node.is_text:
            return {}
        return self._emitted_attrs(self.node_type(node.type_name).attrs, node.attrs, node.given_attrs)

    # ------------------------------------------------------------------------
    # JSON codec
    # ------------------------------------------------------------------------

    def node_from_json(self, data: Mapping[str, Any]) -> Node:
        if not isinstance(data, Mapping):
            raise SchemaError(f"Node JSON must be an object, got {type(data).__name__}")
        type_name = data.get("typeName")
        if not isinstance(type_name, str):
            raise SchemaError(f"Node JSON needs a string 'typeName', got {type_name!r}")

        raw_marks = data.get("marks") or []
        if not isinstance(raw_marks, list):
            raise SchemaError(f"'marks' of {type_name!r} must be a list")
        marks = [self.mark_from_json(m) for m in raw_marks]

        if type_name == TEXT_TYPE:
            return self.text(data.get("text"), marks)  # type: ignore[arg-type]

        content = data.get("content") or []
        if not isinstance(content, list):
            raise SchemaError(f"'content' of {type_name!r} must be a list")
        children = [self.node_from_json(child) for child in content]
        return self.instantiate(
            type_name, data.get("attributes"), children, marks, assign_identifier=False
        )

    def node_to_json(self, node: Node) -> Dict[str, Any]:
        result: Dict[str, Any] = {"typeName": node.type_name}
        if node.is_text:
            result["text"] = node.text
        else:
            attributes = self.explicit_attrs(node)
            if attributes:
                result["attributes"] = attributes
            if node.children:
                result["content"] = [self.node_to_json(child) for child in node.children]
        if node.marks:
            result["marks"] = [self.mark_to_json(mark) for mark in node.marks]
        return result

    def mark_from_json(self, data: Mapping[str, Any]) -> Mark:
        if not isinstance(data, Mapping) or not isinstance(data.get("typeName"), str):
            raise SchemaError(f"Mark JSON needs a string 'typeName', got {data!r}")
        return self.mark(data["typeName"], data.get("attrs"))

    def mark_to_json(self, mark: Mark) -> Dict[str, Any]:
        result: Dict[str, Any] = {"typeName": mark.type_name}
        attrs = self._emitted_attrs(self.mark_type(mark.type_name).attrs, mark.attrs, mark.given_attrs)
        if attrs:
            result["attrs"] = attrs
        return result

    @staticmethod
    def _emitted_attrs(
        specs: Mapping[str, AttributeSpec], values: Mapping[str, Any], given: FrozenSet[str]
    ) -> Dict[str, Any]:
        """Attributes that were supplied, undeclared, or differ from their default."""
        return {
            name: copy.deepcopy(value)
            for name, value in values.items()
            if name in given
            or name not in specs
            or not specs[name].has_default
            or value != specs[name].default
        }
