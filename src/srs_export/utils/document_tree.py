"""
Ordered in-memory document tree and its serializer.

Builders assemble ObjectNode/ArrayNode/ScalarNode trees; serialize_document walks the
tree once. Separators are placed by joining siblings, so the last property or element
of every object and array is emitted without a trailing comma.
"""
from __future__ import annotations


import logging
from typing import Any, Iterable, List, Optional, Tuple, Union


from srs_export.utils.json_format_utils import (
    DEFAULT_DECIMAL_PLACES, DEFAULT_INDENT_SIZE, format_value, indent, quote_key, render_array
)


logger = logging.getLogger(__name__)


class ScalarNode:
    """Leaf value. With quote=False a string is emitted verbatim."""

    __slots__ = ("value", "quote")

    def __init__(self, value: Any, quote: bool = True) -> None:
        self.value = value
        self.quote = quote

    def __repr__(self) -> str:
        return f"ScalarNode({self.value!r}, quote={self.quote})"


class ArrayNode:
    """Ordered sequence of nodes."""

    __slots__ = ("items",)

    def __init__(self, items: Optional[Iterable[Any]] = None) -> None:
        self.items: List[Node] = [as_node(item) for item in (items or [])]

    def append(self, item: Any) -> ArrayNode:
        self.items.append(as_node(item))
        return self

    @property
    def holds_objects(self) -> bool:
        """True when any element is an object or array, selecting the multi-line layout."""
        return any(isinstance(item, (ObjectNode, ArrayNode)) for item in self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __repr__(self) -> str:
        return f"ArrayNode({self.items!r})"


class ObjectNode:
    """Ordered mapping of property names to nodes."""

    __slots__ = ("properties",)

    def __init__(self) -> None:
        self.properties: List[Tuple[str, Node]] = []

    def add(self, key: str, value: Any) -> ObjectNode:
        """Append a property; plain values are wrapped in a ScalarNode. Returns self."""
        if key in self.keys():
            logger.warning(f"Duplicate property '{key}' added to document object.")
        self.properties.append((key, as_node(value)))
        return self

    def add_object(self, key: str) -> ObjectNode:
        """Append and return a new child object."""
        child = ObjectNode()
        self.add(key, child)
        return child

    def add_array(self, key: str, items: Optional[Iterable[Any]] = None) -> ArrayNode:
        """Append and return a new child array."""
        child = ArrayNode(items)
        self.add(key, child)
        return child

    def keys(self) -> List[str]:
        return [key for key, _ in self.properties]

    def get(self, key: str) -> Optional[Node]:
        for prop_key, node in self.properties:
            if prop_key == key:
                return node
        return None

    def __contains__(self, key: object) -> bool:
        return key in self.keys()

    def __len__(self) -> int:
        return len(self.properties)

    def __repr__(self) -> str:
        return f"ObjectNode({self.properties!r})"


Node = Union[ObjectNode, ArrayNode, ScalarNode]


def as_node(value: Any) -> Node:
    """Wrap a plain value in a ScalarNode; nodes pass through unchanged."""
    if isinstance(value, (ObjectNode, ArrayNode, ScalarNode)):
        return value
    if isinstance(value, (list, tuple)):
        return ArrayNode(value)
    return ScalarNode(value)


def _serialize_node(node: Node, level: int, indent_size: int, decimal_places: int) -> str:
    """Serialize a node whose first line is already positioned at the given nesting level."""
    if isinstance(node, ScalarNode):
        return format_value(node.value, quote_strings=node.quote, decimal_places=decimal_places)

    if isinstance(node, ArrayNode):
        as_objects = node.holds_objects
        if as_objects:
            fragments = [
                indent(level + 1, indent_size) + _serialize_node(item, level + 1, indent_size, decimal_places)
                for item in node.items
            ]
        else:
            fragments = [_serialize_node(item, level, indent_size, decimal_places) for item in node.items]
        return render_array(fragments, as_objects, level, indent_size)

    if isinstance(node, ObjectNode):
        if not node.properties:
            return "{}"
        lines = [
            f"{indent(level + 1, indent_size)}{quote_key(key)}: "
            f"{_serialize_node(child, level + 1, indent_size, decimal_places)}"
            for key, child in node.properties
        ]
        return "{\n" + ",\n".join(lines) + "\n" + indent(level, indent_size) + "}"

    raise TypeError(f"Cannot serialize object of type {type(node).__name__} as a document node.")


def serialize_document(
    root: Node,
    indent_size: int = DEFAULT_INDENT_SIZE,
    decimal_places: int = DEFAULT_DECIMAL_PLACES,
) -> str:
    """Serialize a document tree to text, terminated by a newline."""
    return _serialize_node(root, 0, indent_size, decimal_places) + "\n"
