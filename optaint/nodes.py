# optaint/nodes.py
"""
Syntax tree node definitions.

The rewrite catalog works on ESTree-shaped JavaScript syntax trees as
produced by an external parser (esprima, acorn, ...) and exchanged as
JSON.  Instead of dispatching on ``node["type"]`` strings, the engine
converts each tree into a closed set of frozen dataclasses:

* the seven kinds the catalog can rewrite or must inspect
  (:class:`Identifier`, :class:`Literal`, :class:`UnaryExpression`,
  :class:`UpdateExpression`, :class:`BinaryExpression`,
  :class:`LogicalExpression`, :class:`CallExpression`), and
* :class:`Opaque` for every other ESTree kind, whose fields are kept in
  source order so the tree can be walked and converted back losslessly.

Design invariants
-----------------
* Every node is a frozen dataclass; child sequences are tuples.
* Position information (``loc``, ``range``, ``start``, ``end``) and any
  key the class does not model is preserved in ``extra``.
* ``to_estree(from_estree(d)) == d`` for any well-formed ESTree dict.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, Mapping, Tuple

from optaint.errors import NodeConversionError

__all__ = [
    "NodeKind",
    "Node",
    "Identifier",
    "Literal",
    "UnaryExpression",
    "UpdateExpression",
    "BinaryExpression",
    "LogicalExpression",
    "CallExpression",
    "Opaque",
    "from_estree",
    "to_estree",
    "to_sexp",
    "format_sexp",
    "Symbol",
    "iter_nodes",
]

Extra = Tuple[Tuple[str, Any], ...]


class NodeKind(Enum):
    IDENTIFIER = "Identifier"
    LITERAL = "Literal"
    UNARY = "UnaryExpression"
    UPDATE = "UpdateExpression"
    BINARY = "BinaryExpression"
    LOGICAL = "LogicalExpression"
    CALL = "CallExpression"
    OPAQUE = "*"


class Node:
    """Base of the closed node variant.

    Subclasses list the fields holding child nodes in ``CHILD_FIELDS``;
    :meth:`map_children` and :meth:`children` are driven by it.
    """

    __slots__ = ()

    kind: ClassVar[NodeKind]
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ()

    @property
    def type(self) -> str:
        return self.kind.value

    def children(self) -> Iterator["Node"]:
        for name in self.CHILD_FIELDS:
            yield from _iter_child_value(getattr(self, name))

    def map_children(self, fn: Callable[["Node"], "Node"]) -> "Node":
        """Return a copy whose children are replaced by ``fn(child)``."""
        changes = {
            name: _map_child_value(getattr(self, name), fn) for name in self.CHILD_FIELDS
        }
        if all(changes[name] is getattr(self, name) for name in changes):
            return self
        return dataclasses.replace(self, **changes)


def _iter_child_value(value: Any) -> Iterator[Node]:
    if isinstance(value, Node):
        yield value
    elif isinstance(value, tuple):
        for item in value:
            yield from _iter_child_value(item)


def _map_child_value(value: Any, fn: Callable[[Node], Node]) -> Any:
    if isinstance(value, Node):
        return fn(value)
    if isinstance(value, tuple):
        mapped = tuple(_map_child_value(item, fn) for item in value)
        if all(a is b for a, b in zip(mapped, value)):
            return value
        return mapped
    return value


@dataclass(frozen=True, slots=True)
class Identifier(Node):
    name: str
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.IDENTIFIER


@dataclass(frozen=True, slots=True)
class Literal(Node):
    value: Any
    raw: Any = None
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.LITERAL


@dataclass(frozen=True, slots=True)
class UnaryExpression(Node):
    """``!x``, ``~x``, ``typeof x``, ``-x``, ``void x`` ..."""

    operator: str
    argument: Node
    prefix: bool = True
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.UNARY
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(frozen=True, slots=True)
class UpdateExpression(Node):
    """``++x``, ``x++``, ``--x``, ``x--``."""

    operator: str
    argument: Node
    prefix: bool = False
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.UPDATE
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ("argument",)


@dataclass(frozen=True, slots=True)
class BinaryExpression(Node):
    operator: str
    left: Node
    right: Node
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.BINARY
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(frozen=True, slots=True)
class LogicalExpression(Node):
    """``&&``, ``||`` and ``??``."""

    operator: str
    left: Node
    right: Node
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.LOGICAL
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ("left", "right")


@dataclass(frozen=True, slots=True)
class CallExpression(Node):
    callee: Node
    arguments: Tuple[Node, ...] = ()
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.CALL
    CHILD_FIELDS: ClassVar[Tuple[str, ...]] = ("callee", "arguments")

    @property
    def callee_name(self) -> str | None:
        """Name of the callee when it is a plain identifier."""
        if isinstance(self.callee, Identifier):
            return self.callee.name
        return None


@dataclass(frozen=True, slots=True)
class Opaque(Node):
    """Any ESTree node kind the catalog never rewrites.

    ``fields`` keeps ``(key, value)`` pairs in source order; values are
    nodes, tuples (ESTree arrays) or JSON scalars.
    """

    node_type: str
    fields: Tuple[Tuple[str, Any], ...] = ()
    extra: Extra = ()

    kind: ClassVar[NodeKind] = NodeKind.OPAQUE

    @property
    def type(self) -> str:
        return self.node_type

    def field(self, key: str, default: Any = None) -> Any:
        for name, value in self.fields:
            if name == key:
                return value
        return default

    def children(self) -> Iterator[Node]:
        for _, value in self.fields:
            yield from _iter_child_value(value)

    def map_children(self, fn: Callable[[Node], Node]) -> Node:
        mapped = tuple((key, _map_child_value(value, fn)) for key, value in self.fields)
        if all(new[1] is old[1] for new, old in zip(mapped, self.fields)):
            return self
        return dataclasses.replace(self, fields=mapped)


def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order iteration over ``root`` and all of its descendants."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(node.children())))


# ═══════════════════════════════════════════════════════════════════════
# ESTREE CONVERSION
# ═══════════════════════════════════════════════════════════════════════

POSITION_KEYS = ("loc", "range", "start", "end")

# ESTree type -> (class, modelled keys)
_MODELLED: Dict[str, Tuple[type, Tuple[str, ...]]] = {
    "Identifier": (Identifier, ("name",)),
    "Literal": (Literal, ("value", "raw")),
    "UnaryExpression": (UnaryExpression, ("operator", "argument", "prefix")),
    "UpdateExpression": (UpdateExpression, ("operator", "argument", "prefix")),
    "BinaryExpression": (BinaryExpression, ("operator", "left", "right")),
    "LogicalExpression": (LogicalExpression, ("operator", "left", "right")),
    "CallExpression": (CallExpression, ("callee", "arguments")),
}

_OPTIONAL_KEYS = {"raw", "prefix"}


def _check_node(obj: Any) -> str:
    if not isinstance(obj, Mapping):
        raise NodeConversionError(f"expected an ESTree node object, got {type(obj).__name__}")
    node_type = obj.get("type")
    if not isinstance(node_type, str):
        raise NodeConversionError("ESTree node has no 'type' string", hint=repr(dict(obj))[:80])
    return node_type


def _child_objects(obj: Mapping[str, Any], node_type: str) -> Iterator[Mapping[str, Any]]:
    if node_type == "Literal":
        return
    modelled = _MODELLED.get(node_type)
    if modelled is None:
        pending = [
            value for key, value in obj.items() if key != "type" and key not in POSITION_KEYS
        ]
    else:
        pending = [obj[key] for key in modelled[1] if key in obj]
    while pending:
        value = pending.pop()
        if isinstance(value, Mapping) and "type" in value:
            yield value
        elif isinstance(value, list):
            pending.extend(value)


def _convert_value(value: Any, converted: Dict[int, Node]) -> Any:
    if isinstance(value, Mapping) and "type" in value:
        return converted[id(value)]
    if isinstance(value, list):
        return tuple(_convert_value(item, converted) for item in value)
    return value


def _convert_node(obj: Mapping[str, Any], node_type: str, converted: Dict[int, Node]) -> Node:
    modelled = _MODELLED.get(node_type)
    if modelled is None:
        fields = tuple(
            (key, _convert_value(value, converted))
            for key, value in obj.items()
            if key != "type" and key not in POSITION_KEYS
        )
        extra = tuple((key, obj[key]) for key in POSITION_KEYS if key in obj)
        return Opaque(node_type, fields, extra)

    cls, keys = modelled
    kwargs = {}
    for key in keys:
        if key not in obj:
            if key in _OPTIONAL_KEYS:
                continue
            raise NodeConversionError(f"{node_type} node is missing {key!r}")
        if node_type == "Literal":
            # A literal's value is data, never a child node.
            kwargs[key] = obj[key]
        else:
            kwargs[key] = _convert_value(obj[key], converted)
    for key in ("argument", "left", "right", "callee"):
        if key in kwargs and not isinstance(kwargs[key], Node):
            raise NodeConversionError(f"{node_type}.{key} is not a node")
    extra = tuple(
        (key, value) for key, value in obj.items() if key != "type" and key not in keys
    )
    return cls(**kwargs, extra=extra)


def from_estree(obj: Mapping[str, Any]) -> Node:
    """Convert an ESTree dictionary (parsed JSON) into a :class:`Node` tree.

    The walk uses an explicit stack, so nesting depth is bounded by memory
    rather than the interpreter's recursion limit.
    """
    converted: Dict[int, Node] = {}
    active = set()
    stack = [(obj, False)]
    while stack:
        current, expanded = stack.pop()
        key = id(current)
        if key in converted:
            continue
        node_type = _check_node(current)
        if expanded:
            converted[key] = _convert_node(current, node_type, converted)
            active.discard(key)
            continue
        if key in active:
            raise NodeConversionError(f"{node_type} node contains itself")
        active.add(key)
        stack.append((current, True))
        for child in _child_objects(current, node_type):
            if id(child) not in converted:
                stack.append((child, False))
    return converted[id(obj)]


def _export_value(value: Any, exported: Dict[int, Dict[str, Any]]) -> Any:
    if isinstance(value, Node):
        return exported[id(value)]
    if isinstance(value, tuple):
        return [_export_value(item, exported) for item in value]
    return value


def _export_node(node: Node, exported: Dict[int, Dict[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {"type": node.type}
    if isinstance(node, Opaque):
        for key, value in node.fields:
            result[key] = _export_value(value, exported)
    else:
        for field in dataclasses.fields(node):
            if field.name == "extra":
                continue
            value = getattr(node, field.name)
            if field.name == "raw" and value is None:
                continue
            result[field.name] = _export_value(value, exported)
    for key, value in node.extra:
        result[key] = value
    return result


def to_estree(node: Node) -> Dict[str, Any]:
    """Convert a :class:`Node` tree back into an ESTree dictionary."""
    exported: Dict[int, Dict[str, Any]] = {}
    # Reversed pre-order visits every child before its parent.
    for current in reversed(list(iter_nodes(node))):
        exported[id(current)] = _export_node(current, exported)
    return exported[id(node)]


# ═══════════════════════════════════════════════════════════════════════
# S-EXPRESSION RENDERING
# ═══════════════════════════════════════════════════════════════════════

class Symbol(str):
    """A bare S-expression atom; plain ``str`` atoms are printed quoted."""

    __slots__ = ()


def format_sexp(sexp: Any) -> str:
    """Format a nested list of atoms on a single line."""
    if isinstance(sexp, Symbol):
        return str(sexp)
    if isinstance(sexp, bool):
        return "true" if sexp else "false"
    if isinstance(sexp, (int, float)):
        return str(sexp)
    if isinstance(sexp, str):
        escaped = sexp.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(sexp, (list, tuple)):
        return "(" + " ".join(format_sexp(item) for item in sexp) + ")"
    return repr(sexp)


def _sexp_atom(value: Any) -> Any:
    if value is None:
        return Symbol("null")
    if isinstance(value, bool):
        return Symbol("true" if value else "false")
    if isinstance(value, (int, float, str)):
        return value
    return str(value)


def _sexp_tree(node: Node) -> list:
    head = Symbol(node.type)
    if isinstance(node, Identifier):
        return [head, node.name]
    if isinstance(node, Literal):
        return [head, _sexp_atom(node.value)]
    if isinstance(node, (UnaryExpression, UpdateExpression)):
        return [head, node.operator, _sexp_tree(node.argument)]
    if isinstance(node, (BinaryExpression, LogicalExpression)):
        return [head, node.operator, _sexp_tree(node.left), _sexp_tree(node.right)]
    if isinstance(node, CallExpression):
        return [head, _sexp_tree(node.callee)] + [_sexp_tree(arg) for arg in node.arguments]
    return [head] + [_sexp_tree(child) for child in node.children()]


def to_sexp(node: Node) -> str:
    """Render a tree as an S-expression (debugging aid, lossy)."""
    return format_sexp(_sexp_tree(node))
