#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
optaint/codegen.py
==================

Code Generation Bridge.

Serialises a :class:`~optaint.mocks.MockNamespace` into one
self-contained Python source blob that can be executed ahead of
instrumented code in the evaluator's namespace.  The generated code:

1. Imports the native semantics (:mod:`optaint.jsops`) and the four
   substrate functions from the configured substrate module
2. Binds the marker name ``MOCK_FUNCTION_KEY``
3. Defines one function per exported mock, rendered from the template of
   its category
4. Builds an identity registry of the defined mocks and the
   ``__is_mock_function__`` predicate over it

Mocks are never serialised by introspecting the live closures.  Each is
rendered from a declarative per-category template parameterised by its
:class:`~optaint.operators.OperatorSpec`, so executing the blob alone
reproduces the namespace without any reference to construction-time
state.  Definition order is insignificant; mocks do not call each other.
"""

from __future__ import annotations

import logging
import textwrap
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

from optaint.config import EngineConfig
from optaint.errors import ConfigurationError, ErrorCodes, MissingExportError
from optaint.mocks import MOCK_FUNCTION_KEY, MockFunction, MockNamespace
from optaint.operators import Category

logger = logging.getLogger(__name__)

__all__ = [
    "render",
    "render_variable_binding",
    "render_mock_definition",
    "MockCodeGenerator",
    "CodeEmitter",
    "GeneratedMocks",
]


# ═══════════════════════════════════════════════════════════════════════════
# TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════

UNARY_TEMPLATE = '''\
def {name}(value):
    """Mock for unary {symbol!r}."""
    if not is_tainted(value):
        return _js.{native}(value)
    result = _js.{native}(unwrap(value))
    return wrap(result, {symbol!r} + '(' + provenance_name(value) + ')')
'''

BINARY_TEMPLATE = '''\
def {name}(left, right):
    """Mock for binary {symbol!r}."""
    left_label = provenance_name(left) if is_tainted(left) else None
    right_label = provenance_name(right) if is_tainted(right) else None
    if left_label is not None:
        left = unwrap(left)
    if right_label is not None:
        right = unwrap(right)
    result = _js.{native}(left, right)
    if left_label is None and right_label is None:
        return result
    if left_label is None:
        left_label = 'value(' + _js.to_string(left) + ')'
    if right_label is None:
        right_label = 'value(' + _js.to_string(right) + ')'
    return wrap(result, {symbol!r} + '(' + left_label + ',' + right_label + ')')
'''

EQUALITY_TEMPLATE = '''\
def {name}(left, right):
    """Mock for equality {symbol!r}; the result is never tainted."""
    if is_tainted(left):
        left = unwrap(left)
    if is_tainted(right):
        right = unwrap(right)
    return _js.{native}(left, right)
'''

FUNCTION_TEMPLATE = '''\
def {name}(value):
    """Mock for the {symbol!r} sink."""
    if not is_tainted(value):
        return _js.{native}(value)
    label = {symbol!r} + '(' + provenance_name(value) + ')'
    _log.warning('tainted value reached sink %s: %s', {symbol!r}, label)
{sink_hook}    return wrap(_js.{native}(unwrap(value)), label)
'''

SINK_HOOK = "    record_sink({symbol!r}, label)\n"

TEMPLATES: Dict[Category, str] = {
    Category.UNARY: UNARY_TEMPLATE,
    Category.BINARY: BINARY_TEMPLATE,
    Category.EQUALITY: EQUALITY_TEMPLATE,
    Category.FUNCTION: FUNCTION_TEMPLATE,
}

SUBSTRATE_FUNCTIONS = ("is_tainted", "unwrap", "wrap", "provenance_name")


def render_variable_binding(value: Any, name: str) -> str:
    """``name = <literal>``; ``value`` must have a literal ``repr``."""
    return f"{name} = {value!r}\n"


def render_mock_definition(mock: MockFunction, name: str, record_sinks: bool = True) -> str:
    """Render ``mock`` as a top-level function called ``name``."""
    template = TEMPLATES.get(mock.category)
    if template is None:
        raise ConfigurationError(
            f"no code template for category {mock.category!r}",
            code=ErrorCodes.UNCLASSIFIED_OPERATOR,
        )
    fields = {"name": name, "symbol": mock.symbol, "native": mock.spec.native}
    if mock.category is Category.FUNCTION:
        fields["sink_hook"] = SINK_HOOK.format(**fields) if record_sinks else ""
    return template.format(**fields)


# ═══════════════════════════════════════════════════════════════════════════
# CODE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class CodeEmitter:
    """Line buffer for a generated mock module.

    Rendered templates go in verbatim through :meth:`emit_definition`;
    the short glue around them (imports, the identity registry,
    ``__all__``) is emitted line by line at the current block depth.
    """

    def __init__(self, indent_str: str = "    ") -> None:
        self._lines: List[str] = []
        self._indent_str = indent_str
        self._depth = 0

    def emit(self, code: str = "") -> None:
        self._lines.append(self._indent_str * self._depth + code if code.strip() else "")

    def emit_raw(self, code: str) -> None:
        """Append pre-formatted lines untouched by the block depth."""
        self._lines.extend(code.rstrip("\n").split("\n"))

    def emit_blank(self, count: int = 1) -> None:
        self._lines.extend([""] * count)

    def emit_definition(self, source: str) -> None:
        """Append a rendered top-level definition, two blank lines before it."""
        self.emit_blank(2)
        self.emit_raw(source)

    def emit_sequence(self, opener: str, items: Sequence[str], closer: str) -> None:
        """One item per line, each followed by a comma, between ``opener`` and ``closer``."""
        self.emit(opener)
        self._depth += 1
        for item in items:
            self.emit(f"{item},")
        self._depth -= 1
        self.emit(closer)

    @contextmanager
    def block(self, header: str) -> Iterator["CodeEmitter"]:
        self.emit(header)
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def get_code(self) -> str:
        return "".join(line + "\n" for line in self._lines)


# ═══════════════════════════════════════════════════════════════════════════
# GENERATED CODE CONTAINER
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class GeneratedMocks:
    """Container for a generated mock blob and its metadata."""

    code: str
    exports: List[str]
    substrate_module: str
    generation_time: str
    filename: str = "<optaint-mocks>"

    def write_to_file(self, path: str) -> None:
        """Write the generated code to a file."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.code)

    def load(self, namespace: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Execute the blob into ``namespace`` (a fresh dict by default)."""
        namespace = {} if namespace is None else namespace
        namespace.setdefault("__name__", "optaint_generated")
        exec(compile(self.code, self.filename, "exec"), namespace)
        return namespace

    def get_metadata_comment(self) -> str:
        return textwrap.dedent(f"""\
            # Generated by optaint
            # Substrate: {self.substrate_module}
            # Generated: {self.generation_time}
            # Exports: {len(self.exports)}
            """)


# ═══════════════════════════════════════════════════════════════════════════
# GENERATOR
# ═══════════════════════════════════════════════════════════════════════════

class MockCodeGenerator:
    """Renders a mock namespace into injectable source."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()

    def _select(self, namespace: MockNamespace, exports: Optional[Sequence[str]]) -> List[str]:
        if exports is not None:
            names = list(exports)
        else:
            names = list(self.config.exports) or list(namespace)
        for name in names:
            if not isinstance(namespace.get(name), MockFunction):
                raise MissingExportError(
                    name, hint="known mocks: " + ", ".join(sorted(namespace))
                )
        # Duplicates would only redefine the same function.
        return list(dict.fromkeys(names))

    def render(
        self,
        namespace: MockNamespace,
        exports: Optional[Sequence[str]] = None,
    ) -> GeneratedMocks:
        names = self._select(namespace, exports)
        mocks = [namespace[name] for name in names]
        record_sinks = self.config.record_sinks
        needs_sink = record_sinks and any(m.category is Category.FUNCTION for m in mocks)
        imported = SUBSTRATE_FUNCTIONS + (("record_sink",) if needs_sink else ())

        result = GeneratedMocks(
            code="",
            exports=names,
            substrate_module=self.config.substrate_module,
            generation_time=datetime.now().isoformat(timespec="seconds"),
        )
        emitter = CodeEmitter()
        emitter.emit_raw(result.get_metadata_comment())
        emitter.emit("import logging")
        emitter.emit_blank()
        emitter.emit("from optaint import jsops as _js")
        emitter.emit(f"from {self.config.substrate_module} import {', '.join(imported)}")
        emitter.emit_blank()
        emitter.emit("_log = logging.getLogger('optaint.generated')")
        emitter.emit_blank()
        emitter.emit_raw(render_variable_binding(MOCK_FUNCTION_KEY, "MOCK_FUNCTION_KEY"))

        for mock, name in zip(mocks, names):
            emitter.emit_definition(render_mock_definition(mock, name, record_sinks))

        emitter.emit_blank(2)
        emitter.emit_sequence("_MOCK_FUNCTION_IDS = frozenset(id(f) for f in (", names, "))")
        emitter.emit_blank(2)
        with emitter.block(f"def {MOCK_FUNCTION_KEY}(f):"):
            emitter.emit('"""Whether ``f`` is one of the mocks defined above."""')
            emitter.emit("return id(f) in _MOCK_FUNCTION_IDS")
        emitter.emit_blank(2)
        emitter.emit_sequence(
            "__all__ = [",
            [repr(name) for name in ["MOCK_FUNCTION_KEY", MOCK_FUNCTION_KEY, *names]],
            "]",
        )

        result.code = emitter.get_code()
        try:
            compile(result.code, result.filename, "exec")
        except SyntaxError as exc:
            raise ConfigurationError(
                f"generated code does not compile: {exc.msg} (line {exc.lineno})",
                code=ErrorCodes.INVALID_GENERATED_CODE,
                cause=exc,
            ) from exc
        logger.info("generated %d mocks (%d lines)", len(names), emitter.line_count)
        return result


def render(
    namespace: MockNamespace,
    exports: Optional[Sequence[str]] = None,
    config: Optional[EngineConfig] = None,
) -> GeneratedMocks:
    """Render ``namespace`` with a one-off :class:`MockCodeGenerator`."""
    return MockCodeGenerator(config).render(namespace, exports)
