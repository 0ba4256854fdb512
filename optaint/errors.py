# optaint/errors.py
"""
optaint Error Types

Error hierarchy and structured error codes for the instrumentation
engine.  Every error raised while the operator table, the rule catalog,
the mock namespace or the generated code is being built is fatal: the
engine never runs with a partially constructed catalog or mock set.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────┐
│  OptaintError (base)                                                │
│  ├── ConfigurationError        - fatal, raised during construction  │
│  │   ├── UnclassifiedOperatorError                                  │
│  │   ├── DuplicateOperatorError                                     │
│  │   ├── OverlappingRuleError                                       │
│  │   ├── MissingExportError                                         │
│  │   └── ConfigFileError                                            │
│  ├── NodeConversionError       - malformed ESTree input             │
│  └── ProvenanceSyntaxError     - unparseable provenance label       │
└─────────────────────────────────────────────────────────────────────┘

Errors raised by native operator semantics at call time are NOT part of
this hierarchy: mocks let them propagate unmodified to the instrumented
program.

Error Codes:
────────────
Codes follow the pattern OPT-NNNN:
  - 1000-1999: operator table / catalog construction
  - 2000-2999: mock construction and code generation
  - 3000-3999: configuration loading
  - 4000-4999: input conversion (ESTree, provenance labels)
  - 9000-9999: internal errors
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Dict, Optional


@unique
class ErrorPhase(Enum):
    """Engine phase in which an error was detected."""

    CATALOG = "catalog"
    MOCKS = "mocks"
    CODEGEN = "codegen"
    CONFIG = "config"
    INPUT = "input"
    INTERNAL = "internal"


class ErrorCode:
    """
    Structured error code.

    Codes are ``OPT-NNNN``; the phase is carried alongside so the CLI can
    decide between "bad input" and "broken configuration" exit codes.
    """

    __slots__ = ("prefix", "number", "phase", "title")

    def __init__(self, number: int, phase: ErrorPhase, title: str, prefix: str = "OPT") -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.title = title

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    UNKNOWN_CATEGORY = ErrorCode(1001, ErrorPhase.CATALOG, "unknown operator category")
    DUPLICATE_SYMBOL = ErrorCode(1002, ErrorPhase.CATALOG, "operator listed twice")
    DUPLICATE_REPLACEMENT = ErrorCode(1003, ErrorPhase.CATALOG, "replacement name reused")
    UNKNOWN_NATIVE = ErrorCode(1004, ErrorPhase.CATALOG, "native semantics not found")
    OVERLAPPING_RULES = ErrorCode(1005, ErrorPhase.CATALOG, "rewrite rules overlap")
    UNKNOWN_SYMBOL = ErrorCode(1006, ErrorPhase.CATALOG, "symbol not in operator table")
    INVALID_REPLACEMENT = ErrorCode(1007, ErrorPhase.CATALOG, "replacement name is not an identifier")

    UNCLASSIFIED_OPERATOR = ErrorCode(2001, ErrorPhase.MOCKS, "no mock factory for category")
    MISSING_EXPORT = ErrorCode(2101, ErrorPhase.CODEGEN, "export has no live definition")
    INVALID_GENERATED_CODE = ErrorCode(2102, ErrorPhase.CODEGEN, "generated code does not compile")

    CONFIG_FILE = ErrorCode(3001, ErrorPhase.CONFIG, "invalid configuration file")
    CONFIG_KEY = ErrorCode(3002, ErrorPhase.CONFIG, "unknown configuration key")

    BAD_NODE = ErrorCode(4001, ErrorPhase.INPUT, "malformed ESTree node")
    BAD_LABEL = ErrorCode(4101, ErrorPhase.INPUT, "malformed provenance label")

    INTERNAL_ERROR = ErrorCode(9001, ErrorPhase.INTERNAL, "internal error")

    @classmethod
    def all_codes(cls) -> Dict[str, ErrorCode]:
        """Return every predefined code keyed by its ``OPT-NNNN`` string."""
        return {
            value.code: value
            for value in vars(cls).values()
            if isinstance(value, ErrorCode)
        }


# ═══════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════

class OptaintError(Exception):
    """
    Base exception for all optaint errors.

    Carries an :class:`ErrorCode` and an optional hint shown by the CLI.
    """

    default_code: ErrorCode = ErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        hint: str = "",
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.hint = hint
        self.cause = cause

    @property
    def phase(self) -> ErrorPhase:
        return self.code.phase

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text


class ConfigurationError(OptaintError):
    """Fatal error while building the table, catalog, mocks or generated code."""


class UnclassifiedOperatorError(ConfigurationError):
    """An operator cannot be placed into one of the four categories."""

    default_code = ErrorCodes.UNCLASSIFIED_OPERATOR

    def __init__(self, symbol: str, category: object = None, **kwargs) -> None:
        if category is None:
            message = f"operator {symbol!r} has no category"
        else:
            message = f"operator {symbol!r} has unsupported category {category!r}"
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.category = category


class DuplicateOperatorError(ConfigurationError):
    """A symbol or replacement name appears more than once in the table."""

    default_code = ErrorCodes.DUPLICATE_SYMBOL


class OverlappingRuleError(ConfigurationError):
    """Two rewrite rules would match the same syntax node."""

    default_code = ErrorCodes.OVERLAPPING_RULES


class MissingExportError(ConfigurationError):
    """A requested export has no live mock definition at generation time."""

    default_code = ErrorCodes.MISSING_EXPORT

    def __init__(self, name: str, **kwargs) -> None:
        super().__init__(f"requested export {name!r} has no live mock definition", **kwargs)
        self.name = name


class ConfigFileError(ConfigurationError):
    """The engine configuration could not be loaded."""

    default_code = ErrorCodes.CONFIG_FILE


class NodeConversionError(OptaintError):
    """An ESTree dictionary could not be converted to a syntax node."""

    default_code = ErrorCodes.BAD_NODE


class ProvenanceSyntaxError(OptaintError):
    """A provenance label does not follow the ``op(repr,...)`` shape."""

    default_code = ErrorCodes.BAD_LABEL

    def __init__(self, label: str, detail: str = "", **kwargs) -> None:
        message = f"cannot parse provenance label {label!r}"
        if detail:
            message += f": {detail}"
        super().__init__(message, **kwargs)
        self.label = label
