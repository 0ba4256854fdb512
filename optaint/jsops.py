# optaint/jsops.py
"""
Native JavaScript operator semantics over Python values.

The mocks built by :mod:`optaint.mocks` and the code rendered by
:mod:`optaint.codegen` both unwrap tainted operands and then apply the
*literal* operator.  This module is that literal operator: one function
per entry of the operator table, implementing the ECMAScript abstract
operations the operator needs (ToBoolean, ToNumber, ToString, ToInt32,
the abstract relational and equality comparisons).

Value mapping
-------------
=================  ==========================
JavaScript         Python
=================  ==========================
``undefined``      :data:`UNDEFINED`
``null``           ``None``
boolean            ``bool``
number             ``int`` / ``float``
string             ``str``
array              ``list`` / ``tuple``
function           any callable
object             anything else (``dict`` ...)
=================  ==========================

Errors raised here or by the evaluator behind :func:`js_eval` are never
caught: they belong to the instrumented program.
"""

from __future__ import annotations

import builtins
import math
import re
from typing import Any, Callable, Optional, Tuple

__all__ = [
    "UNDEFINED",
    "to_boolean",
    "to_number",
    "to_string",
    "to_int32",
    "to_uint32",
    "to_double",
    "MAX_SAFE_INTEGER",
    "js_typeof",
    "strict_equals",
    "loose_equals",
    "set_evaluator",
]


class _Undefined:
    """The JavaScript ``undefined`` value."""

    __slots__ = ()
    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Undefined, ())


UNDEFINED = _Undefined()

_NUMBER_TYPES = (int, float)

# Integers beyond this magnitude are not exactly representable as doubles.
MAX_SAFE_INTEGER = 2**53

_DECIMAL_LITERAL = re.compile(
    r"[+-]?(?:Infinity|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)", re.ASCII
)
_INTEGER_LITERAL = re.compile(r"[+-]?[0-9]+", re.ASCII)
_RADIX_LITERALS = (
    (re.compile(r"0[xX][0-9a-fA-F]+", re.ASCII), 16),
    (re.compile(r"0[oO][0-7]+", re.ASCII), 8),
    (re.compile(r"0[bB][01]+", re.ASCII), 2),
)


def to_double(number: Any) -> Any:
    """Round a Python number to what a JavaScript number can hold.

    Safe integers stay ``int``; larger ones become the nearest ``float``,
    or a signed infinity when they exceed the double range.
    """
    if isinstance(number, int) and not isinstance(number, bool) and abs(number) > MAX_SAFE_INTEGER:
        try:
            return float(number)
        except OverflowError:
            return math.inf if number > 0 else -math.inf
    return number


# ═══════════════════════════════════════════════════════════════════════
# ABSTRACT OPERATIONS
# ═══════════════════════════════════════════════════════════════════════

def _js_type(value: Any) -> str:
    # bool is an int subclass, so it is tested first.
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, _NUMBER_TYPES):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def _is_primitive(value: Any) -> bool:
    return _js_type(value) != "object"


def to_primitive(value: Any) -> Any:
    """ToPrimitive with the default hint."""
    if _is_primitive(value):
        return value
    return to_string(value)


def to_boolean(value: Any) -> bool:
    kind = _js_type(value)
    if kind in ("undefined", "null"):
        return False
    if kind == "boolean":
        return value
    if kind == "number":
        return not (value == 0 or math.isnan(value))
    if kind == "string":
        return len(value) > 0
    return True


def _string_to_number(text: str) -> Any:
    """StringToNumber: the StrNumericLiteral grammar, anything else is NaN."""
    text = text.strip()
    if not text:
        return 0
    for pattern, base in _RADIX_LITERALS:
        if pattern.fullmatch(text):
            return to_double(int(text[2:], base))
    if _INTEGER_LITERAL.fullmatch(text):
        return to_double(int(text))
    if _DECIMAL_LITERAL.fullmatch(text):
        return float(text)
    return math.nan


def to_number(value: Any) -> Any:
    """ToNumber.  Safe integers stay ``int``; everything else is a double."""
    kind = _js_type(value)
    if kind == "undefined":
        return math.nan
    if kind == "null":
        return 0
    if kind == "boolean":
        return 1 if value else 0
    if kind == "number":
        return to_double(value)
    if kind == "string":
        return _string_to_number(value)
    return to_number(to_primitive(value))


def _shortest_digits(value: float) -> Tuple[str, int]:
    """Digits ``d1..dk`` and exponent ``n`` with ``value == 0.d1..dk * 10**n``."""
    mantissa, _, exponent = repr(value).partition("e")
    whole, _, fraction = mantissa.partition(".")
    digits = whole + fraction
    point = len(whole) + int(exponent or 0)
    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    return stripped.rstrip("0"), point


def _number_to_string(value: Any) -> str:
    """Number::toString (radix 10)."""
    value = to_double(value)
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + _number_to_string(-value)
    digits, n = _shortest_digits(value)
    k = len(digits)
    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * -n + digits
    exponent = f"e{'+' if n >= 1 else '-'}{abs(n - 1)}"
    if k == 1:
        return digits + exponent
    return digits[0] + "." + digits[1:] + exponent


def to_string(value: Any) -> str:
    kind = _js_type(value)
    if kind == "undefined":
        return "undefined"
    if kind == "null":
        return "null"
    if kind == "boolean":
        return "true" if value else "false"
    if kind == "number":
        return _number_to_string(value)
    if kind == "string":
        return value
    if isinstance(value, (list, tuple)):
        return ",".join(
            "" if item is None or item is UNDEFINED else to_string(item)
            for item in value
        )
    if callable(value):
        name = getattr(value, "__name__", "")
        return f"function {name}() {{ [native code] }}"
    return "[object Object]"


def to_int32(value: Any) -> int:
    number = to_number(value)
    if isinstance(number, float) and (math.isnan(number) or math.isinf(number)):
        return 0
    result = int(number) % 2**32
    if result >= 2**31:
        result -= 2**32
    return result


def to_uint32(value: Any) -> int:
    return to_int32(value) % 2**32


def _compare(left: Any, right: Any) -> Optional[bool]:
    """Abstract relational comparison ``left < right``; ``None`` means undefined."""
    pl = to_primitive(left)
    pr = to_primitive(right)
    if isinstance(pl, str) and isinstance(pr, str):
        return pl < pr
    nl = to_number(pl)
    nr = to_number(pr)
    if (isinstance(nl, float) and math.isnan(nl)) or (isinstance(nr, float) and math.isnan(nr)):
        return None
    return nl < nr


def strict_equals(left: Any, right: Any) -> bool:
    kind = _js_type(left)
    if kind != _js_type(right):
        return False
    if kind in ("undefined", "null"):
        return True
    if kind in ("boolean", "number", "string"):
        # NaN != NaN falls out of float comparison.
        return left == right
    return left is right


def loose_equals(left: Any, right: Any) -> bool:
    lk, rk = _js_type(left), _js_type(right)
    if lk == rk:
        return strict_equals(left, right)
    if {lk, rk} <= {"undefined", "null"}:
        return True
    if lk in ("undefined", "null") or rk in ("undefined", "null"):
        return False
    if lk == "boolean":
        return loose_equals(to_number(left), right)
    if rk == "boolean":
        return loose_equals(left, to_number(right))
    if {lk, rk} == {"number", "string"}:
        return strict_equals(to_number(left), to_number(right))
    if lk == "object":
        return loose_equals(to_primitive(left), right)
    if rk == "object":
        return loose_equals(left, to_primitive(right))
    return False


# ═══════════════════════════════════════════════════════════════════════
# UNARY OPERATORS
# ═══════════════════════════════════════════════════════════════════════

def js_logical_not(value: Any) -> bool:
    return not to_boolean(value)


def js_bitwise_not(value: Any) -> int:
    return ~to_int32(value)


def js_typeof(value: Any) -> str:
    kind = _js_type(value)
    if kind == "null":
        return "object"
    if kind == "object" and callable(value):
        return "function"
    return kind


def js_increment(value: Any) -> Any:
    return to_double(to_number(value) + 1)


def js_decrement(value: Any) -> Any:
    return to_double(to_number(value) - 1)


# ═══════════════════════════════════════════════════════════════════════
# BINARY OPERATORS
# ═══════════════════════════════════════════════════════════════════════

def js_add(left: Any, right: Any) -> Any:
    pl = to_primitive(left)
    pr = to_primitive(right)
    if isinstance(pl, str) or isinstance(pr, str):
        return to_string(pl) + to_string(pr)
    return to_double(to_number(pl) + to_number(pr))


def js_subtract(left: Any, right: Any) -> Any:
    return to_double(to_number(left) - to_number(right))


def js_multiply(left: Any, right: Any) -> Any:
    nl, nr = to_number(left), to_number(right)
    if (isinstance(nl, float) and math.isinf(nl) and nr == 0) or (
        isinstance(nr, float) and math.isinf(nr) and nl == 0
    ):
        return math.nan
    return to_double(nl * nr)


def js_divide(left: Any, right: Any) -> Any:
    nl, nr = to_number(left), to_number(right)
    if nr == 0:
        if nl == 0 or (isinstance(nl, float) and math.isnan(nl)):
            return math.nan
        return math.copysign(math.inf, nl) * math.copysign(1.0, nr)
    result = nl / nr
    if isinstance(nl, int) and isinstance(nr, int) and result.is_integer():
        return int(result)
    return result


def js_modulus(left: Any, right: Any) -> Any:
    nl, nr = to_number(left), to_number(right)
    if isinstance(nl, int) and isinstance(nr, int):
        if nr == 0:
            return math.nan
        # Result takes the sign of the dividend.
        remainder = abs(nl) % abs(nr)
        return -remainder if nl < 0 else remainder
    if nr == 0 or math.isnan(nl) or math.isnan(nr) or math.isinf(nl):
        return math.nan
    if math.isinf(nr):
        return nl
    return math.fmod(nl, nr)


def js_bitwise_and(left: Any, right: Any) -> int:
    return to_int32(to_int32(left) & to_int32(right))


def js_bitwise_or(left: Any, right: Any) -> int:
    return to_int32(to_int32(left) | to_int32(right))


def js_bitwise_xor(left: Any, right: Any) -> int:
    return to_int32(to_int32(left) ^ to_int32(right))


def js_shift_left(left: Any, right: Any) -> int:
    return to_int32(to_int32(left) << (to_uint32(right) & 31))


def js_shift_right(left: Any, right: Any) -> int:
    return to_int32(left) >> (to_uint32(right) & 31)


def js_logical_and(left: Any, right: Any) -> Any:
    # Both operands arrive already evaluated; the result is an operand.
    return right if to_boolean(left) else left


def js_logical_or(left: Any, right: Any) -> Any:
    return left if to_boolean(left) else right


def js_greater(left: Any, right: Any) -> bool:
    return _compare(right, left) is True


def js_lesser(left: Any, right: Any) -> bool:
    return _compare(left, right) is True


def js_greater_equal(left: Any, right: Any) -> bool:
    return _compare(left, right) is False


def js_lesser_equal(left: Any, right: Any) -> bool:
    return _compare(right, left) is False


# ═══════════════════════════════════════════════════════════════════════
# EQUALITY OPERATORS
# ═══════════════════════════════════════════════════════════════════════

def js_double_equal(left: Any, right: Any) -> bool:
    return loose_equals(left, right)


def js_triple_equal(left: Any, right: Any) -> bool:
    return strict_equals(left, right)


def js_double_inequal(left: Any, right: Any) -> bool:
    return not loose_equals(left, right)


def js_triple_inequal(left: Any, right: Any) -> bool:
    return not strict_equals(left, right)


# ═══════════════════════════════════════════════════════════════════════
# FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════

def _default_evaluator(code: str) -> Any:
    return builtins.eval(code, {"__builtins__": {}}, {})


_evaluator: Callable[[str], Any] = _default_evaluator


def set_evaluator(evaluator: Optional[Callable[[str], Any]]) -> Callable[[str], Any]:
    """Install the host's dynamic-code evaluator; returns the previous one.

    ``None`` restores the default, which evaluates the string as a Python
    expression with no builtins.
    """
    global _evaluator
    previous = _evaluator
    _evaluator = evaluator or _default_evaluator
    return previous


def js_eval(code: Any) -> Any:
    """Global ``eval``: non-string arguments are returned unchanged."""
    if not isinstance(code, str):
        return code
    return _evaluator(code)
