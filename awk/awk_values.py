"""
Value & coercion model.

A scalar is either a float or a str. There is no boolean type: comparisons
and logical operators produce 0.0 / 1.0. Every function in this module is
pure and total; malformed input degrades to 0 / "" instead of raising.
"""
import math
import re
from typing import Union

Value = Union[float, str]

DEFAULT_CONVFMT = "%.6g"

# Longest numeric prefix, as strtod would consume it (no hex, no inf/nan).
_NUMBER_PREFIX = re.compile(r"[ \t\n\r\f\v]*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
# Whole-string numeric grammar used by looks_numeric.
_NUMBER_FULL = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_INT_PRINT_LIMIT = 1e16


def is_truthy(val: Value) -> bool:
    """Numbers are truthy if non-zero, strings if non-empty."""
    if isinstance(val, str):
        return val != ""
    return val != 0


def to_number(val: Value) -> float:
    """Coerce to a number. Unparsable or empty strings become 0."""
    if not isinstance(val, str):
        return float(val)
    m = _NUMBER_PREFIX.match(val)
    if not m:
        return 0.0
    try:
        return float(m.group(1))
    except (ValueError, OverflowError):
        return 0.0


def format_number(num: float, fmt: str = DEFAULT_CONVFMT) -> str:
    """Render a number the way AWK does: integers plainly, others through fmt."""
    if math.isnan(num):
        return "-nan" if math.copysign(1.0, num) < 0 else "nan"
    if math.isinf(num):
        return "-inf" if num < 0 else "inf"
    if num == int(num) and abs(num) < _INT_PRINT_LIMIT:
        return str(int(num))
    try:
        return fmt % num
    except (TypeError, ValueError):
        return DEFAULT_CONVFMT % num


def to_awk_string(val: Value, convfmt: str = DEFAULT_CONVFMT) -> str:
    """Coerce to a string; numbers use CONVFMT unless integral."""
    if isinstance(val, str):
        return val
    return format_number(float(val), convfmt)


def looks_numeric(val: Value) -> bool:
    """True for numbers and for strings whose trimmed text is entirely a number.

    Independent of to_number: "3abc" converts to 3 but does not look numeric.
    """
    if not isinstance(val, str):
        return True
    s = val.strip()
    if not s:
        return False
    return _NUMBER_FULL.fullmatch(s) is not None


def to_integer(val: Value) -> int:
    """Truncate toward zero. Non-finite values become 0."""
    num = to_number(val)
    if not math.isfinite(num):
        return 0
    return int(num)


def bool_value(flag: bool) -> float:
    return 1.0 if flag else 0.0
