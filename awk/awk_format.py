"""
printf/sprintf formatting.

Covers the conversions scripts actually use (%c %d %i %o %x %X %u %e %E
%f %F %g %G %s %%), with flags, width, precision and `*`. Missing
arguments format as empty string / zero. This is not a byte-exact port of
any C library's printf.
"""
import math
import re
from typing import List

from awk.awk_values import Value, to_awk_string, to_number

# Widths and precisions above this are clamped.
MAX_WIDTH = 65536

_SPEC = re.compile(r"%([-+ #0]*)(\*|\d+)?(?:\.(\*|\d*))?[hlLqjzt]*([a-zA-Z%])?")


class _Args:
    """Sequential argument reader."""
    def __init__(self, values: List[Value]):
        self.values = values
        self.pos = 0

    def next(self) -> Value:
        if self.pos < len(self.values):
            val = self.values[self.pos]
            self.pos += 1
            return val
        self.pos += 1
        return ""


def _clamp(n: int) -> int:
    return max(-MAX_WIDTH, min(MAX_WIDTH, n))


def _int_arg(val: Value) -> int:
    num = to_number(val)
    if not math.isfinite(num):
        return 0
    return int(num)


def _format_char(val: Value) -> str:
    if isinstance(val, str):
        return val[:1]
    code = _int_arg(val)
    if 0 <= code < 0x110000:
        return chr(code)
    return ""


def format_printf(fmt: str, values: List[Value], convfmt: str = "%.6g") -> str:
    out = []
    args = _Args(values)
    i = 0
    n = len(fmt)
    while i < n:
        pct = fmt.find("%", i)
        if pct == -1:
            out.append(fmt[i:])
            break
        out.append(fmt[i:pct])
        m = _SPEC.match(fmt, pct)
        conv = m.group(4) if m else None
        if conv is None:
            # Dangling '%' at the end or before an unknown byte: keep it.
            out.append("%")
            i = pct + 1
            continue
        i = m.end()
        if conv == "%":
            out.append("%")
            continue
        flags = m.group(1) or ""
        width = m.group(2)
        precision = m.group(3)
        if width == "*":
            w = _clamp(_int_arg(args.next()))
            if w < 0:
                flags += "-"
                w = -w
            width = str(w)
        elif width is not None:
            width = str(_clamp(int(width)))
        if precision == "*":
            p = _clamp(_int_arg(args.next()))
            precision = str(p) if p >= 0 else None
        elif precision is not None:
            precision = str(_clamp(int(precision or "0")))
        spec = "%" + flags + (width or "") + ("." + precision if precision is not None else "")
        out.append(_convert(conv, spec, args.next(), flags, width, convfmt))
    return "".join(out)


def _convert(conv: str, spec: str, val: Value, flags: str, width, convfmt: str) -> str:
    match conv:
        case "d" | "i" | "u":
            num = to_number(val)
            if not math.isfinite(num):
                return (("%" + flags + (width or "") + "s") % to_awk_string(num))
            return (spec + "d") % int(num)
        case "o" | "x" | "X":
            num = _int_arg(val)
            if num < 0:
                num &= 0xFFFFFFFFFFFFFFFF
            return (spec + conv) % num
        case "e" | "E" | "f" | "F" | "g" | "G":
            return (spec + conv) % to_number(val)
        case "c":
            return (spec + "s") % _format_char(val)
        case "s":
            return (spec + "s") % to_awk_string(val, convfmt)
        case _:
            # Unknown conversion: emit the directive text unchanged.
            return spec + conv
