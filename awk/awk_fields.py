"""
Field store: the current record ($0), its fields ($1..$NF) and record splitting.
"""
import math
import re
from typing import List

from awk.awk_datatypes import AwkFatalError
from awk.awk_regex import get_cached_regex
from awk.awk_values import Value, to_awk_string

# Field references above this index are fatal.
MAX_FIELD_INDEX = 1_000_000

_BLANKS = re.compile(r"[ \t\n]+")


def split_with_separator(text: str, sep: str, ctx=None) -> List[str]:
    """Split text the way FS (or split()'s third argument) says.

    " " splits on runs of blanks and trims, "" splits into characters,
    any other single character is literal and longer separators are regexes.
    """
    if text == "":
        return []
    if sep == " ":
        stripped = text.strip(" \t\n")
        return _BLANKS.split(stripped) if stripped else []
    if sep == "":
        return list(text)
    if len(sep) == 1 and sep != "\\":
        return text.split(sep)
    try:
        regex = get_cached_regex(ctx, sep) if ctx is not None else re.compile(sep)
    except re.error:
        return text.split(sep)
    return split_with_regex(text, regex)


def split_with_regex(text: str, regex) -> List[str]:
    if text == "":
        return []
    out = []
    pos = 0
    for m in regex.finditer(text):
        # An empty match separates nothing.
        if m.end() == m.start():
            continue
        out.append(text[pos:m.start()])
        pos = m.end()
    out.append(text[pos:])
    return out


def split_records(text: str, rs: str, ctx=None) -> List[str]:
    """Split the input into records.

    A single trailing empty record (from a final separator) is dropped;
    empty records in the middle are kept. RS == "" is paragraph mode.
    """
    if text == "":
        return []
    if rs == "":
        stripped = text.strip("\n")
        if not stripped:
            return []
        return re.split(r"\n\n+", stripped)
    if len(rs) == 1:
        records = text.split(rs)
    else:
        try:
            regex = get_cached_regex(ctx, rs) if ctx is not None else re.compile(rs)
            records = split_with_regex(text, regex)
        except re.error:
            records = text.split(rs)
    if records and records[-1] == "":
        records.pop()
    return records


def set_current_line(ctx, text: str):
    """Replace the record and re-split its fields with the current FS."""
    ctx.line = text
    ctx.fields = split_with_separator(text, ctx.FS, ctx)


def _rebuild_line(ctx):
    ctx.line = ctx.OFS.join(ctx.fields)


def _check_index(index: float) -> int:
    if not math.isfinite(index):
        raise AwkFatalError(f"attempt to access field {index}")
    i = int(index)
    if i < 0:
        raise AwkFatalError(f"attempt to access field {i}")
    if i > MAX_FIELD_INDEX:
        raise AwkFatalError(f"field index {i} too large")
    return i


def get_field(ctx, index: float) -> Value:
    i = _check_index(index)
    if i == 0:
        return ctx.line
    if i <= len(ctx.fields):
        return ctx.fields[i - 1]
    return ""


def set_field(ctx, index: float, value: Value):
    """Assign $index. $0 re-splits; any other field rebuilds $0 with OFS."""
    i = _check_index(index)
    text = to_awk_string(value, ctx.CONVFMT)
    if i == 0:
        set_current_line(ctx, text)
        return
    while len(ctx.fields) < i:
        ctx.fields.append("")
    ctx.fields[i - 1] = text
    _rebuild_line(ctx)


def get_nf(ctx) -> float:
    return float(len(ctx.fields))


def set_nf(ctx, value: float):
    """Assigning NF truncates or pads the fields and rebuilds $0."""
    n = _check_index(value)
    if n < len(ctx.fields):
        del ctx.fields[n:]
    else:
        ctx.fields.extend([""] * (n - len(ctx.fields)))
    _rebuild_line(ctx)
