"""
Regex cache and AWK-to-Python regular expression translation.

Patterns are compiled once per runtime context and memoised in
`ctx.regex_cache`. Compile failures propagate from `get_cached_regex` as
`re.error`; `match_regex` fails soft and reports "no match".
"""
import re
from typing import Optional

# Distinct patterns kept per context; the cache is cleared when full.
MAX_CACHED_PATTERNS = 512

POSIX_CLASSES = {
    "alpha": "a-zA-Z",
    "digit": "0-9",
    "alnum": "a-zA-Z0-9",
    "upper": "A-Z",
    "lower": "a-z",
    "space": " \\t\\n\\r\\f\\v",
    "blank": " \\t",
    "punct": "!-/:-@\\[-`{-~",
    "print": " -~",
    "graph": "!-~",
    "cntrl": "\\x00-\\x1f\\x7f",
    "xdigit": "0-9A-Fa-f",
    "word": "a-zA-Z0-9_",
}

# gawk word-boundary and buffer anchors
_ESCAPES = {
    "y": "\\b",
    "<": "\\b",
    ">": "\\b",
    "B": "\\B",
    "`": "\\A",
    "'": "\\Z",
}


def _translate_bracket(pattern: str, i: int) -> tuple[str, int]:
    """Translate a bracket expression starting at pattern[i] == '['.

    Returns the Python text and the index just past the closing ']'.
    """
    n = len(pattern)
    out = ["["]
    i += 1
    if i < n and pattern[i] == "^":
        out.append("^")
        i += 1
    # A ']' right after '[' or '[^' is a literal member.
    if i < n and pattern[i] == "]":
        out.append("\\]")
        i += 1
    while i < n:
        c = pattern[i]
        if c == "]":
            out.append("]")
            return "".join(out), i + 1
        if c == "[" and i + 1 < n and pattern[i + 1] == ":":
            end = pattern.find(":]", i + 2)
            if end != -1:
                name = pattern[i + 2:end]
                if name in POSIX_CLASSES:
                    out.append(POSIX_CLASSES[name])
                    i = end + 2
                    continue
        if c == "\\" and i + 1 < n:
            out.append(pattern[i:i + 2])
            i += 2
            continue
        if c == "[":
            # A literal '[' inside a class must be escaped for Python.
            out.append("\\[")
            i += 1
            continue
        out.append(c)
        i += 1
    # Unterminated bracket: hand it to re.compile to fail there.
    return "".join(out), i


def translate(pattern: str) -> str:
    """Translate an AWK extended regular expression into Python syntax."""
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "[":
            text, i = _translate_bracket(pattern, i)
            out.append(text)
            continue
        if c == "\\" and i + 1 < n:
            nxt = pattern[i + 1]
            out.append(_ESCAPES.get(nxt, "\\" + nxt))
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)


def get_cached_regex(ctx, pattern: str, flags: int = 0) -> "re.Pattern[str]":
    """Return the compiled pattern for ctx, compiling and caching on first use."""
    key = (pattern, flags)
    cache = ctx.regex_cache
    regex = cache.get(key)
    if regex is None:
        regex = re.compile(translate(pattern), flags)
        if len(cache) >= MAX_CACHED_PATTERNS:
            cache.clear()
        cache[key] = regex
    return regex


def match_regex(pattern: str, text: str, ctx=None) -> bool:
    """Search text for pattern. A pattern that fails to compile never matches."""
    try:
        regex = get_cached_regex(ctx, pattern) if ctx is not None else re.compile(translate(pattern))
    except (re.error, OverflowError, RecursionError):
        return False
    return regex.search(text) is not None


def search_regex(ctx, pattern: str, text: str) -> Optional["re.Match[str]"]:
    """Like match_regex but returns the match object (or None)."""
    try:
        regex = get_cached_regex(ctx, pattern)
    except (re.error, OverflowError, RecursionError):
        return None
    return regex.search(text)
