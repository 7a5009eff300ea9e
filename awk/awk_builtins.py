"""
The built-in function table.

Every built-in is an `_name` method taking the unevaluated argument
expressions, the runtime context and an `evaluate` callback. Built-ins
evaluate only the arguments they need; `split`, `sub`, `gsub` and
`length` inspect their argument nodes to treat array names and
assignment targets by reference.
"""
import inspect
import math
import re
import time
from typing import Callable, Dict, List

from awk.awk_datatypes import AwkFatalError, Expr, FieldRef, NumberLiteral, RegexLiteral, Variable, LVALUE_TYPES
from awk.awk_fields import split_with_separator, split_with_regex
from awk.awk_format import format_printf
from awk.awk_regex import get_cached_regex
from awk.awk_values import Value, to_awk_string, to_number, to_integer
from awk.awk_variables import get_array


def expand_replacement(repl: str, matched: str) -> str:
    """Expand `&` (the matched text), `\\&` (a literal ampersand) and `\\\\`."""
    out = []
    i = 0
    n = len(repl)
    while i < n:
        c = repl[i]
        if c == "\\" and i + 1 < n and repl[i + 1] in "&\\":
            out.append(repl[i + 1])
            i += 2
            continue
        if c == "&":
            out.append(matched)
        else:
            out.append(c)
        i += 1
    return "".join(out)


def substitute(regex, repl: str, text: str, global_: bool) -> tuple[str, int]:
    """Replace the first (or every) match of regex in text. Returns (new_text, count).

    An empty match directly after a previous match is not replaced.
    """
    out = []
    pos = 0
    count = 0
    last_end = -1
    n = len(text)
    while pos <= n:
        m = regex.search(text, pos)
        if m is None:
            break
        start, end = m.span()
        if start == end and start == last_end:
            if start < n:
                out.append(text[pos:start + 1])
            pos = start + 1
            continue
        out.append(text[pos:start])
        out.append(expand_replacement(repl, m.group(0)))
        count += 1
        last_end = end
        if start == end:
            if start < n:
                out.append(text[start])
            pos = start + 1
        else:
            pos = end
        if not global_:
            break
    out.append(text[pos:])
    return "".join(out), count


def _pattern_of(node: Expr):
    return node.pattern if isinstance(node, RegexLiteral) else None


def _math(fn: Callable[[float], float], x: float) -> float:
    try:
        return fn(x)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def _safe_log(x: float) -> float:
    if x == 0:
        return -math.inf
    return _math(math.log, x)


def substr_clamped(s: str, start: float, length=None) -> str:
    if math.isnan(start):
        return ""
    begin = round(start) if math.isfinite(start) else start
    if length is None:
        end = math.inf
    else:
        if math.isnan(length):
            return ""
        end = begin + (round(length) if math.isfinite(length) else length)
    begin = max(begin, 1)
    end = min(end, len(s) + 1)
    if end <= begin:
        return ""
    return s[int(begin) - 1:int(end) - 1]


class AwkBuiltins:
    """Python implementations of the AWK built-in functions."""
    def __init__(self, evaluator):
        self.evaluator = evaluator
        self.table: Dict[str, Callable] = {}
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                self.table[name[1:]] = member

    # --- String functions ---

    async def _length(self, args: List[Expr], ctx, evaluate) -> float:
        if not args:
            return float(len(ctx.line))
        node = args[0]
        if isinstance(node, Variable) and node.name in ctx.arrays:
            return float(len(ctx.arrays[node.name]))
        return float(len(to_awk_string(await evaluate(node), ctx.CONVFMT)))

    async def _substr(self, args, ctx, evaluate) -> str:
        if len(args) < 2:
            raise AwkFatalError("substr: requires at least two arguments")
        s = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        start = to_number(await evaluate(args[1]))
        length = to_number(await evaluate(args[2])) if len(args) > 2 else None
        return substr_clamped(s, start, length)

    async def _index(self, args, ctx, evaluate) -> float:
        if len(args) < 2:
            raise AwkFatalError("index: requires two arguments")
        s = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        t = to_awk_string(await evaluate(args[1]), ctx.CONVFMT)
        return float(s.find(t) + 1)

    async def _split(self, args, ctx, evaluate) -> float:
        if len(args) < 2 or not isinstance(args[1], Variable):
            raise AwkFatalError("split: second argument is not an array")
        text = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        pattern = None
        if len(args) > 2:
            pattern = _pattern_of(args[2])
            sep = None if pattern is not None else to_awk_string(await evaluate(args[2]), ctx.CONVFMT)
        else:
            sep = ctx.FS
        if pattern is not None:
            try:
                parts = split_with_regex(text, get_cached_regex(ctx, pattern))
            except re.error:
                parts = [text] if text else []
        else:
            parts = split_with_separator(text, sep, ctx)
        arr = get_array(ctx, args[1].name)
        arr.clear()
        for i, part in enumerate(parts, start=1):
            arr[str(i)] = part
        return float(len(parts))

    async def _sub(self, args, ctx, evaluate) -> float:
        return await self.substitute_target(args, ctx, evaluate, global_=False)

    async def _gsub(self, args, ctx, evaluate) -> float:
        return await self.substitute_target(args, ctx, evaluate, global_=True)

    async def substitute_target(self, args, ctx, evaluate, global_: bool) -> float:
        if len(args) < 2:
            raise AwkFatalError("sub/gsub: requires at least two arguments")
        pattern = _pattern_of(args[0])
        if pattern is None:
            pattern = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        repl = to_awk_string(await evaluate(args[1]), ctx.CONVFMT)
        target = args[2] if len(args) > 2 else FieldRef(NumberLiteral(0))
        # An lvalue target has its field index or subscript evaluated exactly once.
        loc = None
        if isinstance(target, LVALUE_TYPES):
            loc = await self.evaluator.resolve_target(target, ctx)
            text = to_awk_string(self.evaluator.read_location(loc, ctx), ctx.CONVFMT)
        else:
            text = to_awk_string(await evaluate(target), ctx.CONVFMT)
        try:
            regex = get_cached_regex(ctx, pattern)
        except re.error:
            return 0.0
        new_text, count = substitute(regex, repl, text, global_)
        if count and loc is not None:
            self.evaluator.write_location(loc, new_text, ctx)
        return float(count)

    async def _match(self, args, ctx, evaluate) -> float:
        if len(args) < 2:
            raise AwkFatalError("match: requires at least two arguments")
        text = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        pattern = _pattern_of(args[1])
        if pattern is None:
            pattern = to_awk_string(await evaluate(args[1]), ctx.CONVFMT)
        try:
            m = get_cached_regex(ctx, pattern).search(text)
        except re.error:
            m = None
        if len(args) > 2:
            if not isinstance(args[2], Variable):
                raise AwkFatalError("match: third argument is not an array")
            groups = get_array(ctx, args[2].name)
            groups.clear()
            if m is not None:
                for i in range(len(m.groups()) + 1):
                    if m.group(i) is not None:
                        groups[str(i)] = m.group(i)
        if m is None:
            ctx.RSTART = 0.0
            ctx.RLENGTH = -1.0
        else:
            ctx.RSTART = float(m.start() + 1)
            ctx.RLENGTH = float(m.end() - m.start())
        return ctx.RSTART

    async def _sprintf(self, args, ctx, evaluate) -> str:
        if not args:
            return ""
        values: List[Value] = []
        for node in args:
            values.append(await evaluate(node))
        return format_printf(to_awk_string(values[0], ctx.CONVFMT), values[1:], ctx.CONVFMT)

    async def _tolower(self, args, ctx, evaluate) -> str:
        return to_awk_string(await evaluate(args[0]), ctx.CONVFMT).lower() if args else ""

    async def _toupper(self, args, ctx, evaluate) -> str:
        return to_awk_string(await evaluate(args[0]), ctx.CONVFMT).upper() if args else ""

    # --- Numeric functions ---

    async def _int(self, args, ctx, evaluate) -> float:
        return float(to_integer(await evaluate(args[0]))) if args else 0.0

    async def _sqrt(self, args, ctx, evaluate) -> float:
        return _math(math.sqrt, to_number(await evaluate(args[0]))) if args else 0.0

    async def _exp(self, args, ctx, evaluate) -> float:
        return _math(math.exp, to_number(await evaluate(args[0]))) if args else 1.0

    async def _log(self, args, ctx, evaluate) -> float:
        return _safe_log(to_number(await evaluate(args[0]))) if args else -math.inf

    async def _sin(self, args, ctx, evaluate) -> float:
        return _math(math.sin, to_number(await evaluate(args[0]))) if args else 0.0

    async def _cos(self, args, ctx, evaluate) -> float:
        return _math(math.cos, to_number(await evaluate(args[0]))) if args else 1.0

    async def _atan2(self, args, ctx, evaluate) -> float:
        if len(args) < 2:
            raise AwkFatalError("atan2: requires two arguments")
        y = to_number(await evaluate(args[0]))
        x = to_number(await evaluate(args[1]))
        return math.atan2(y, x)

    async def _rand(self, args, ctx, evaluate) -> float:
        return ctx.rng.random()

    async def _srand(self, args, ctx, evaluate) -> float:
        previous = ctx.rand_seed
        seed = to_number(await evaluate(args[0])) if args else float(int(time.time()))
        ctx.rand_seed = seed
        ctx.rng.seed(seed)
        return previous

    # --- I/O ---

    async def _close(self, args, ctx, evaluate) -> float:
        if not args:
            return -1.0
        name = to_awk_string(await evaluate(args[0]), ctx.CONVFMT)
        closed = ctx.close_redirect(name)
        if ctx.fs is not None:
            try:
                path = ctx.fs.resolve_path(ctx.cwd, name)
            except (OSError, ValueError):
                path = None
            if path is not None and ctx.file_cache.pop(path, None) is not None:
                closed = True
        return 0.0 if closed else -1.0

    async def _fflush(self, args, ctx, evaluate) -> float:
        for node in args:
            await evaluate(node)
        return 0.0
