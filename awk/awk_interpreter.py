"""
The AWK expression evaluator.

Evaluates expression nodes against a RuntimeContext, dispatches calls to
the built-in table and to user-defined functions, and implements both
forms of getline. User function bodies are run through a block executor
injected with `set_block_executor`, which keeps this module independent of
the statement runner.
"""
import math
import os
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional

from awk.awk_builtins import AwkBuiltins
from awk.awk_context import FileCacheEntry, RuntimeContext
from awk.awk_datatypes import (
    AwkFatalError, ExecutionLimitError,
    Expr, NumberLiteral, StringLiteral, RegexLiteral, FieldRef, Variable, ArrayAccess,
    BinaryOp, UnaryOp, Ternary, FunctionCall, Assignment, IncDec, InExpr, Getline, Tuple,
    FunctionDef,
)
from awk.awk_fields import get_field, set_field, set_current_line
from awk.awk_regex import match_regex
from awk.awk_values import (
    Value, is_truthy, to_number, to_awk_string, looks_numeric, bool_value,
)
from awk.awk_variables import (
    get_variable, set_variable, get_array_element, set_array_element, has_array_element,
)

BlockExecutor = Callable[[RuntimeContext, list], Awaitable[None]]

COMPARISON_OPS = ("<", "<=", ">", ">=", "==", "!=")

_MISSING = object()


def compare_values(op: str, left: Value, right: Value, convfmt: str = "%.6g") -> bool:
    """Numeric comparison when both sides look numeric, string comparison otherwise."""
    if looks_numeric(left) and looks_numeric(right):
        l, r = to_number(left), to_number(right)
    else:
        l, r = to_awk_string(left, convfmt), to_awk_string(right, convfmt)
    match op:
        case "<":
            return l < r
        case "<=":
            return l <= r
        case ">":
            return l > r
        case ">=":
            return l >= r
        case "==":
            return l == r
        case "!=":
            return l != r
    raise ValueError(f"Unknown comparison operator: {op}")


def power(base: float, exponent: float) -> float:
    """`^` made total: overflow and 0^-n give inf, complex results give nan."""
    try:
        result = base ** exponent
    except ZeroDivisionError:
        return math.inf
    except OverflowError:
        if base < 0 and exponent == int(exponent) and int(exponent) % 2:
            return -math.inf
        return math.inf
    if isinstance(result, complex):
        return math.nan
    return float(result)


def _fmod(left: float, right: float) -> float:
    try:
        return math.fmod(left, right)
    except ValueError:
        return math.nan


def arithmetic(op: str, left: float, right: float) -> float:
    match op:
        case "+":
            return left + right
        case "-":
            return left - right
        case "*":
            return left * right
        case "/":
            if right == 0:
                raise AwkFatalError("division by zero attempted")
            return left / right
        case "%":
            if right == 0:
                raise AwkFatalError("division by zero attempted in `%'")
            return _fmod(left, right)
        case "^":
            return power(left, right)
    raise ValueError(f"Unknown arithmetic operator: {op}")


def compound(op: str, current: float, value: float) -> float:
    """Apply a compound assignment operator. `/=` and `%=` by zero yield 0."""
    match op:
        case "/=":
            return current / value if value != 0 else 0.0
        case "%=":
            return _fmod(current, value) if value != 0 else 0.0
    return arithmetic(op[:-1], current, value)


def _field_index(value: Value) -> float:
    num = to_number(value)
    return float(math.floor(num)) if math.isfinite(num) else num


class Evaluator:
    """The AWK expression engine."""
    def __init__(self, builtins: Optional[Dict[str, Callable]] = None):
        self.builtins = builtins if builtins is not None else AwkBuiltins(self).table
        self._execute_block: Optional[BlockExecutor] = None

    def set_block_executor(self, fn: BlockExecutor):
        self._execute_block = fn

    def _dbg(self, *parts):
        if os.environ.get("AWK_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    async def eval(self, node: Expr, ctx: RuntimeContext) -> Value:
        """Evaluate an expression node and return its value."""
        match node:
            case NumberLiteral() | StringLiteral():
                return node.value

            case RegexLiteral():
                # A bare regex used as a value matches against $0
                return bool_value(match_regex(node.pattern, ctx.line, ctx))

            case FieldRef():
                return get_field(ctx, _field_index(await self.eval(node.index, ctx)))

            case Variable():
                return get_variable(ctx, node.name)

            case ArrayAccess():
                key = await self.eval_key(node.key, ctx)
                return get_array_element(ctx, node.array, key)

            case BinaryOp():
                return await self._binary(node, ctx)

            case UnaryOp():
                val = await self.eval(node.operand, ctx)
                match node.op:
                    case "!":
                        return bool_value(not is_truthy(val))
                    case "-":
                        return -to_number(val)
                    case "+":
                        return to_number(val)
                raise TypeError(f"Unknown unary operator: {node.op}")

            case Ternary():
                if is_truthy(await self.eval(node.condition, ctx)):
                    return await self.eval(node.consequent, ctx)
                return await self.eval(node.alternate, ctx)

            case Assignment():
                return await self._assignment(node, ctx)

            case IncDec():
                loc = await self.resolve_target(node.target, ctx)
                old = to_number(self.read_location(loc, ctx))
                new = old + node.delta
                self.write_location(loc, new, ctx)
                return old if node.return_old else new

            case InExpr():
                key = await self.eval_key(node.key, ctx)
                return bool_value(has_array_element(ctx, node.array, key))

            case Getline():
                if node.file is not None:
                    return await self._getline_file(node, ctx)
                return await self._getline_main(node, ctx)

            case Tuple():
                result: Value = ""
                for element in node.elements:
                    result = await self.eval(element, ctx)
                return result

            case FunctionCall():
                return await self._call(node, ctx)

            case _:
                raise TypeError(f"Unknown AST node type: {type(node).__name__}")

    async def eval_key(self, key: Expr, ctx: RuntimeContext) -> str:
        """Evaluate an array subscript; a tuple subscript is joined with SUBSEP."""
        if isinstance(key, Tuple):
            parts = []
            for element in key.elements:
                parts.append(to_awk_string(await self.eval(element, ctx), ctx.CONVFMT))
            return ctx.SUBSEP.join(parts)
        return to_awk_string(await self.eval(key, ctx), ctx.CONVFMT)

    # --- Operators ---

    async def _binary(self, node: BinaryOp, ctx: RuntimeContext) -> Value:
        op = node.op
        if op == "&&":
            return bool_value(
                is_truthy(await self.eval(node.left, ctx))
                and is_truthy(await self.eval(node.right, ctx))
            )
        if op == "||":
            return bool_value(
                is_truthy(await self.eval(node.left, ctx))
                or is_truthy(await self.eval(node.right, ctx))
            )
        if op in ("~", "!~"):
            text = to_awk_string(await self.eval(node.left, ctx), ctx.CONVFMT)
            if isinstance(node.right, RegexLiteral):
                pattern = node.right.pattern
            else:
                pattern = to_awk_string(await self.eval(node.right, ctx), ctx.CONVFMT)
            matched = match_regex(pattern, text, ctx)
            return bool_value(matched if op == "~" else not matched)

        left = await self.eval(node.left, ctx)
        right = await self.eval(node.right, ctx)
        if op == "concat":
            return to_awk_string(left, ctx.CONVFMT) + to_awk_string(right, ctx.CONVFMT)
        if op in COMPARISON_OPS:
            return bool_value(compare_values(op, left, right, ctx.CONVFMT))
        return arithmetic(op, to_number(left), to_number(right))

    # --- Assignment targets ---

    async def resolve_target(self, target: Expr, ctx: RuntimeContext) -> tuple:
        """Evaluate a target's index/key once and return its storage location."""
        match target:
            case FieldRef():
                return ("field", _field_index(await self.eval(target.index, ctx)))
            case Variable():
                return ("var", target.name)
            case ArrayAccess():
                return ("elem", target.array, await self.eval_key(target.key, ctx))
        raise AwkFatalError(f"invalid assignment target {type(target).__name__}")

    def read_location(self, loc: tuple, ctx: RuntimeContext) -> Value:
        match loc:
            case ("field", index):
                return get_field(ctx, index)
            case ("var", name):
                return get_variable(ctx, name)
            case ("elem", array, key):
                return get_array_element(ctx, array, key)

    def write_location(self, loc: tuple, value: Value, ctx: RuntimeContext):
        match loc:
            case ("field", index):
                set_field(ctx, index, value)
            case ("var", name):
                set_variable(ctx, name, value)
            case ("elem", array, key):
                set_array_element(ctx, array, key, value)

    async def assign(self, target: Expr, value: Value, ctx: RuntimeContext):
        """Store value into a field, variable or array element."""
        self.write_location(await self.resolve_target(target, ctx), value, ctx)

    async def _assignment(self, node: Assignment, ctx: RuntimeContext) -> Value:
        value = await self.eval(node.value, ctx)
        loc = await self.resolve_target(node.target, ctx)
        if node.op == "=":
            result = value
        else:
            result = compound(node.op, to_number(self.read_location(loc, ctx)), to_number(value))
        self.write_location(loc, result, ctx)
        return result

    # --- getline ---

    async def _store_record(self, target: Optional[Expr], text: str, ctx: RuntimeContext):
        if target is None:
            set_current_line(ctx, text)
        else:
            await self.assign(target, text, ctx)

    async def _getline_main(self, node: Getline, ctx: RuntimeContext) -> float:
        lines = ctx.ensure_records()
        if lines is None:
            return -1.0
        index = ctx.line_index + 1
        if index >= len(lines):
            return 0.0
        await self._store_record(node.target, lines[index], ctx)
        ctx.NR += 1
        ctx.FNR += 1
        ctx.line_index = index
        return 1.0

    async def _getline_file(self, node: Getline, ctx: RuntimeContext) -> float:
        if ctx.fs is None:
            return -1.0
        filename = to_awk_string(await self.eval(node.file, ctx), ctx.CONVFMT)
        try:
            path = ctx.fs.resolve_path(ctx.cwd, filename)
        except (OSError, ValueError) as e:
            self._dbg("GETLINE", "cannot resolve", repr(filename), e)
            return -1.0

        entry = ctx.file_cache.get(path)
        if entry is None:
            try:
                content = await ctx.fs.read_file(path)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                self._dbg("GETLINE", "read failed", path, e)
                ctx.file_cache[path] = FileCacheEntry(None)
                return -1.0
            lines = content.split("\n")
            if lines and lines[-1] == "":
                lines.pop()
            entry = FileCacheEntry(lines)
            ctx.file_cache[path] = entry
            self._dbg("GETLINE", "cached", path, len(lines), "lines")

        if entry.lines is None:
            return -1.0
        index = entry.index + 1
        if index >= len(entry.lines):
            return 0.0
        entry.index = index
        await self._store_record(node.target, entry.lines[index], ctx)
        return 1.0

    # --- Calls ---

    async def _call(self, node: FunctionCall, ctx: RuntimeContext) -> Value:
        builtin = self.builtins.get(node.name)
        if builtin is not None:
            return await builtin(node.args, ctx, lambda e: self.eval(e, ctx))
        func = ctx.functions.get(node.name)
        if func is not None:
            return await self.call_user_function(func, node.args, ctx)
        self._dbg("CALL", "unknown function", node.name)
        return ""

    async def call_user_function(self, func: FunctionDef, args: List[Expr], ctx: RuntimeContext) -> Value:
        """Run a user function with its parameters bound as locals.

        Only parameters are local. A bare array name passed as an argument
        binds the parameter to the caller's array object itself, so element
        changes made by the callee are visible after the call.
        """
        ctx.current_recursion_depth += 1
        if ctx.current_recursion_depth > ctx.max_recursion_depth:
            ctx.current_recursion_depth -= 1
            self._dbg("LIMIT", "recursion", func.name, ctx.max_recursion_depth)
            raise ExecutionLimitError(
                f"awk: recursion depth exceeded maximum ({ctx.max_recursion_depth})",
                "recursion",
                ctx.output,
            )
        try:
            # Arguments see the caller's bindings; nothing is rebound until all are evaluated.
            bindings: List[Any] = []
            for i, arg in enumerate(args):
                if i < len(func.params) and isinstance(arg, Variable) and arg.name in ctx.arrays:
                    bindings.append(ctx.arrays[arg.name])
                else:
                    bindings.append(await self.eval(arg, ctx))

            saved = [(p, ctx.vars.get(p, _MISSING), ctx.arrays.get(p, _MISSING)) for p in func.params]
            for i, param in enumerate(func.params):
                ctx.vars.pop(param, None)
                ctx.arrays.pop(param, None)
                bound = bindings[i] if i < len(bindings) else ""
                if isinstance(bound, dict):
                    ctx.arrays[param] = bound
                else:
                    ctx.vars[param] = bound

            self._dbg("CALL", func.name, "depth", ctx.current_recursion_depth)
            ctx.has_return = False
            ctx.return_value = None
            try:
                if self._execute_block is not None:
                    await self._execute_block(ctx, func.body.statements)
                result = ctx.return_value if ctx.return_value is not None else ""
            finally:
                for param, var, arr in reversed(saved):
                    ctx.vars.pop(param, None)
                    ctx.arrays.pop(param, None)
                    if var is not _MISSING:
                        ctx.vars[param] = var
                    if arr is not _MISSING:
                        ctx.arrays[param] = arr
                ctx.has_return = False
                ctx.return_value = None
                ctx.should_break = False
                ctx.should_continue = False
            return result
        finally:
            ctx.current_recursion_depth -= 1
