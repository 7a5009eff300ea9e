"""
Defines the core data types for the AWK runtime.

This module provides the error types raised by the interpreter and the
classes of the parsed program tree (expressions, statements, patterns,
rules and function definitions) that the evaluator and the statement
runner walk.
"""

from abc import ABC
from typing import List, Optional, Any


# =================================================================
# Errors
# =================================================================

class AwkError(Exception):
    """Base class for all interpreter errors."""
    pass


class AwkSyntaxError(AwkError):
    """Raised by the parser for malformed programs."""
    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col


class AwkFatalError(AwkError):
    """A fatal runtime error (division by zero, misuse of an array name, ...).

    Aborts the whole run. Not recoverable and never retried.
    """
    def __init__(self, message: str):
        if not message.startswith("awk: fatal:"):
            message = f"awk: fatal: {message}"
        super().__init__(message)


class ExecutionLimitError(AwkError):
    """Raised when a program exceeds its iteration or recursion budget.

    Carries the output produced up to the point of abort so the host can
    still hand it back to the caller.
    """
    def __init__(self, message: str, limit_type: str, partial_output: str):
        super().__init__(message)
        self.limit_type = limit_type  # 'iterations' | 'recursion'
        self.partial_output = partial_output

    def __repr__(self) -> str:
        return f"ExecutionLimitError({self.limit_type!r}, {str(self)!r})"


# =================================================================
# Abstract Base Classes
# =================================================================

class Node(ABC):
    """Abstract base class for every node of the program tree."""
    _fields: tuple = ()

    def __repr__(self) -> str:
        parts = ", ".join(f"{f}={getattr(self, f)!r}" for f in self._fields)
        return f"{type(self).__name__}({parts})"

    def __eq__(self, other: Any) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return all(getattr(self, f) == getattr(other, f) for f in self._fields)

    __hash__ = None


class Expr(Node):
    """Abstract base class for expressions."""
    pass


class Stmt(Node):
    """Abstract base class for statements."""
    pass


class Pattern(Node):
    """Abstract base class for rule patterns."""
    pass


# =================================================================
# Expressions
# =================================================================

class NumberLiteral(Expr):
    _fields = ("value",)
    def __init__(self, value: float):
        self.value = float(value)


class StringLiteral(Expr):
    _fields = ("value",)
    def __init__(self, value: str):
        self.value = value


class RegexLiteral(Expr):
    """A `/.../` literal. As a value it matches against `$0`."""
    _fields = ("pattern",)
    def __init__(self, pattern: str):
        self.pattern = pattern


class FieldRef(Expr):
    """`$expr`"""
    _fields = ("index",)
    def __init__(self, index: Expr):
        self.index = index


class Variable(Expr):
    _fields = ("name",)
    def __init__(self, name: str):
        self.name = name


class ArrayAccess(Expr):
    """`name[key]`. A multi-dimensional key is a `Tuple`."""
    _fields = ("array", "key")
    def __init__(self, array: str, key: Expr):
        self.array = array
        self.key = key


class BinaryOp(Expr):
    """Binary operator. Concatenation uses the operator name `concat`."""
    _fields = ("op", "left", "right")
    def __init__(self, op: str, left: Expr, right: Expr):
        self.op = op
        self.left = left
        self.right = right


class UnaryOp(Expr):
    _fields = ("op", "operand")
    def __init__(self, op: str, operand: Expr):
        self.op = op
        self.operand = operand


class Ternary(Expr):
    _fields = ("condition", "consequent", "alternate")
    def __init__(self, condition: Expr, consequent: Expr, alternate: Expr):
        self.condition = condition
        self.consequent = consequent
        self.alternate = alternate


class FunctionCall(Expr):
    _fields = ("name", "args")
    def __init__(self, name: str, args: List[Expr]):
        self.name = name
        self.args = list(args)


class Assignment(Expr):
    """`target op value` where op is `=` or a compound operator like `+=`."""
    _fields = ("op", "target", "value")
    def __init__(self, op: str, target: Expr, value: Expr):
        self.op = op
        self.target = target
        self.value = value


class IncDec(Expr):
    """Pre/post increment and decrement.

    delta is +1 or -1; return_old is True for the postfix forms.
    """
    _fields = ("target", "delta", "return_old")
    def __init__(self, target: Expr, delta: int, return_old: bool):
        self.target = target
        self.delta = delta
        self.return_old = return_old


class InExpr(Expr):
    """`key in array`, `(k1, k2) in array`"""
    _fields = ("key", "array")
    def __init__(self, key: Expr, array: str):
        self.key = key
        self.array = array


class Getline(Expr):
    """`getline [target] [< file]`"""
    _fields = ("target", "file")
    def __init__(self, target: Optional[Expr] = None, file: Optional[Expr] = None):
        self.target = target
        self.file = file


class Tuple(Expr):
    """A parenthesised comma list: `(a, b)`."""
    _fields = ("elements",)
    def __init__(self, elements: List[Expr]):
        self.elements = list(elements)


LVALUE_TYPES = (Variable, ArrayAccess, FieldRef)


# =================================================================
# Statements
# =================================================================

class Block(Stmt):
    _fields = ("statements",)
    def __init__(self, statements: List[Stmt]):
        self.statements = list(statements)


class ExprStmt(Stmt):
    _fields = ("expr",)
    def __init__(self, expr: Expr):
        self.expr = expr


class OutputRedirect(Node):
    """`> target` or `>> target` attached to print/printf."""
    _fields = ("mode", "target")
    def __init__(self, mode: str, target: Expr):
        self.mode = mode
        self.target = target


class Print(Stmt):
    _fields = ("args", "redirect")
    def __init__(self, args: List[Expr], redirect: Optional[OutputRedirect] = None):
        self.args = list(args)
        self.redirect = redirect


class Printf(Stmt):
    _fields = ("args", "redirect")
    def __init__(self, args: List[Expr], redirect: Optional[OutputRedirect] = None):
        self.args = list(args)
        self.redirect = redirect


class If(Stmt):
    _fields = ("condition", "consequent", "alternate")
    def __init__(self, condition: Expr, consequent: Stmt, alternate: Optional[Stmt] = None):
        self.condition = condition
        self.consequent = consequent
        self.alternate = alternate


class While(Stmt):
    _fields = ("condition", "body")
    def __init__(self, condition: Expr, body: Stmt):
        self.condition = condition
        self.body = body


class DoWhile(Stmt):
    _fields = ("body", "condition")
    def __init__(self, body: Stmt, condition: Expr):
        self.body = body
        self.condition = condition


class For(Stmt):
    _fields = ("init", "condition", "update", "body")
    def __init__(self, init: Optional[Expr], condition: Optional[Expr], update: Optional[Expr], body: Stmt):
        self.init = init
        self.condition = condition
        self.update = update
        self.body = body


class ForIn(Stmt):
    _fields = ("variable", "array", "body")
    def __init__(self, variable: str, array: str, body: Stmt):
        self.variable = variable
        self.array = array
        self.body = body


class Break(Stmt):
    pass


class Continue(Stmt):
    pass


class Next(Stmt):
    pass


class NextFile(Stmt):
    pass


class Exit(Stmt):
    _fields = ("code",)
    def __init__(self, code: Optional[Expr] = None):
        self.code = code


class Return(Stmt):
    _fields = ("value",)
    def __init__(self, value: Optional[Expr] = None):
        self.value = value


class Delete(Stmt):
    """`delete arr[key]`, or `delete arr` when key is None."""
    _fields = ("array", "key")
    def __init__(self, array: str, key: Optional[Expr] = None):
        self.array = array
        self.key = key


# =================================================================
# Patterns, rules and the program
# =================================================================

class BeginPattern(Pattern):
    pass


class EndPattern(Pattern):
    pass


class RegexPattern(Pattern):
    _fields = ("pattern",)
    def __init__(self, pattern: str):
        self.pattern = pattern


class ExprPattern(Pattern):
    _fields = ("expression",)
    def __init__(self, expression: Expr):
        self.expression = expression


class RangePattern(Pattern):
    """`start, end`, inclusive at both ends."""
    _fields = ("start", "end")
    def __init__(self, start: Pattern, end: Pattern):
        self.start = start
        self.end = end


class Rule(Node):
    """A (pattern, action) pair. pattern is None for a bare `{ ... }`."""
    _fields = ("pattern", "action")
    def __init__(self, pattern: Optional[Pattern], action: Block):
        self.pattern = pattern
        self.action = action


class FunctionDef(Node):
    """A user-defined function. Registered once at load, immutable afterwards."""
    _fields = ("name", "params", "body")
    def __init__(self, name: str, params: List[str], body: Block):
        self.name = name
        self.params = tuple(params)
        self.body = body


class Program(Node):
    _fields = ("rules", "functions")
    def __init__(self, rules: List[Rule], functions: List[FunctionDef]):
        self.rules = list(rules)
        self.functions = list(functions)
