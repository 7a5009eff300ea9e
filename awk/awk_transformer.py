"""
Transforms the raw koine parse tree into the Program tree from awk_datatypes.

The grammar only decides what the text looks like. Everything the grammar
cannot express (string escapes, lvalue checks, function table rules) is
checked here and reported as AwkSyntaxError with the offending position.
"""
import re
from typing import List, Optional

from awk.awk_datatypes import (
    AwkSyntaxError,
    Expr, NumberLiteral, StringLiteral, RegexLiteral, FieldRef, Variable, ArrayAccess,
    BinaryOp, UnaryOp, Ternary, FunctionCall, Assignment, IncDec, InExpr, Getline, Tuple,
    LVALUE_TYPES,
    Stmt, Block, ExprStmt, OutputRedirect, Print, Printf, If, While, DoWhile, For, ForIn,
    Break, Continue, Next, NextFile, Exit, Return, Delete,
    BeginPattern, EndPattern, RegexPattern, ExprPattern, RangePattern,
    Rule, FunctionDef, Program,
)
from awk.awk_variables import SPECIAL_VARIABLES

KEYWORDS = {
    "BEGIN", "END", "function", "func", "if", "else", "while", "for", "do",
    "break", "continue", "next", "nextfile", "exit", "return", "delete", "in",
    "getline", "print", "printf",
}

BUILTIN_NAMES = {
    "length", "substr", "index", "split", "sub", "gsub", "match", "sprintf",
    "tolower", "toupper", "int", "sqrt", "exp", "log", "sin", "cos", "atan2",
    "rand", "srand", "close", "fflush",
}

STRING_ESCAPES = {
    '"': '"', "\\": "\\", "/": "/", "n": "\n", "t": "\t", "r": "\r",
    "a": "\a", "b": "\b", "f": "\f", "v": "\v",
}

_STRING_ESCAPE = re.compile(r"\\([0-7]{1,3}|[\s\S])")
_REGEX_ESCAPE = re.compile(r"\\([\s\S])")


def decode_string(body: str) -> str:
    """Decode the escapes of a string literal body (without its quotes)."""
    def replace(m):
        seq = m.group(1)
        if seq[0] in "01234567":
            return chr(int(seq, 8))
        if seq == "\n":
            return ""
        # Unknown escapes keep their backslash, so "\." still works as a dynamic regex.
        return STRING_ESCAPES.get(seq, "\\" + seq)
    return _STRING_ESCAPE.sub(replace, body)


def decode_regex(body: str) -> str:
    # \/ is a literal slash; other escapes are left for the regex engine.
    return _REGEX_ESCAPE.sub(lambda m: "/" if m.group(1) == "/" else m.group(0), body)


class AwkTransformer:
    def __init__(self):
        self.function_names: set = set()

    def _error(self, node: dict, detail: Optional[str] = None):
        message = f"syntax error at or near `{node.get('text', '')}'"
        if detail:
            message = f"{message}: {detail}"
        raise AwkSyntaxError(message, node.get('line'), node.get('col'))

    def _error_at(self, node: dict, marker: str, detail: str):
        """Report an error at the last `marker` inside node's text."""
        text = node.get('text', '')
        offset = text.rfind(marker)
        line, col = node.get('line'), node.get('col')
        if offset >= 0 and line is not None:
            before = text[:offset]
            newlines = before.count("\n")
            line += newlines
            col = offset - before.rfind("\n") if newlines else col + offset
        raise AwkSyntaxError(f"syntax error at or near `{marker}': {detail}", line, col)

    def transform(self, node: object) -> object:
        if isinstance(node, list):
            return [self.transform(n) for n in node]

        tag = node.get('tag')
        children = node.get('children', [])

        match tag:
            # Program structure
            case 'program':
                rules: List[Rule] = []
                functions: List[FunctionDef] = []
                for item in children:
                    result = self.transform(item)
                    if isinstance(result, FunctionDef):
                        functions.append(result)
                    else:
                        rules.append(result)
                return Program(rules, functions)
            case 'function':
                return self._function(node, children)
            case 'begin':
                return Rule(BeginPattern(), self.transform(children[0]))
            case 'end':
                return Rule(EndPattern(), self.transform(children[0]))
            case 'action':
                return Rule(None, self.transform(children[0]))
            case 'rule':
                patterns = [c for c in children if c.get('tag') == 'pattern']
                blocks = [c for c in children if c.get('tag') == 'block']
                pattern = self.transform(patterns[0])
                if len(patterns) > 1:
                    pattern = RangePattern(pattern, self.transform(patterns[1]))
                # A pattern without an action prints the record.
                action = self.transform(blocks[0]) if blocks else Block([Print([])])
                return Rule(pattern, action)
            case 'pattern':
                expr = self.transform(children[0])
                if isinstance(expr, RegexLiteral):
                    return RegexPattern(expr.pattern)
                return ExprPattern(expr)

            # Statements
            case 'block':
                return Block(self.transform(children))
            case 'body':
                return self.transform(children[0]) if children else Block([])
            case 'expr_stmt':
                return ExprStmt(self.transform(children[0]))
            case 'if':
                condition, consequent = self.transform(children[:2])
                alternate = self.transform(children[2]) if len(children) > 2 else None
                return If(condition, consequent, alternate)
            case 'else':
                return self.transform(children[0])
            case 'while':
                return While(self.transform(children[0]), self.transform(children[1]))
            case 'do':
                return DoWhile(self.transform(children[0]), self.transform(children[1]))
            case 'for_in':
                variable, array, body = children
                return ForIn(variable['text'], array['text'], self.transform(body))
            case 'for':
                init, condition, update, body = children
                return For(self._optional(init), self._optional(condition), self._optional(update), self.transform(body))
            case 'print':
                return self._print(node, children)
            case 'exit':
                return Exit(self._optional(node))
            case 'return':
                return Return(self._optional(node))
            case 'delete':
                name, keys = children[0], children[1:]
                return Delete(name['text'], self._key(keys) if keys else None)
            case 'next':
                return Next()
            case 'nextfile':
                return NextFile()
            case 'break':
                return Break()
            case 'continue':
                return Continue()

            # Expressions
            case 'assign':
                target, op, value = children
                lhs = self.transform(target)
                if not isinstance(lhs, LVALUE_TYPES):
                    self._error(op, "invalid assignment target")
                symbol = "^=" if op['text'] == "**=" else op['text']
                return Assignment(symbol, lhs, self.transform(value))
            case 'ternary':
                return Ternary(*self.transform(children))
            case 'or' | 'and':
                return self._fold_logical("||" if tag == 'or' else "&&", children)
            case 'arith' | 'match' | 'compare':
                return self._fold_binary(children)
            case 'in':
                left = self.transform(children[0])
                for name in children[1:]:
                    left = InExpr(left, name['text'])
                return left
            case 'concat':
                left = self.transform(children[0])
                for right in children[1:]:
                    left = BinaryOp("concat", left, self.transform(right))
                return left
            case 'unary':
                op, operand = children
                return UnaryOp(op['text'], self.transform(operand))
            case 'power':
                base, exponent = children
                return BinaryOp("^", self.transform(base), self.transform(exponent))
            case 'pre_incdec':
                op, operand = children
                target = self.transform(operand)
                if not isinstance(target, LVALUE_TYPES):
                    self._error(op, "invalid operand for increment/decrement")
                return IncDec(target, 1 if op['text'] == "++" else -1, return_old=False)
            case 'post_incdec':
                operand, op = children
                return IncDec(self.transform(operand), 1 if op['text'] == "++" else -1, return_old=True)
            case 'field':
                return FieldRef(self.transform(children[0]))
            case 'group':
                elements = self.transform(children)
                return elements[0] if len(elements) == 1 else Tuple(elements)
            case 'getline':
                target = file = None
                for part in children:
                    if part['tag'] == 'getline_var':
                        target = self.transform(part['children'][0])
                    else:
                        file = self.transform(part['children'][0])
                return Getline(target, file)
            case 'pipe_getline':
                self._error_at(node, "|", "command pipes are not supported")
            case 'call':
                name, args = children[0], children[1:]
                return FunctionCall(name['text'], self.transform(args))
            case 'bare_builtin':
                name = children[0]
                if name['text'] != "length":
                    self._error(name, f"`{name['text']}' requires arguments")
                return FunctionCall("length", [])
            case 'array':
                name, keys = children[0], children[1:]
                return ArrayAccess(name['text'], self._key(keys))
            case 'variable':
                return Variable(node['text'])

            # Literals
            case 'number':
                return NumberLiteral(float(node['text']))
            case 'string':
                return StringLiteral(decode_string(node['text'][1:-1]))
            case 'ere':
                return RegexLiteral(decode_regex(node['text'][1:-1]))
            case 'bad_string':
                raise AwkSyntaxError("unterminated string", node['line'], node['col'])
            case 'bad_ere':
                raise AwkSyntaxError("unterminated regexp", node['line'], node['col'])

            case _:
                raise NotImplementedError(f"No transformer for tag '{tag}'")

    def _optional(self, node: dict) -> Optional[Expr]:
        children = node.get('children', [])
        return self.transform(children[0]) if children else None

    def _key(self, keys: List[dict]) -> Expr:
        exprs = self.transform(keys)
        return exprs[0] if len(exprs) == 1 else Tuple(exprs)

    def _fold_logical(self, op: str, children: List[dict]) -> Expr:
        left = self.transform(children[0])
        for right in children[1:]:
            left = BinaryOp(op, left, self.transform(right))
        return left

    def _fold_binary(self, children: List[dict]) -> Expr:
        """Left-fold [operand, op, operand, op, operand, ...]."""
        left = self.transform(children[0])
        for i in range(1, len(children), 2):
            op, right = children[i], children[i + 1]
            left = BinaryOp(op['text'], left, self.transform(right))
        return left

    def _print(self, node: dict, children: List[dict]) -> Stmt:
        keyword = children[0]
        args: List[Expr] = []
        redirect = None
        for part in children[1:]:
            if part['tag'] == 'args':
                args = self.transform(part['children'])
                # print (a, b) prints both values
                if len(args) == 1 and isinstance(args[0], Tuple):
                    args = args[0].elements
            else:
                op, target = part['children']
                if op['text'] == "|":
                    self._error(op, "output pipes are not supported")
                redirect = OutputRedirect(op['text'], self.transform(target))
        if keyword['text'] == "printf":
            if not args:
                self._error(keyword, "printf requires a format")
            return Printf(args, redirect)
        return Print(args, redirect)

    def _function(self, node: dict, children: List[dict]) -> FunctionDef:
        name_node = children[0]
        name = name_node['text']
        if name in BUILTIN_NAMES:
            self._error(name_node, f"cannot redefine built-in function `{name}'")
        if name in KEYWORDS:
            self._error(name_node, "expected function name")
        if name in self.function_names:
            self._error(name_node, f"function `{name}' previously defined")
        self.function_names.add(name)

        params: List[str] = []
        param_nodes = children[1]['children'] if children[1]['tag'] == 'params' else []
        for param_node in param_nodes:
            param = param_node['text']
            if param in params:
                self._error(param_node, f"duplicate parameter `{param}'")
            if param == name:
                self._error(param_node, f"parameter `{param}' shadows the function name")
            if param in SPECIAL_VARIABLES:
                self._error(param_node, f"cannot use special variable `{param}' as a function parameter")
            params.append(param)
        return FunctionDef(name, params, self.transform(children[-1]))
