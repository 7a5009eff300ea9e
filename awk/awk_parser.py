"""
Turns AWK source text into a Program tree.

The text is parsed with koine against grammar/awk_grammar.yaml, and the raw
tree is handed to AwkTransformer for the Program nodes.
"""
import re
from pathlib import Path
from typing import Optional

from koine import Parser
from parsimonious.exceptions import VisitationError

from awk.awk_context import recursion_headroom
from awk.awk_datatypes import AwkSyntaxError, Program
from awk.awk_transformer import AwkTransformer

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "awk_grammar.yaml"

# The PEG matcher recurses a few dozen frames per nesting level.
PARSE_RECURSION_LIMIT = 20000

_POSITION = re.compile(r"L(\d+):C(\d+)")
_TOKEN = re.compile(r"[A-Za-z_0-9.]+|\S")


class AwkParser:
    _parser: Optional[Parser] = None

    def __init__(self):
        if AwkParser._parser is None:
            AwkParser._parser = Parser.from_file(str(GRAMMAR_PATH))
        self.parser = AwkParser._parser

    def parse(self, source: str) -> Program:
        with recursion_headroom(PARSE_RECURSION_LIMIT):
            try:
                parse_out = self.parser.parse(source)
                if parse_out.get('status') != 'success':
                    raise self._syntax_error(parse_out, source)
                return AwkTransformer().transform(parse_out['ast'])
            except RecursionError:
                raise AwkSyntaxError("program is nested too deeply") from None
            except VisitationError as e:
                if issubclass(e.original_class, RecursionError):
                    raise AwkSyntaxError("program is nested too deeply") from None
                raise

    def _syntax_error(self, parse_out: dict, source: str) -> AwkSyntaxError:
        message = parse_out.get('message', '')
        m = _POSITION.search(message)
        if m is None:
            return AwkSyntaxError(f"syntax error: {message}")
        line, col = int(m.group(1)), int(m.group(2))
        offset = sum(len(text) + 1 for text in source.split("\n")[:line - 1]) + col - 1
        rest = source[offset:]
        if not rest.strip():
            near = "end of file"
        elif rest.lstrip(" \t\r").startswith("\n"):
            near = "end of line"
        else:
            near = f"`{_TOKEN.match(rest.lstrip()).group(0)}'"
        return AwkSyntaxError(f"syntax error at or near {near}", line, col)


def parse(source: str) -> Program:
    """Parse AWK source text. Raises AwkSyntaxError on malformed programs."""
    return AwkParser().parse(source)
